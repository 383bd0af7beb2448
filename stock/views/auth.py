"""
Authentication, first-run setup and the caller's own profile.

Login hands out both a DRF token (``Authorization: Token ...``) and a
simplejwt access/refresh pair (``Authorization: Bearer ...``); either
is accepted by the API.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from stock.serializers.auth import (
    LoginSerializer, ProfileUpdateSerializer, SetupSerializer, format_me, format_user,
)
from stock.services import users as user_service

logger = logging.getLogger(__name__)


def _token_payload(user) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': format_me(user),
    }


# ---------------------------------------------------------------------
# Username/password login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Accepts fields:
      - username (or account)
      - password
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    username = vd.get('username') or vd.get('account')
    password = vd.get('password')
    if not username or not password:
        return Response({'ok': False, 'detail': 'Username and password are required.'}, status=400)

    user = authenticate(request, username=username, password=password)
    if not user:
        logger.info('failed login for %s from %s', username, request.META.get('REMOTE_ADDR'))
        return Response({'ok': False, 'detail': 'Invalid username or password.'}, status=400)

    logger.info('login %s from %s', user.username, request.META.get('REMOTE_ADDR'))
    return Response(_token_payload(user), status=200)

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or all of the caller's refresh tokens."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            return Response({'ok': False, 'detail': str(e)}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    return Response({'ok': True, 'blacklisted': count})


@api_view(['GET'])
def me_view(request):
    return Response(format_me(request.user))


# ---------------------------------------------------------------------
# First-run setup
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def setup_view(request):
    if request.method == 'GET':
        return Response({'setupRequired': user_service.setup_required()})
    s = SetupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = user_service.run_setup(username=vd['username'], email=vd['email'], password=vd['password'])
    payload = _token_payload(user)
    payload['message'] = 'Setup completed.'
    return Response(payload, status=201)


# ---------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------
@api_view(['GET', 'PUT'])
def profile_view(request):
    if request.method == 'GET':
        return Response(format_user(request.user))
    s = ProfileUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = user_service.update_profile(request.user, s.validated_data)
    return Response(format_user(user))
