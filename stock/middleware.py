from django.http import JsonResponse

from .models import User


class SetupRequiredMiddleware:
    """Answer API calls with 409 until the first administrator exists."""
    EXEMPT_PREFIXES = ('/api/setup', '/api/auth/')

    def __init__(self, get_response):
        self.get_response = get_response
        self._setup_done = False

    def __call__(self, request):
        path = request.path or ''
        if path.startswith('/api/') and not any(path.startswith(p) for p in self.EXEMPT_PREFIXES):
            if not self._setup_done:
                self._setup_done = User.objects.exists()
            if not self._setup_done:
                return JsonResponse(
                    {'ok': False, 'error': {'code': 'setup_required', 'message': 'No users exist yet. Complete /api/setup first.'}},
                    status=409,
                )
        return self.get_response(request)
