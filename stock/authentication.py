"""
Token authentication for the stock API.

``Authorization: Token <key>`` is handled here; JWT bearer tokens are
handled by simplejwt's ``JWTAuthentication`` (see ``REST_FRAMEWORK`` in
settings).  Keeping this class apart from the views avoids import cycles
while DRF initialises its authentication classes.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token auth with a stable import path for the project settings."""

    keyword = 'Token'
