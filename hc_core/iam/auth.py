# hc_core/iam/auth.py

from __future__ import annotations

import logging

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken

logger = logging.getLogger(__name__)


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    Authenticate using:
      1) Authorization: Bearer <access>   (a bad token is a 401)
      2) HttpOnly access cookie            (a bad token reads as anonymous)

    Tokens are issued elsewhere; this only verifies them.
    """

    def authenticate(self, request):
        header = self.get_header(request)
        if header:
            return super().authenticate(request)

        cookie_name = settings.SIMPLE_JWT.get("AUTH_COOKIE", "hc_access")
        raw_token = request.COOKIES.get(cookie_name)
        if not raw_token:
            return None

        try:
            validated_token = self.get_validated_token(raw_token)
        except InvalidToken:
            logger.info("Ignoring invalid %s cookie on %s", cookie_name, request.path)
            return None

        user = self.get_user(validated_token)
        return user, validated_token
