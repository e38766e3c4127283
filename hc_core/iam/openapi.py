# hc_core/iam/openapi.py
from drf_spectacular.extensions import OpenApiAuthenticationExtension


class CookieOrHeaderJWTAuthenticationScheme(OpenApiAuthenticationExtension):
    target_class = "hc_core.iam.auth.CookieOrHeaderJWTAuthentication"
    name = "BearerOrCookieJWT"

    def get_security_definition(self, auto_schema):
        # Swagger "Authorize" only offers the bearer form; the cookie is accepted too.
        return {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": (
                "Access token via `Authorization: Bearer <token>` "
                "or the HttpOnly `hc_access` cookie. Intake and token uploads accept anonymous callers."
            ),
        }
