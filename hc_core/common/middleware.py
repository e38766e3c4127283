# hc_core/common/middleware.py

from __future__ import annotations

import logging
import time

from django.utils.deprecation import MiddlewareMixin

from hc_core.common.api.exceptions import ensure_request_id

logger = logging.getLogger(__name__)


class RequestContextMiddleware(MiddlewareMixin):
    """
    Attaches request.request_id (inbound X-Request-Id wins), echoes it back
    on the response and logs one line per API request.
    """

    HEADER_META_KEY = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-Id"

    QUIET_PATH_PREFIXES = (
        "/admin/",
        "/api/docs/",
        "/api/schema/",
        "/static/",
    )

    def process_request(self, request):
        inbound = (request.META.get(self.HEADER_META_KEY) or "").strip()
        if inbound:
            request.request_id = inbound[:64]
        ensure_request_id(request)
        request._hc_started = time.monotonic()
        return None

    def process_response(self, request, response):
        rid = ensure_request_id(request)
        response[self.RESPONSE_HEADER] = rid

        path = getattr(request, "path", "") or ""
        if any(path.startswith(p) for p in self.QUIET_PATH_PREFIXES):
            return response

        started = getattr(request, "_hc_started", None)
        duration_ms = int((time.monotonic() - started) * 1000) if started is not None else -1

        logger.info(
            "%s %s status=%s duration_ms=%s request_id=%s",
            request.method,
            path,
            response.status_code,
            duration_ms,
            rid,
        )
        return response
