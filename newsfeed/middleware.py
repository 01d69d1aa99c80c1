# newsfeed/middleware.py
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .logging_setup import request_id_var, user_id_var, get_logger

logger = get_logger("newsfeed.http")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request and user ids to the logging context for the life of one request."""

    async def dispatch(self, request: Request, call_next):
        # Reuse an upstream request id when the proxy sends one
        req_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        req_token = request_id_var.set(req_id)
        user_token = user_id_var.set(request.headers.get("x-user-id") or "-")
        route = f"{request.method} {request.url.path}"

        start = time.perf_counter()
        response: Optional[Response] = None
        try:
            logger.debug("REQUEST_START", extra={"route": route})
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = req_id
            return response
        except Exception:
            # Re-raised so the registered exception handlers can respond
            logger.exception("REQUEST_EXCEPTION", extra={"route": route})
            raise
        finally:
            logger.info(
                "REQUEST_END",
                extra={
                    "route": route,
                    "status": getattr(response, "status_code", 500),
                    "elapsed_ms": round((time.perf_counter() - start) * 1000, 1),
                },
            )
            user_id_var.reset(user_token)
            request_id_var.reset(req_token)
