import logging
import time
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger("biometric_bridge.http")

# polled every few seconds by the frontend
QUIET_PATHS = {"/health", "/api/rdservice/status"}


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        client = request.client.host if request.client else "-"

        logger.log(level, f"Request: {request.method} {request.url.path} from {client}")
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        # captures carry biometric payloads
        if request.url.path.startswith("/api/capture"):
            response.headers["Cache-Control"] = "no-store"

        if response.status_code >= 500:
            level = logging.WARNING
        logger.log(
            level,
            f"Response: {request.method} {request.url.path} "
            f"status_code={response.status_code} processed_in={elapsed_ms:.2f}ms",
        )

        return response
