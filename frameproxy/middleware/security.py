"""
Security Middleware
Adds CORS and hardening headers to every response
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from loguru import logger


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


class SecurityMiddleware(BaseHTTPMiddleware):
    """Security middleware for the application"""

    def __init__(self, app, app_version: str = "1.0.0"):
        super().__init__(app)
        self.app_version = app_version

    async def dispatch(self, request: Request, call_next):
        """Attach headers to the outgoing response"""

        response = await call_next(request)

        # Every response, errors included, is readable cross-origin
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if "server" in response.headers:
            del response.headers["server"]

        response.headers["X-Frame-Proxy"] = self.app_version

        if response.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} -> {response.status_code}")

        return response
