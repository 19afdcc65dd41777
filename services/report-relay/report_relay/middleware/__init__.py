"""ASGI middleware for the relay."""

from .request_size import RequestSizeLimitMiddleware
from .security_headers import SecurityHeadersMiddleware

__all__ = ["RequestSizeLimitMiddleware", "SecurityHeadersMiddleware"]
