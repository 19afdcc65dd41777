# =============================================================================
# Report Relay - Request Size Limit
# =============================================================================
"""
Request body size limit middleware.

Rejects oversized bodies with 413 before the route runs when
Content-Length is declared. Bodies without one (chunked uploads) are
counted while streaming; the overflow surfaces as PayloadTooLarge when the
route reads the body, which happens after the rate limiters have run.
"""

import json

import structlog
from starlette.types import Message, Receive, Scope, Send

from ..exceptions import PayloadTooLarge


logger = structlog.get_logger(__name__)


class SizeLimitedReceive:
    """ASGI receive wrapper that raises PayloadTooLarge past ``max_size`` bytes."""

    def __init__(self, receive: Receive, max_size: int):
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0

    async def __call__(self) -> Message:
        message = await self._receive()
        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))
            if self._bytes_read > self._max_size:
                raise PayloadTooLarge(
                    f"Request body too large. Maximum allowed: {self._max_size} bytes"
                )
        return message


class RequestSizeLimitMiddleware:
    """
    Pure ASGI middleware enforcing a maximum request body size.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=150 * 1024)
    """

    def __init__(self, app, max_body_size: int = 150 * 1024):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = None
        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                content_length = value.decode("latin-1")
                break

        if content_length:
            try:
                if int(content_length) > self.max_body_size:
                    logger.warning(
                        "request_too_large",
                        path=scope.get("path"),
                        content_length=content_length,
                        limit=self.max_body_size,
                    )
                    await self._send_413(send)
                    return
            except ValueError:
                # Fall through to the streaming check
                pass

        await self.app(scope, SizeLimitedReceive(receive, self.max_body_size), send)

    async def _send_413(self, send: Send) -> None:
        body = json.dumps(PayloadTooLarge().to_body()).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": PayloadTooLarge.status_code,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode("latin-1")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
