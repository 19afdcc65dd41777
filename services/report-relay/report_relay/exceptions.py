# =============================================================================
# Report Relay - Exceptions
# =============================================================================
"""
Error taxonomy for the relay.

Every client-visible failure is a RelayError carrying the HTTP status and
the short ``msg`` code returned in the JSON body.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for relay failures that map to an HTTP response."""

    status_code: int = 500
    msg: str = "server_error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.msg
        super().__init__(self.detail)

    def to_body(self) -> dict:
        """JSON body sent to the client."""
        return {"ok": False, "msg": self.msg}


class ConfigMissing(RelayError):
    """Required configuration is absent. Fatal at startup."""


class RateLimited(RelayError):
    """Client exceeded the global or burst request limit."""

    status_code = 429
    msg = "rate_limited"

    def __init__(self, layer: str, retry_after: Optional[int] = None):
        self.layer = layer
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded ({layer})")


class InvalidInput(RelayError):
    """Request body failed validation."""

    status_code = 400
    msg = "invalid_body"


class InvalidBody(InvalidInput):
    """Body is absent, not JSON, or not a JSON object."""


class InvalidBrainrots(InvalidInput):
    """The ``brainrots`` field is absent or not a list."""

    msg = "invalid_brainrots"


class PayloadTooLarge(RelayError):
    """Request body exceeds the configured size cap."""

    status_code = 413
    msg = "payload_too_large"


class SinkError(RelayError):
    """The webhook sink could not accept the message."""

    status_code = 502
    msg = "discord_error"


class SinkUnreachable(SinkError):
    """Timeout or transport failure talking to the sink."""


class SinkRejected(SinkError):
    """The sink answered with a non-success status."""

    def __init__(self, status: int):
        self.status = status
        super().__init__(f"Sink responded with HTTP {status}")

    def to_body(self) -> dict:
        return {"ok": False, "msg": self.msg, "status": self.status}


class InternalError(RelayError):
    """Unexpected failure anywhere in the pipeline. Details stay server-side."""
