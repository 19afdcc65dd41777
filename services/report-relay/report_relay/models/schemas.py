# =============================================================================
# Report Relay - Pydantic Schemas
# =============================================================================
"""
Response models and the outbound webhook message schema.

The inbound body is deliberately not modelled with Pydantic: untrusted
fields are coerced with explicit fallbacks (see services.sanitizer) instead
of being rejected by strict typing.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


class EmbedField(BaseModel):
    """A single name/value row inside an embed."""

    name: str
    value: str
    inline: bool = False


class Embed(BaseModel):
    """
    Rich embed block of a webhook message.

    Attributes:
        title: Embed heading
        description: Body text (the brainrot list)
        color: Sidebar color as an integer RGB value
        fields: Structured rows rendered below the description
        timestamp: Server-side build time, ISO-8601 UTC
    """

    title: str
    description: str
    color: int
    fields: List[EmbedField] = Field(default_factory=list)
    timestamp: str


class OutboundMessage(BaseModel):
    """
    Message delivered to the webhook sink.

    Built once per accepted report, sent once, then discarded.
    """

    username: str
    embeds: List[Embed]

    def to_webhook_json(self) -> dict:
        """Serialize for the sink request body."""
        return self.model_dump(mode="json")


class ReportResponse(BaseModel):
    """
    Response body for POST /report.

    Attributes:
        ok: Whether the report was relayed
        msg: Short error code on failure
        status: Sink HTTP status when the sink rejected the message
    """

    ok: bool
    msg: Optional[str] = None
    status: Optional[int] = None


class HealthResponse(BaseModel):
    """
    Response model for health check endpoint.

    Attributes:
        status: Service health status
        service: Service name
        version: Service version
        tracked_clients: Client identities held by the burst tracker
        timestamp: Current server time
    """

    status: str = Field(default="healthy", description="Health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    tracked_clients: int = Field(default=0, description="Tracked client identities")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Current timestamp",
    )


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """
    Format a UTC instant as ISO-8601 with millisecond precision.

    Format: 2024-01-15T10:00:00.000Z
    """
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
