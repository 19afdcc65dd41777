# =============================================================================
# Report Relay - Models Package
# =============================================================================
"""Pydantic models for responses and the outbound webhook message."""

from .schemas import (
    Embed,
    EmbedField,
    HealthResponse,
    OutboundMessage,
    ReportResponse,
)

__all__ = [
    "Embed",
    "EmbedField",
    "HealthResponse",
    "OutboundMessage",
    "ReportResponse",
]
