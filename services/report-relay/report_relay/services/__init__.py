# =============================================================================
# Report Relay - Services Package
# =============================================================================
"""Ingestion pipeline stages and the outbound sink client."""

from .forwarder import WebhookForwarder
from .payload import build_message
from .rate_limit import BurstTracker, ClientState, ClientStateStore, SlidingWindowLimiter
from .sanitizer import coerce_entry, coerce_player_count, coerce_text, sanitize
from .validator import ValidatedReport, validate_report

__all__ = [
    "BurstTracker",
    "ClientState",
    "ClientStateStore",
    "SlidingWindowLimiter",
    "ValidatedReport",
    "WebhookForwarder",
    "build_message",
    "coerce_entry",
    "coerce_player_count",
    "coerce_text",
    "sanitize",
    "validate_report",
]
