# =============================================================================
# Report Relay - Request Validator
# =============================================================================
"""
Schema checks for the decoded /report body.
"""

from dataclasses import dataclass
from typing import Any, List

from ..exceptions import InvalidBody, InvalidBrainrots
from .sanitizer import coerce_entry

MAX_BRAINROTS = 25
MAX_BRAINROT_LENGTH = 100


@dataclass(frozen=True)
class ValidatedReport:
    """
    A report whose shape has been checked.

    ``brainrots`` is already sanitized. The optional fields keep the raw
    client values; the payload builder coerces them.
    """

    brainrots: List[str]
    player_count: Any = None
    private_server_link: Any = None
    player_name: Any = None
    username: Any = None
    title: Any = None


def validate_report(body: Any) -> ValidatedReport:
    """
    Validate a decoded request body.

    Args:
        body: The decoded JSON value

    Returns:
        ValidatedReport: Shape-checked report with sanitized brainrots

    Raises:
        InvalidBody: If body is not a JSON object
        InvalidBrainrots: If brainrots is missing or not a list
    """
    if not isinstance(body, dict):
        raise InvalidBody("Request body must be a JSON object")

    raw = body.get("brainrots")
    if not isinstance(raw, list):
        raise InvalidBrainrots("brainrots must be a list")

    # Whitespace-only entries count as empty
    brainrots = [
        entry
        for entry in (
            coerce_entry(item, MAX_BRAINROT_LENGTH) for item in raw[:MAX_BRAINROTS]
        )
        if entry.strip()
    ]

    return ValidatedReport(
        brainrots=brainrots,
        player_count=body.get("playerCount"),
        private_server_link=body.get("privateServerLink"),
        player_name=body.get("playerName"),
        username=body.get("username"),
        title=body.get("title"),
    )
