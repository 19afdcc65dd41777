# =============================================================================
# Report Relay - Payload Builder
# =============================================================================
"""
Maps a validated report onto the webhook sink's message schema.
"""

from datetime import datetime
from typing import Optional

from ..models.schemas import Embed, EmbedField, OutboundMessage, utc_timestamp
from .sanitizer import coerce_player_count, coerce_text
from .validator import ValidatedReport

EMBED_COLOR = 3447003

BRAINROTS_HEADING = "**Brainrots Encontrados:**"
NO_BRAINROTS_MESSAGE = "Nenhum brainrot secreto detectado neste scan."

# field -> (max length, fallback)
USERNAME_LIMIT = (60, "Souza Logger")
TITLE_LIMIT = (80, "Auto Souza")
PLAYER_NAME_LIMIT = (60, "N/A")
SERVER_LINK_LIMIT = (200, "N/A")


def build_description(brainrots: list) -> str:
    """Render the brainrot list, one entry per line, under a heading."""
    if not brainrots:
        return NO_BRAINROTS_MESSAGE
    return "\n".join([BRAINROTS_HEADING, *brainrots])


def build_message(
    report: ValidatedReport,
    now: Optional[datetime] = None,
) -> OutboundMessage:
    """
    Build the outbound webhook message.

    The timestamp is always the server's build time; nothing in the
    client body can influence it.

    Args:
        report: Validated report
        now: Override for the build time (tests)

    Returns:
        OutboundMessage: Message ready for the forwarder
    """
    player_count = coerce_player_count(report.player_count)

    embed = Embed(
        title=coerce_text(report.title, *TITLE_LIMIT),
        description=build_description(report.brainrots),
        color=EMBED_COLOR,
        fields=[
            EmbedField(
                name="👤 Jogador",
                value=coerce_text(report.player_name, *PLAYER_NAME_LIMIT),
                inline=True,
            ),
            EmbedField(
                name="👥 Jogadores no Server",
                value=str(player_count),
                inline=True,
            ),
            EmbedField(
                name="🔗 Link do Server Privado",
                value=coerce_text(report.private_server_link, *SERVER_LINK_LIMIT),
                inline=False,
            ),
        ],
        timestamp=utc_timestamp(now),
    )

    return OutboundMessage(
        username=coerce_text(report.username, *USERNAME_LIMIT),
        embeds=[embed],
    )
