# =============================================================================
# Report Relay - Webhook Forwarder
# =============================================================================
"""
Outbound delivery to the webhook sink.

Makes exactly one POST per accepted report with a hard timeout. Failures
are translated into relay errors; nothing is retried.
"""

import asyncio
from typing import Optional

import httpx
import structlog

from ..exceptions import SinkRejected, SinkUnreachable
from ..models import OutboundMessage


# Configure structured logger
logger = structlog.get_logger(__name__)


class WebhookForwarder:
    """
    Single-attempt webhook client.

    Wraps a shared httpx.AsyncClient so the event loop is never blocked
    while waiting on the sink.

    Attributes:
        url: Sink endpoint
        timeout: Overall time budget for one delivery in seconds
        _client: Shared HTTP client owned by the application lifespan
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        timeout: float = 10.0,
    ) -> None:
        """
        Initialize the forwarder.

        Args:
            client: Shared async HTTP client
            url: Sink endpoint
            timeout: Overall time budget for one delivery in seconds
        """
        self._client = client
        self.url = url
        self.timeout = timeout

    async def forward(
        self,
        message: OutboundMessage,
        client_hash: Optional[str] = None,
    ) -> int:
        """
        Deliver a message to the sink.

        Args:
            message: The message to deliver
            client_hash: Hashed caller identity, for log correlation only

        Returns:
            int: HTTP status returned by the sink

        Raises:
            SinkUnreachable: On timeout or transport failure
            SinkRejected: If the sink answers with a non-2xx status
        """
        try:
            # httpx timeouts are per phase; wait_for bounds the whole exchange
            response = await asyncio.wait_for(
                self._client.post(
                    self.url,
                    json=message.to_webhook_json(),
                    timeout=httpx.Timeout(self.timeout),
                ),
                timeout=self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.warning(
                "sink_timeout",
                client=client_hash,
                timeout_seconds=self.timeout,
                error_type=type(e).__name__,
            )
            raise SinkUnreachable("Sink timed out") from e
        except httpx.TransportError as e:
            logger.warning(
                "sink_unreachable",
                client=client_hash,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SinkUnreachable("Sink unreachable") from e

        if not response.is_success:
            logger.warning(
                "sink_rejected",
                client=client_hash,
                status=response.status_code,
            )
            raise SinkRejected(response.status_code)

        logger.info(
            "sink_accepted",
            client=client_hash,
            status=response.status_code,
        )
        return response.status_code
