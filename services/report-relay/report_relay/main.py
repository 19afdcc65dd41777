# =============================================================================
# Report Relay - Main Application
# =============================================================================
"""
Report Relay

A single-endpoint relay that accepts game scan reports from untrusted
clients and forwards a sanitized webhook message to a notification sink.

Key Features:
- Abuse-resistant: global sliding-window limit plus a burst tracker
- Fail-closed: malformed input is rejected, never guessed at
- Bounded: one outbound attempt per report with a hard timeout
- Observable: structured JSON logging with hashed client identities

Run with:
    WEBHOOK_URL=https://discord.com/api/webhooks/... report-relay
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from . import __version__
from .api import relay_error_handler, router
from .config import Settings, get_settings, load_settings
from .exceptions import ConfigMissing, RelayError
from .middleware import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from .services import BurstTracker, SlidingWindowLimiter, WebhookForwarder


# =============================================================================
# Logging Configuration
# =============================================================================

def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with structlog.

    Sets up JSON-formatted logs on stdout, routed through the standard
    library so uvicorn's own loggers share the same handler.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level.upper(),
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Explicit configuration; read from the environment when omitted

    Returns:
        FastAPI: Configured application instance

    Raises:
        ConfigMissing: If no settings are given and WEBHOOK_URL is not set
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings.log_level)
    logger = structlog.get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Own the relay's shared state for the lifetime of the process.

        Creates the limiters, the sink client and the sweep task on
        startup; cancels the sweep and closes the client on shutdown.
        """
        global_limiter = SlidingWindowLimiter(
            max_requests=settings.global_rate_limit_max_requests,
            window_seconds=settings.global_rate_limit_window_seconds,
        )
        burst_tracker = BurstTracker(
            window_seconds=settings.burst_window_seconds,
            max_requests=settings.burst_max_requests,
            idle_ttl_seconds=settings.burst_idle_ttl_seconds,
            sweep_interval_seconds=settings.burst_sweep_interval_seconds,
            also_sweep=(global_limiter,),
        )

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.forward_timeout_seconds),
            headers={"User-Agent": f"{settings.service_name}/{__version__}"},
        ) as http_client:
            app.state.settings = settings
            app.state.global_limiter = global_limiter
            app.state.burst_tracker = burst_tracker
            app.state.forwarder = WebhookForwarder(
                client=http_client,
                url=settings.webhook_url,
                timeout=settings.forward_timeout_seconds,
            )
            await burst_tracker.start()

            logger.info(
                "startup_complete",
                service=settings.service_name,
                environment=settings.environment,
                port=settings.port,
            )
            try:
                yield
            finally:
                logger.info("shutdown_initiated", service=settings.service_name)
                await burst_tracker.stop()

    app = FastAPI(
        title="Report Relay",
        description="Abuse-resistant relay from game clients to a webhook sink.",
        version=__version__,
        lifespan=lifespan,
    )
    # Available before startup so early errors can still be rendered
    app.state.settings = settings

    # Middleware (last added = outermost); headers wrap the early 413 too
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.max_body_bytes)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(RelayError, relay_error_handler)
    app.include_router(router)

    logger.info(
        "application_created",
        service=settings.service_name,
        environment=settings.environment,
        max_body_bytes=settings.max_body_bytes,
    )

    return app


# =============================================================================
# Entrypoint
# =============================================================================

def run() -> None:
    """Start the relay, refusing to serve without a sink URL."""
    configure_logging()
    logger = structlog.get_logger(__name__)

    try:
        settings = load_settings()
    except ConfigMissing as e:
        logger.error("config_missing", error=str(e))
        sys.exit(1)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        server_header=False,
        # Identity comes from client_identity, not uvicorn's header rewrite
        proxy_headers=False,
    )


if __name__ == "__main__":
    run()
