"""
Report Relay - Route Handlers

Handles the /report ingestion endpoint and the /health probe.
"""

import hashlib

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from .. import __version__
from ..exceptions import InternalError, InvalidBody, RateLimited, RelayError
from ..models import HealthResponse, ReportResponse
from ..services import build_message, validate_report


logger = structlog.get_logger(__name__)
router = APIRouter()


def client_identity(request: Request, trust_proxy: bool = False, proxy_hops: int = 1) -> str:
    """
    Resolve the caller's network identity.

    Behind trusted proxies, each proxy appends the address it saw to
    X-Forwarded-For, so only the rightmost ``proxy_hops`` entries are
    trustworthy and the caller is the entry ``proxy_hops`` from the right.
    Anything further left is client-supplied and ignored.
    """
    peer = request.client.host if request.client else "unknown"
    if not trust_proxy:
        return peer

    hops = [
        hop.strip()
        for header in request.headers.getlist("x-forwarded-for")
        for hop in header.split(",")
    ]
    if len(hops) < proxy_hops or not hops[-proxy_hops]:
        return peer
    return hops[-proxy_hops]


def _request_identity(request: Request) -> str:
    settings = request.app.state.settings
    return client_identity(request, settings.trust_proxy, settings.trusted_proxy_hops)


def hash_identity(identity: str) -> str:
    """Short SHA-256 digest of an identity, safe to put in logs."""
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16]


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request) -> HealthResponse:
    """Health check for load balancers."""
    state = request.app.state
    return HealthResponse(
        service=state.settings.service_name,
        version=__version__,
        tracked_clients=len(state.burst_tracker.store),
    )


@router.post(
    "/report",
    response_model=ReportResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    tags=["Ingestion"],
)
async def report(request: Request) -> JSONResponse:
    """
    Relay a scan report to the webhook sink.

    Stages run in order and any of them may end the request:
    global limit, burst limit, body validation and sanitization,
    message build, forward.
    """
    state = request.app.state
    identity = _request_identity(request)
    client_hash = hash_identity(identity)

    try:
        limit = await state.global_limiter.is_allowed(identity)
        request.state.rate_limit = limit
        if not limit.allowed:
            raise RateLimited("global", retry_after=limit.retry_after)

        if not state.burst_tracker.hit(identity):
            raise RateLimited("burst")

        body = await _read_json(request)
        validated = validate_report(body)
        message = build_message(validated)

        await state.forwarder.forward(message, client_hash=client_hash)
    except RelayError:
        raise
    except Exception as e:
        logger.exception(
            "report_failed",
            client=client_hash,
            error_type=type(e).__name__,
        )
        raise InternalError() from e

    logger.info(
        "report_forwarded",
        client=client_hash,
        brainrots=len(validated.brainrots),
    )
    return JSONResponse(
        content=ReportResponse(ok=True).model_dump(exclude_none=True),
        headers=limit.headers(),
    )


async def _read_json(request: Request):
    """Decode the request body as JSON."""
    try:
        return await request.json()
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        logger.info("invalid_json_body", error=str(e))
        raise InvalidBody("Request body must be valid JSON") from e


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Render a RelayError as the relay's JSON error body."""
    client = hash_identity(_request_identity(request))

    if isinstance(exc, RateLimited):
        logger.warning("report_rate_limited", client=client, layer=exc.layer)
    elif exc.status_code < 500:
        logger.info("report_rejected", client=client, msg=exc.msg, detail=exc.detail)

    headers = {}
    limit = getattr(request.state, "rate_limit", None)
    if limit is not None:
        headers.update(limit.headers())

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body(),
        headers=headers,
    )
