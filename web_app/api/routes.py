"""API routes implementation."""

from fastapi import APIRouter, Request

from .schemas import (
    ShortenRequest,
    ShortenResponse,
    ClientInfo,
    QuotaInfo,
    ListedLink,
    ListResponse,
    HealthResponse,
    ErrorResponse,
    RateLimitErrorResponse,
    StatisticsResponse,
)
from shortener.common.headers import build_base_url, build_short_url
from shortener.expiry import format_remaining, format_timestamp

router = APIRouter()


@router.post(
    "/shorten",
    response_model=ShortenResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        429: {"model": RateLimitErrorResponse, "description": "Subnet rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    summary="Create short URL",
    description="Create a shortened URL. Creation is limited per client subnet.",
)
async def shorten_url(request: Request, body: ShortenRequest):
    """Create a shortened URL."""
    service = request.app.state.service
    config = request.app.state.config
    client_ip = request.state.client_ip

    result = await service.create_link(original_url=body.url, client_ip=client_ip)
    link = result.link

    # Build complete short URL
    base_url = build_base_url(
        headers=dict(request.headers),
        fallback_base_url=config.base_url,
        request_scheme=request.url.scheme,
        request_host=request.headers.get("host"),
    )

    return ShortenResponse(
        short_url=build_short_url(short_code=link.short_code, base_url=base_url),
        original_url=link.original_url,
        short_code=link.short_code,
        created_at=format_timestamp(link.created_at),
        expires_at=format_timestamp(link.expires_at),
        expires_in=format_remaining(link.expires_at - link.created_at),
        client_info=ClientInfo(ip=client_ip, subnet=link.creator_subnet),
        rate_limit=QuotaInfo(
            remaining=result.quota.remaining,
            limit=result.quota.limit,
            reset_in=format_remaining(result.quota.reset_in),
            current_subnet=result.quota.subnet,
        ),
    )


@router.get(
    "/list",
    response_model=ListResponse,
    summary="List active links",
    description="List unexpired links currently held in the local cache.",
)
async def list_links(request: Request):
    """List active cached links."""
    service = request.app.state.service

    active = service.list_active()

    return ListResponse(
        count=len(active.items),
        items={
            code: ListedLink(
                original_url=entry.original_url,
                expires_at=format_timestamp(entry.expires_at),
            )
            for code, entry in active.items.items()
        },
        server_time=format_timestamp(active.server_time),
    )


@router.get(
    "/stats",
    response_model=StatisticsResponse,
    response_model_exclude_none=True,
    summary="Get statistics",
    description="Cache, rate limit, database and cleanup statistics.",
)
async def get_statistics(request: Request):
    """Get service statistics."""
    service = request.app.state.service

    stats = await service.get_statistics()

    return StatisticsResponse(**stats)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Liveness snapshot of in-process state.",
)
async def health_check(request: Request):
    """Health check endpoint for load balancers and monitoring."""
    service = request.app.state.service

    health = await service.health()

    return HealthResponse(**health)
