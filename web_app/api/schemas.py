"""Pydantic schemas for API requests and responses."""

from pydantic import BaseModel, Field
from typing import Dict, Optional, Union


class ShortenRequest(BaseModel):
    """Request to shorten a URL."""

    url: str = Field(..., description="The http(s) URL to shorten")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"url": "https://example.com/very/long/path/to/resource"},
            ]
        }
    }


class ClientInfo(BaseModel):
    ip: str
    subnet: str


class QuotaInfo(BaseModel):
    """Creation quota left for the caller's subnet."""

    remaining: int
    limit: int
    reset_in: str
    current_subnet: str


class ShortenResponse(BaseModel):
    """Response after shortening a URL."""

    success: bool = True
    short_url: str = Field(..., description="The complete short URL")
    original_url: str = Field(..., description="The original long URL")
    short_code: str = Field(..., description="The generated short code")
    created_at: str = Field(..., description="Creation timestamp (RFC 3339)")
    expires_at: str = Field(..., description="Expiry timestamp (RFC 3339)")
    expires_in: str = Field(..., description="Time left before expiry")
    client_info: ClientInfo
    rate_limit: QuotaInfo

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": True,
                    "short_url": "https://short.link/aB3xY9",
                    "original_url": "https://example.com/very/long/path",
                    "short_code": "aB3xY9",
                    "created_at": "2026-01-01T12:00:00Z",
                    "expires_at": "2027-01-01T12:00:00Z",
                    "expires_in": "365 days 0 hours",
                    "client_info": {"ip": "203.0.113.7", "subnet": "203.0.113.0/24"},
                    "rate_limit": {
                        "remaining": 9,
                        "limit": 10,
                        "reset_in": "23 hours 59 minutes",
                        "current_subnet": "203.0.113.0/24",
                    },
                }
            ]
        }
    }


class RateLimitErrorResponse(BaseModel):
    """Response when the caller's subnet is over quota."""

    success: bool = False
    error: str = "rate_limit_exceeded"
    message: str
    limit: int
    subnet: str
    client_ip: str
    cooldown_until: Optional[str] = None
    cooldown_remaining: str


class ErrorResponse(BaseModel):
    """Error response."""

    success: bool = False
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")


class ListedLink(BaseModel):
    original_url: str = Field(..., alias="OriginalURL")
    expires_at: str = Field(..., alias="ExpiresAt")

    model_config = {"populate_by_name": True}


class ListResponse(BaseModel):
    """Unexpired links held in the local cache."""

    count: int
    items: Dict[str, ListedLink]
    server_time: str


class CacheStatistics(BaseModel):
    total: int
    active: int
    expired: int


class RateLimitStatistics(BaseModel):
    max_per_subnet: int
    cooldown_hours: Union[int, float]
    total_tracked_subnets: int
    subnets_in_cooldown: int
    limit_based_on: str


class StatisticsResponse(BaseModel):
    """Statistics response.

    Database figures are absent when the store could not be queried.
    """

    server_time: str
    cache: CacheStatistics
    rate_limit: RateLimitStatistics
    database_total: Optional[int] = None
    database_active: Optional[int] = None
    unique_creator_subnets: Optional[int] = None
    cleanup_schedule: Optional[str] = None
    next_cleanup: Optional[str] = None
    last_cleanup: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall status")
    cache_len: int
    rate_limit_subnets: int
    rate_limit_strategy: str
    max_per_subnet: int
    cooldown_hours: Union[int, float]
    expiry_days: int
    server_time: str
