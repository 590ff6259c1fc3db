"""Core business logic for URL shortener."""

from .shortcode import ShortCodeGenerator
from .rate_limit import SubnetRateLimiter, classify_subnet
from .cleanup import CleanupScheduler
from .service import ShortLinkService

__all__ = [
    "ShortCodeGenerator",
    "SubnetRateLimiter",
    "classify_subnet",
    "CleanupScheduler",
    "ShortLinkService",
]
