"""Exceptions raised by the URL shortener core."""

from datetime import datetime, timedelta
from typing import Optional


class ShortenerError(Exception):
    """Base exception for all shortener errors."""

    error_code = "shortener_error"


class ValidationError(ShortenerError):
    """Raised when a request carries an invalid URL or short code."""

    error_code = "invalid_request"


class LinkNotFoundError(ShortenerError):
    """Raised when a short code is unknown or has expired."""

    error_code = "not_found"

    def __init__(self, short_code: str):
        super().__init__(f"Short code '{short_code}' not found")
        self.short_code = short_code


class RateLimitExceededError(ShortenerError):
    """Raised when a subnet has used up its creation quota."""

    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        subnet: str,
        client_ip: str,
        limit: int,
        retry_after: timedelta,
        cooldown_until: Optional[datetime] = None,
    ):
        super().__init__(f"Subnet {subnet} has reached its limit of {limit} short links")
        self.subnet = subnet
        self.client_ip = client_ip
        self.limit = limit
        self.retry_after = retry_after
        self.cooldown_until = cooldown_until


class StoreError(ShortenerError):
    """Raised when the persistent store fails or times out.

    The message may contain driver details and must not be sent to clients.
    """

    error_code = "internal_error"


class ShortCodeConflictError(StoreError):
    """Raised by the store when inserting a short code that already exists."""

    error_code = "short_code_conflict"


class ShortCodeGenerationError(ShortenerError):
    """Raised when no acceptable short code could be produced."""

    error_code = "internal_error"
