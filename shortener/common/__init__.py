"""Common utilities for URL shortener."""

from .validators import is_valid_url
from .headers import extract_forwarded_headers, get_client_ip, build_base_url, build_short_url
from .logging_config import setup_logging

__all__ = [
    "is_valid_url",
    "extract_forwarded_headers",
    "get_client_ip",
    "build_base_url",
    "build_short_url",
    "setup_logging",
]
