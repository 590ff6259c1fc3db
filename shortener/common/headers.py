"""Header parsing utilities for URL shortener."""

from typing import Dict, Optional


def extract_forwarded_headers(headers: Dict[str, str]) -> Dict[str, Optional[str]]:
    """Extract X-Forwarded-* and X-Real-IP headers from request.

    Args:
        headers: Request headers dictionary

    Returns:
        Dictionary with forwarded_proto, forwarded_host, forwarded_for, real_ip
    """
    # Convert headers to lowercase for case-insensitive lookup
    headers_lower = {k.lower(): v for k, v in headers.items()}

    return {
        "forwarded_proto": headers_lower.get("x-forwarded-proto"),
        "forwarded_host": headers_lower.get("x-forwarded-host"),
        "forwarded_for": headers_lower.get("x-forwarded-for"),
        "real_ip": headers_lower.get("x-real-ip"),
    }


def get_client_ip(headers: Dict[str, str], peer_host: Optional[str] = None) -> str:
    """Determine the originating client address.

    Priority:
    1. First entry of X-Forwarded-For
    2. X-Real-IP
    3. Socket peer address

    Args:
        headers: Request headers
        peer_host: Address of the directly connected peer

    Returns:
        Client address, or "unknown" if none is available
    """
    forwarded = extract_forwarded_headers(headers)

    if forwarded["forwarded_for"]:
        first = forwarded["forwarded_for"].split(",")[0].strip()
        if first:
            return first

    if forwarded["real_ip"] and forwarded["real_ip"].strip():
        return forwarded["real_ip"].strip()

    return peer_host or "unknown"


def build_base_url(
    headers: Dict[str, str],
    fallback_base_url: str,
    request_scheme: Optional[str] = None,
    request_host: Optional[str] = None,
) -> str:
    """Build base URL from headers or fallback.

    Priority:
    1. X-Forwarded-Proto + X-Forwarded-Host
    2. Request scheme + host
    3. Fallback base URL from config

    Args:
        headers: Request headers
        fallback_base_url: Fallback base URL from configuration
        request_scheme: Request scheme (http/https)
        request_host: Request host

    Returns:
        Base URL (e.g., https://example.com)
    """
    forwarded = extract_forwarded_headers(headers)

    # Try X-Forwarded headers first (from proxy)
    if forwarded["forwarded_proto"] and forwarded["forwarded_host"]:
        proto = forwarded["forwarded_proto"]
        host = forwarded["forwarded_host"]
        return f"{proto}://{host}"

    # Try request scheme and host
    if request_scheme and request_host:
        return f"{request_scheme}://{request_host}"

    # Fall back to configured base URL
    return fallback_base_url.rstrip("/")


def build_short_url(short_code: str, base_url: str) -> str:
    """Join a resolved base URL and a short code."""
    return f"{base_url.rstrip('/')}/{short_code}"
