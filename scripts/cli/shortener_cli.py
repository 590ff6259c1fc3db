#!/usr/bin/env python3
"""
Command-line interface for URL shortener service.

Operates on the database directly, with the same settings as the server
(DATABASE_URL, LINKS_TABLE, ...). The cache and rate limits used here are
local to the CLI process.

Usage:
    python shortener_cli.py shorten <url> [--client-ip IP]
    python shortener_cli.py resolve <short_code>
    python shortener_cli.py list
    python shortener_cli.py stats
    python shortener_cli.py cleanup
    python shortener_cli.py health
"""

import argparse
import asyncio
import json
import sys
import os

# Add parent directories to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from app import build_components
from config import load_config
from shortener.exceptions import LinkNotFoundError, RateLimitExceededError, ShortenerError
from shortener.expiry import format_remaining, format_timestamp
from shortener.common.logging_config import setup_logging


def emit(payload: dict, error: bool = False) -> int:
    print(json.dumps(payload, indent=2), file=sys.stderr if error else sys.stdout)
    return 1 if error else 0


class ShortenerCLI:
    """Command-line interface for URL shortener."""

    def __init__(self, database_url=None, verbose: bool = False):
        """Initialize CLI."""
        self.config = load_config()
        if database_url:
            self.config.database_url = database_url
        self.logger = setup_logging(level="DEBUG" if verbose else "WARNING")
        self.service = None
        self.cleanup_scheduler = None

    async def initialize(self, warm_cache: bool = False):
        """Connect to the database and build the service."""
        self.service, self.cleanup_scheduler = build_components(self.config, self.logger)
        await self.service.store.connect()
        if warm_cache:
            await self.service.warm_cache()

    async def close(self):
        """Cleanup resources."""
        if self.service:
            await self.service.close()

    async def shorten(self, url: str, client_ip: str):
        """Shorten a URL on behalf of `client_ip`."""
        try:
            result = await self.service.create_link(url, client_ip)
        except RateLimitExceededError as e:
            return emit({
                "success": False,
                "error": e.error_code,
                "subnet": e.subnet,
                "cooldown_remaining": format_remaining(e.retry_after),
            }, error=True)
        except ShortenerError as e:
            return emit({"success": False, "error": e.error_code, "message": str(e)}, error=True)

        link = result.link
        return emit({
            "success": True,
            "short_code": link.short_code,
            "original_url": link.original_url,
            "created_at": format_timestamp(link.created_at),
            "expires_at": format_timestamp(link.expires_at),
            "expires_in": format_remaining(link.expires_at - link.created_at),
            "subnet": link.creator_subnet,
        })

    async def resolve(self, short_code: str):
        """Get original URL for a short code."""
        try:
            original_url = await self.service.resolve(short_code)
        except LinkNotFoundError as e:
            return emit({"success": False, "error": e.error_code, "message": str(e)}, error=True)

        return emit({"success": True, "short_code": short_code, "original_url": original_url})

    async def list_links(self):
        """List active links."""
        active = self.service.list_active()
        return emit({
            "success": True,
            "count": len(active.items),
            "items": {
                code: {"original_url": entry.original_url, "expires_at": format_timestamp(entry.expires_at)}
                for code, entry in sorted(active.items.items())
            },
            "server_time": format_timestamp(active.server_time),
        })

    async def stats(self):
        return emit({"success": True, "statistics": await self.service.get_statistics()})

    async def cleanup(self):
        """Run one cleanup pass against the database."""
        report = await self.cleanup_scheduler.run_once()
        return emit({
            "success": report.ok,
            "deleted_links": report.deleted_links,
            "errors": report.errors,
        }, error=not report.ok)

    async def health(self):
        """Check database reachability."""
        healthy = await self.service.store.health_check()
        return emit({
            "success": healthy,
            "database": "healthy" if healthy else "unhealthy",
            "service": await self.service.health(),
        }, error=not healthy)


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="URL Shortener CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Shorten a URL
  %(prog)s shorten https://example.com/long/url

  # Look up a short code
  %(prog)s resolve aB3xY9

  # List active links
  %(prog)s list

  # Remove expired links
  %(prog)s cleanup
        """
    )

    parser.add_argument(
        "--database-url",
        default=None,
        help="PostgreSQL connection URL (default: from DATABASE_URL env)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    shorten_parser = subparsers.add_parser("shorten", help="Shorten a URL")
    shorten_parser.add_argument("url", help="URL to shorten")
    shorten_parser.add_argument("--client-ip", default="127.0.0.1", help="Address charged for the creation")

    resolve_parser = subparsers.add_parser("resolve", help="Get original URL")
    resolve_parser.add_argument("short_code", help="Short code to lookup")

    subparsers.add_parser("list", help="List active links")
    subparsers.add_parser("stats", help="Show statistics")
    subparsers.add_parser("cleanup", help="Delete expired links")
    subparsers.add_parser("health", help="Check database health")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    cli = ShortenerCLI(database_url=args.database_url, verbose=args.verbose)

    try:
        await cli.initialize(warm_cache=args.command in ("list", "stats"))

        if args.command == "shorten":
            return await cli.shorten(args.url, args.client_ip)
        elif args.command == "resolve":
            return await cli.resolve(args.short_code)
        elif args.command == "list":
            return await cli.list_links()
        elif args.command == "stats":
            return await cli.stats()
        elif args.command == "cleanup":
            return await cli.cleanup()
        elif args.command == "health":
            return await cli.health()
        else:
            parser.print_help()
            return 1
    except ShortenerError as e:
        return emit({"success": False, "error": e.error_code, "message": str(e)}, error=True)
    finally:
        await cli.close()


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
