"""Browser-facing routes: homepage and short code redirects."""

from .routes import router as web_router

__all__ = ["web_router"]
