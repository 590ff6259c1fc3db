"""Web interface routes implementation."""

import os
from fastapi import APIRouter, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from shortener.exceptions import LinkNotFoundError
from shortener.shortcode import ShortCodeGenerator
from ..api.schemas import HealthResponse

router = APIRouter()

# The static frontend, when deployed alongside the service
template_dir = os.path.join(os.path.dirname(__file__), "..", "..", "ux", "web")


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def homepage(request: Request):
    """Serve the homepage, or a placeholder when no frontend is deployed."""
    html_file = os.path.join(template_dir, "index.html")

    if os.path.exists(html_file):
        with open(html_file, "r", encoding="utf-8") as f:
            return HTMLResponse(content=f.read())

    return HTMLResponse(
        content=(
            "<h1>URL Shortener</h1>"
            "<p>POST a JSON body <code>{\"url\": \"https://...\"}</code> to /api/shorten.</p>"
        ),
        status_code=200,
    )


@router.get("/health", response_model=HealthResponse, include_in_schema=False)
async def health_check_web(request: Request):
    """Health check endpoint (same payload as /api/health)."""
    service = request.app.state.service

    health = await service.health()

    return HealthResponse(**health)


@router.get("/{short_code}", include_in_schema=False)
async def redirect_to_url(request: Request, short_code: str):
    """Redirect to the original URL.

    Paths that are not in the short code format are never looked up.
    """
    service = request.app.state.service
    config = request.app.state.config

    if not ShortCodeGenerator.is_valid_code(short_code, length=config.short_code_length):
        raise LinkNotFoundError(short_code)

    original_url = await service.resolve(short_code)

    # Perform 302 redirect (temporary; expiry can still change the outcome)
    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)
