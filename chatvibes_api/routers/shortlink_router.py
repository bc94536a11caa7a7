"""Short-link creation and public redirect"""

import logging
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse, RedirectResponse

from chatvibes_api.core.context import AppContext
from chatvibes_api.core.dependencies import get_context, get_current_user
from chatvibes_api.core.errors import InvalidShortLinkError
from chatvibes_api.models.api import CamelModel
from chatvibes_api.services import SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shortlinks"])


# ============================================
# Request/Response Models
# ============================================


class ShortLinkRequest(CamelModel):
    url: str | None = None


class ShortLinkResponse(CamelModel):
    success: bool = True
    slug: str
    short_url: str
    absolute_url: str


# ============================================
# Endpoints
# ============================================


@router.post("/api/shortlink", response_model=ShortLinkResponse)
async def create_short_link(
    body: ShortLinkRequest | None = None,
    user: SessionUser = Depends(get_current_user),
    context: AppContext = Depends(get_context),
) -> ShortLinkResponse:
    try:
        slug = await context.shortlink_service.create(body.url if body else None)
    except InvalidShortLinkError as e:
        raise HTTPException(status_code=400, detail={"error": str(e)}) from e

    short_url = f"/s/{slug}"
    parts = urlsplit(context.settings.frontend_url)
    origin = f"{parts.scheme}://{parts.netloc}" if parts.netloc else ""
    logger.info(f"{user.user_login} created short link {slug}")
    return ShortLinkResponse(slug=slug, short_url=short_url, absolute_url=f"{origin}{short_url}")


@router.get("/s/{slug}", include_in_schema=False)
async def follow_short_link(slug: str, context: AppContext = Depends(get_context)):
    link = await context.shortlink_service.resolve(slug)
    if link is None:
        return PlainTextResponse("Short link not found", status_code=404)
    return RedirectResponse(link.url, status_code=301)
