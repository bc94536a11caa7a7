"""Short links: random slug -> absolute URL, with a best-effort click counter."""

import logging
import secrets
from urllib.parse import urlparse

from google.api_core import exceptions as gcp_exceptions

from chatvibes_api.core.errors import InvalidShortLinkError
from chatvibes_api.models.shortlink import ShortLink
from chatvibes_api.repositories import ShortLinkRepository

logger = logging.getLogger(__name__)

SLUG_BYTES = 6


def validate_target_url(url: object) -> str:
    if not isinstance(url, str) or not url.strip():
        raise InvalidShortLinkError("URL is required")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidShortLinkError("Invalid URL")
    return url


class ShortLinkService:
    def __init__(self, repository: ShortLinkRepository):
        self.repository = repository

    async def create(self, url: object) -> str:
        """Store *url* under a new 12-hex-char slug. Validates before writing."""
        target = validate_target_url(url)
        slug = secrets.token_hex(SLUG_BYTES)
        await self.repository.create(slug, target)
        logger.info(f"Short link {slug} created")
        return slug

    async def resolve(self, slug: str) -> ShortLink | None:
        """Look up *slug* and count the click.

        The counter is a plain read-then-write, so concurrent redirects can
        lose increments. A failed counter write does not block the redirect.
        """
        link = await self.repository.get(slug)
        if link is None:
            return None
        try:
            await self.repository.record_click(link)
        except gcp_exceptions.GoogleAPICallError as e:
            logger.warning(f"Failed to update click counter for {slug}: {e}")
        return link
