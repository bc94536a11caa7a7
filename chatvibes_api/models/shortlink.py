"""Data model for the shortlinks collection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from chatvibes_api.models.channel import as_datetime


@dataclass
class ShortLink:
    slug: str
    url: str
    clicks: int = 0
    created_at: datetime | None = None
    last_clicked_at: datetime | None = None

    @classmethod
    def from_dict(cls, slug: str, data: dict[str, Any]) -> ShortLink:
        return cls(
            slug=slug,
            url=data.get("url", ""),
            clicks=int(data.get("clicks") or 0),
            created_at=as_datetime(data.get("createdAt")),
            last_clicked_at=as_datetime(data.get("lastClickedAt")),
        )
