"""Data models used throughout Met Explorer.

``SearchRequest`` describes what the user asked for, ``SearchPage`` is one
page of object identifiers returned for it, ``ResultCard`` is the compact
summary shown in the results grid and ``HydrationResult`` is what a batch
of detail fetches produces.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from met_explorer.core.schemas import ObjectRecord

logger = logging.getLogger(__name__)


def string_or_fallback(value: Optional[str], fallback: str) -> str:
    """Return ``value`` stripped, or ``fallback`` when it is empty."""
    if not isinstance(value, str):
        return fallback
    trimmed = value.strip()
    return trimmed if trimmed else fallback


@dataclass
class SearchRequest:
    """Parameters of a collection search.

    Attributes
    ----------
    q: str
        Free-text query.
    has_images: bool
        Only objects that have images.
    title: bool
        Match ``q`` against titles only.
    department_id: Optional[int]
        Restrict to one department.
    """

    q: str
    has_images: bool = False
    title: bool = False
    department_id: Optional[int] = None
    is_highlight: bool = False
    tags: bool = False
    is_on_view: bool = False
    artist_or_culture: bool = False
    medium: Optional[str] = None
    geo_location: Optional[str] = None
    date_begin: Optional[int] = None
    date_end: Optional[int] = None

    def __post_init__(self) -> None:
        self.q = str(self.q or "").strip()
        if not self.q:
            raise ValueError("q cannot be empty")

    def to_params(self) -> Dict[str, str]:
        """Query parameters for the search endpoint (only set filters)."""
        params: Dict[str, str] = {"q": self.q}
        flags = {
            "hasImages": self.has_images,
            "title": self.title,
            "isHighlight": self.is_highlight,
            "tags": self.tags,
            "isOnView": self.is_on_view,
            "artistOrCulture": self.artist_or_culture,
        }
        for name, enabled in flags.items():
            if enabled:
                params[name] = "true"
        if self.department_id is not None:
            params["departmentId"] = str(self.department_id)
        if self.medium:
            params["medium"] = self.medium
        if self.geo_location:
            params["geoLocation"] = self.geo_location
        if self.date_begin is not None:
            params["dateBegin"] = str(self.date_begin)
        if self.date_end is not None:
            params["dateEnd"] = str(self.date_end)
        return params

    def to_dict(self) -> Dict[str, Any]:
        return {
            "q": self.q,
            "hasImages": self.has_images,
            "title": self.title,
            "departmentId": self.department_id,
        }


@dataclass(frozen=True)
class SearchPage:
    """One page of object identifiers for a search."""

    total: int
    page: int
    page_size: int
    total_pages: int
    object_ids: List[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.object_ids

    @classmethod
    def empty(cls, page_size: int) -> "SearchPage":
        return cls(total=0, page=1, page_size=page_size, total_pages=0, object_ids=[])

    @classmethod
    def paginate(cls, total: int, object_ids: List[int], page: int, page_size: int) -> "SearchPage":
        """Slice ``object_ids`` into the requested page, clamping to the last page."""
        if page < 1:
            raise ValueError("page must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if total == 0 or not object_ids:
            return cls.empty(page_size)

        total_pages = max(1, math.ceil(total / page_size))
        safe_page = min(page, total_pages)
        start = (safe_page - 1) * page_size
        return cls(
            total=total,
            page=safe_page,
            page_size=page_size,
            total_pages=total_pages,
            object_ids=list(object_ids[start : start + page_size]),
        )


@dataclass(frozen=True)
class ResultCard:
    """Summary of one object as shown in the results grid."""

    object_id: int
    title: str
    artist_display_name: str
    department: str
    primary_image_small: str = ""

    @classmethod
    def from_record(cls, record: ObjectRecord, fallback_id: Optional[int] = None) -> "ResultCard":
        """Build a card from a detail record, filling display fallbacks."""
        return cls(
            object_id=record.object_id if record.object_id is not None else fallback_id,
            title=string_or_fallback(record.title, "Untitled"),
            artist_display_name=string_or_fallback(record.artist_display_name, "Unknown artist"),
            department=string_or_fallback(record.department, ""),
            primary_image_small=string_or_fallback(record.primary_image_small, ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "objectID": self.object_id,
            "title": self.title,
            "artistDisplayName": self.artist_display_name,
            "department": self.department,
            "primaryImageSmall": self.primary_image_small,
        }


@dataclass(frozen=True)
class StatusMessage:
    """A status line for the user; ``is_error`` styles it as a failure."""

    message: str
    is_error: bool = False


@dataclass
class HydrationResult:
    """Cards for the identifiers that hydrated successfully, in input order."""

    cards: List[ResultCard] = field(default_factory=list)
    failed_count: int = 0

    @property
    def requested(self) -> int:
        return len(self.cards) + self.failed_count

    @property
    def is_complete(self) -> bool:
        """All requested items hydrated."""
        return self.failed_count == 0

    @property
    def is_partial(self) -> bool:
        """Some items failed but at least one succeeded."""
        return self.failed_count > 0 and len(self.cards) > 0

    @property
    def is_failed(self) -> bool:
        """Every requested item failed."""
        return self.failed_count > 0 and len(self.cards) == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cards": [card.to_dict() for card in self.cards],
            "failedCount": self.failed_count,
        }
