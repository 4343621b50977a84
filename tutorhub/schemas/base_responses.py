"""
Base response models for consistent API responses.

List endpoints share one paginated envelope::

    {
        "data": [...],
        "links": {"prev": "...?page=1", "next": null},
        "meta": {"current_page": 2, "from": 16, "last_page": 2,
                 "per_page": 15, "to": 20, "total": 20}
    }
"""

from datetime import datetime, timezone
import math
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class PaginationLinks(BaseModel):
    prev: Optional[str] = None
    next: Optional[str] = None


class PaginationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int
    from_: Optional[int] = Field(None, alias="from", serialization_alias="from")
    last_page: int
    per_page: int
    to: Optional[int] = None
    total: int


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard paginated list envelope."""

    data: List[T]
    links: PaginationLinks
    meta: PaginationMeta


class SuccessResponse(BaseModel):
    """Standard response for operations that return no entity."""

    success: bool = Field(True, description="Indicates operation succeeded")
    message: str = Field(..., description="Human-readable success message")
    data: Optional[Dict[str, Any]] = Field(None, description="Optional additional data")


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="Health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def _page_url(base_path: str, query: Optional[Dict[str, Any]], page: int) -> str:
    params = {k: v for k, v in (query or {}).items() if v is not None and k != "page"}
    params["page"] = page
    return f"{base_path}?{urlencode(params)}"


def create_paginated_response(
    items: Sequence[Any],
    total: int,
    page: int,
    per_page: int,
    base_path: str = "",
    query: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the paginated envelope for an already-sliced page of items.

    Args:
        items: Serialized items on this page
        total: Total matching items
        page: 1-based page number
        per_page: Page size
        base_path: Path used to build prev/next links
        query: Filters to carry into prev/next links

    Returns:
        Dict ready to be returned from a route
    """
    last_page = max(1, math.ceil(total / per_page)) if per_page else 1
    first_index = (page - 1) * per_page + 1 if items else None
    last_index = first_index + len(items) - 1 if first_index is not None else None

    return {
        "data": list(items),
        "links": {
            "prev": _page_url(base_path, query, page - 1) if page > 1 else None,
            "next": _page_url(base_path, query, page + 1) if page < last_page else None,
        },
        "meta": {
            "current_page": page,
            "from": first_index,
            "last_page": last_page,
            "per_page": per_page,
            "to": last_index,
            "total": total,
        },
    }
