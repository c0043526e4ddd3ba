"""
Value types of the listing context.

`ListQuery` is immutable; a new query supersedes the previous one. `Page`
enforces the paging invariant at construction time so an out-of-range page
can never be rendered silently.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Generic, Mapping, Optional, Sequence, Tuple, TypeVar

from console.transport.errors import ConsoleError

T = TypeVar("T")


def _normalize_filters(filters: Any) -> Tuple[Tuple[str, str], ...]:
    items = filters.items() if isinstance(filters, Mapping) else filters
    cleaned = {}
    for name, value in items:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            cleaned[str(name)] = text
    return tuple(sorted(cleaned.items()))


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


@dataclass(frozen=True)
class ListQuery:
    page_index: int = 0
    page_size: int = 10
    sort_field: str = "id"
    sort_direction: SortDirection = SortDirection.ASC
    keyword: Optional[str] = None
    # (name, value) pairs sorted by name; a Mapping is accepted and normalized
    filters: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.page_index < 0:
            raise ValueError("page_index must be >= 0")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if not isinstance(self.sort_direction, SortDirection):
            object.__setattr__(self, "sort_direction", SortDirection(str(self.sort_direction).lower()))
        kw = self.keyword.strip() if isinstance(self.keyword, str) else None
        object.__setattr__(self, "keyword", kw or None)
        object.__setattr__(self, "filters", _normalize_filters(self.filters))

    @property
    def filter_map(self) -> Dict[str, str]:
        return dict(self.filters)

    def with_page(self, page_index: int) -> "ListQuery":
        return replace(self, page_index=max(0, page_index))

    def with_sort(self, field_name: str, direction: SortDirection) -> "ListQuery":
        return replace(self, sort_field=field_name, sort_direction=direction)

    def with_keyword(self, keyword: Optional[str]) -> "ListQuery":
        return replace(self, keyword=keyword, page_index=0)

    def with_page_size(self, page_size: int) -> "ListQuery":
        return replace(self, page_size=page_size, page_index=0)

    def with_filter(self, name: str, value: Any) -> "ListQuery":
        """Set (or, with None/blank, remove) one filter; resets to page 0."""
        current = self.filter_map
        current[name] = value
        return replace(self, filters=_normalize_filters(current), page_index=0)

    def with_filters(self, filters: Optional[Mapping[str, Any]]) -> "ListQuery":
        return replace(self, filters=_normalize_filters(filters or {}), page_index=0)


@dataclass(frozen=True)
class Page(Generic[T]):
    content: Tuple[T, ...] = ()
    total_pages: int = 0
    page_index: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", tuple(self.content))
        if self.total_pages < 0 or self.page_index < 0:
            raise ValueError("total_pages and page_index must be >= 0")
        if self.total_pages > 0 and self.page_index >= self.total_pages:
            raise ValueError("page_index must be < total_pages")
        if self.total_pages == 0 and self.page_index != 0:
            raise ValueError("empty result must be page 0")

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    @property
    def has_next(self) -> bool:
        return self.page_index + 1 < self.total_pages

    @classmethod
    def empty(cls) -> "Page[T]":
        return cls()


def clamp_page_index(requested: int, total_pages: int) -> int:
    """Return the nearest existing page index (0 for an empty result)."""
    if total_pages <= 0:
        return 0
    return max(0, min(requested, total_pages - 1))


@dataclass(frozen=True)
class ListState(Generic[T]):
    """Observable state of one list controller."""

    query: ListQuery
    page: Page[T] = field(default_factory=Page)
    loading: bool = False
    error: Optional[ConsoleError] = None

    @property
    def rows(self) -> Sequence[T]:
        return self.page.content
