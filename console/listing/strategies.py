"""
Pagination strategies for list controllers.

The records API exposes two pagination contracts:

- ServerPaged: `GET .../page?page=&size=&sortBy=&sortDir=` answers
  `{content, totalPages, pageIndex|number}`; the server cuts the window.
- ClientSlicedFromFullMatch: the flat keyword search answers the whole
  match list; the client cuts `content[page*size:(page+1)*size]` and derives
  `totalPages = ceil(matches / size)`.

The two differ in truncation semantics under concurrent edits, so they stay
separate, selected by query shape via `select_strategy`. Filtered listings
are always server paged through the resource's filter routes; a keyword
takes precedence over filters.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Protocol

from console.transport.errors import ApiError, PageOutOfRange

from .models import ListQuery, Page
from .resources import Resource, ResourceClient


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def page_from_server(data: Any, query: ListQuery) -> Page[Any]:
    """Build a Page from a server-paginated payload."""
    if not isinstance(data, dict):
        raise ApiError("unexpected page response", code="page_payload_invalid")
    content = data.get("content")
    rows: List[Any] = content if isinstance(content, list) else []
    total_pages = max(0, _as_int(data.get("totalPages"), 0))
    page_index = _as_int(data.get("pageIndex", data.get("number")), query.page_index)
    if total_pages == 0:
        if query.page_index > 0:
            raise PageOutOfRange(0, requested=query.page_index)
        return Page(content=tuple(rows), total_pages=0, page_index=0)
    if page_index >= total_pages or page_index < 0:
        raise PageOutOfRange(total_pages, requested=query.page_index)
    return Page(content=tuple(rows), total_pages=total_pages, page_index=page_index)


def slice_matches(matches: List[Any], query: ListQuery) -> Page[Any]:
    """Cut the requested window out of a full match list."""
    total_pages = math.ceil(len(matches) / query.page_size)
    if total_pages == 0:
        if query.page_index > 0:
            raise PageOutOfRange(0, requested=query.page_index)
        return Page(content=(), total_pages=0, page_index=0)
    if query.page_index >= total_pages:
        raise PageOutOfRange(total_pages, requested=query.page_index)
    start = query.page_index * query.page_size
    return Page(
        content=tuple(matches[start:start + query.page_size]),
        total_pages=total_pages,
        page_index=query.page_index,
    )


class PaginationStrategy(Protocol):
    kind: str

    async def fetch(self, client: ResourceClient, query: ListQuery) -> Page[Any]:
        ...


@dataclass(frozen=True)
class ServerPaged:
    kind: str = "server_paged"

    async def fetch(self, client: ResourceClient, query: ListQuery) -> Page[Any]:
        data = await client.page(query)
        return page_from_server(data, query)


@dataclass(frozen=True)
class ClientSlicedFromFullMatch:
    kind: str = "client_sliced"

    async def fetch(self, client: ResourceClient, query: ListQuery) -> Page[Any]:
        # The full match list is fetched on every page turn (no reuse across turns)
        matches = await client.search(query.keyword or "")
        return slice_matches(matches, query)


SERVER_PAGED = ServerPaged()
CLIENT_SLICED = ClientSlicedFromFullMatch()


def select_strategy(resource: Resource, query: ListQuery) -> PaginationStrategy:
    """Pick the pagination contract for `query` against `resource`."""
    if not query.keyword:
        if query.filters and resource.filter_route(query.filter_map) is None:
            raise ValueError(f"{resource.name} cannot filter by {sorted(query.filter_map)}")
        return SERVER_PAGED
    if resource.search_path:
        return CLIENT_SLICED
    if resource.paged_search_path:
        return SERVER_PAGED
    raise ValueError(f"{resource.name} does not support keyword search")
