"""
List controller: one paginated, sortable, searchable table.

Every load takes a new sequence number; a response is applied only when its
sequence number is still the latest, so rapid page/sort/search changes can
never display an older answer over a newer one.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

import structlog

from console.config import ConsoleSettings
from console.signals import Signal
from console.transport.errors import ConsoleError, PageOutOfRange

from .models import ListQuery, ListState, Page, SortDirection, clamp_page_index
from .references import ReferenceResolver
from .resources import ResourceClient
from .strategies import select_strategy

logger = structlog.get_logger(__name__)


class ListController:
    def __init__(
        self,
        client: ResourceClient,
        settings: ConsoleSettings,
        *,
        references: Optional[Mapping[str, ReferenceResolver]] = None,
        query: Optional[ListQuery] = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._references: Dict[str, ReferenceResolver] = dict(references or {})
        initial = query or ListQuery(
            page_size=settings.default_page_size,
            sort_field=client.resource.default_sort,
            sort_direction=client.resource.default_direction,
        )
        self._state: ListState[Any] = ListState(query=initial)
        self._seq = 0
        self.changed = Signal("list_changed")

    @property
    def state(self) -> ListState[Any]:
        return self._state

    @property
    def query(self) -> ListQuery:
        return self._state.query

    @property
    def seq(self) -> int:
        return self._seq

    @property
    def references(self) -> Mapping[str, ReferenceResolver]:
        return self._references

    async def load(self, query: Optional[ListQuery] = None) -> Optional[Page[Any]]:
        """Fetch `query` (default: the current one) and apply it if still latest.

        Returns the applied page, or None when the response was stale or the
        call failed (the error is then in `state.error`).
        """
        query = query or self._state.query
        strategy = select_strategy(self._client.resource, query)
        self._seq += 1
        seq = self._seq
        self._set(replace(self._state, query=query, loading=True))
        try:
            page = await strategy.fetch(self._client, query)
        except PageOutOfRange as exc:
            if seq != self._seq:
                return self._discard(seq)
            clamped = clamp_page_index(query.page_index, exc.total_pages)
            if clamped == query.page_index:
                self._set(replace(self._state, loading=False, error=exc))
                return None
            logger.info(
                "list_page_clamped",
                resource=self._client.resource.name,
                requested=query.page_index,
                page_index=clamped,
            )
            return await self.load(query.with_page(clamped))
        except ConsoleError as exc:
            if seq != self._seq:
                return self._discard(seq)
            logger.warning(
                "list_load_failed",
                resource=self._client.resource.name,
                error=exc.code,
                status=exc.status,
            )
            self._set(replace(self._state, loading=False, error=exc))
            return None
        if seq != self._seq:
            return self._discard(seq)
        self._set(ListState(query=query, page=page, loading=False, error=None))
        self._resolve_references(page)
        return page

    async def reload(self) -> Optional[Page[Any]]:
        return await self.load(self._state.query)

    async def goto_page(self, page_index: int) -> Optional[Page[Any]]:
        return await self.load(self._state.query.with_page(page_index))

    async def set_sort(self, field_name: str) -> Optional[Page[Any]]:
        """Sort by `field_name`; choosing the current field toggles direction."""
        current = self._state.query
        if field_name == current.sort_field:
            direction = current.sort_direction.toggled()
        else:
            direction = SortDirection.ASC
        return await self.load(current.with_sort(field_name, direction))

    async def search(self, keyword: Optional[str]) -> Optional[Page[Any]]:
        if not keyword or not keyword.strip():
            return await self.clear_search()
        if not self._client.resource.searchable:
            raise ValueError(f"{self._client.resource.name} does not support keyword search")
        return await self.load(self._state.query.with_keyword(keyword))

    async def clear_search(self) -> Optional[Page[Any]]:
        return await self.load(self._state.query.with_keyword(None))

    async def set_filter(self, name: str, value: Any) -> Optional[Page[Any]]:
        """Set one filter (None or blank clears it) and reload from page 0."""
        query = self._state.query.with_filter(name, value)
        if query.filters and self._client.resource.filter_route(query.filter_map) is None:
            raise ValueError(f"{self._client.resource.name} cannot filter by {sorted(query.filter_map)}")
        return await self.load(query)

    async def clear_filters(self) -> Optional[Page[Any]]:
        return await self.load(self._state.query.with_filters(None))

    async def set_page_size(self, page_size: int) -> Optional[Page[Any]]:
        if page_size not in self._settings.page_size_options:
            raise ValueError(f"page size must be one of {self._settings.page_size_options}")
        return await self.load(self._state.query.with_page_size(page_size))

    async def delete(self, item_id: int | str) -> Optional[Page[Any]]:
        """Delete one row, then reload (clamping if the page disappeared)."""
        await self._client.delete(item_id)
        return await self.reload()

    def display(self, row: Mapping[str, Any], field_name: str) -> str:
        """Cell text: resolved reference name, else the raw value, else "-"."""
        value = row.get(field_name)
        resolver = self._references.get(field_name)
        if resolver is not None:
            return resolver.display(value)
        if value is None or value == "":
            return "-"
        return str(value)

    def close(self) -> None:
        """Unmount: discard pending responses, clear `loading`, reset reference caches."""
        self._seq += 1
        if self._state.loading:
            self._set(replace(self._state, loading=False))
        for resolver in self._references.values():
            resolver.clear()

    def _discard(self, seq: int) -> None:
        logger.debug(
            "list_response_stale",
            resource=self._client.resource.name,
            seq=seq,
            latest=self._seq,
        )
        return None

    def _resolve_references(self, page: Page[Any]) -> None:
        for field_name, resolver in self._references.items():
            resolver.resolve(row.get(field_name) for row in page.content if isinstance(row, Mapping))

    def _set(self, state: ListState[Any]) -> None:
        self._state = state
        self.changed.emit(state)
