"""
Reference resolver: foreign-key id -> display name.

List rows carry foreign keys (e.g. a score's `studentId`); tables show the
referenced entity's name instead. The resolver keeps a per-screen cache and
looks each missing id up exactly once, even when several pages ask for the
same id while the first lookup is still running.

Lookups are independent tasks: one failing id never blocks the others.
Failures are logged and leave the id unresolved; callers fall back to the
raw id.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Set

import structlog

logger = structlog.get_logger(__name__)

Lookup = Callable[[int], Awaitable[Optional[str]]]


def _coerce_id(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


class ReferenceResolver:
    def __init__(self, lookup: Lookup, *, name: str = "reference") -> None:
        self._lookup = lookup
        self.name = name
        self._cache: Dict[int, str] = {}
        self._in_flight: Dict[int, asyncio.Task] = {}

    def get(self, ref_id: Any) -> Optional[str]:
        key = _coerce_id(ref_id)
        if key is None:
            return None
        return self._cache.get(key)

    def display(self, ref_id: Any) -> str:
        """Resolved name, or the raw id, or "-" when there is no id."""
        key = _coerce_id(ref_id)
        if key is None:
            return "-" if ref_id is None or ref_id == "" else str(ref_id)
        return self._cache.get(key, str(key))

    @property
    def pending(self) -> Set[int]:
        return set(self._in_flight)

    def resolve(self, ids: Iterable[Any]) -> None:
        """Schedule lookups for ids that are neither cached nor in flight.

        Must be called from within a running event loop.
        """
        missing = set()
        for raw in ids:
            key = _coerce_id(raw)
            if key is None or key in self._cache or key in self._in_flight:
                continue
            missing.add(key)
        if not missing:
            return
        logger.debug("references_resolving", resolver=self.name, count=len(missing))
        for key in sorted(missing):
            self._in_flight[key] = asyncio.create_task(self._fetch(key))

    async def wait(self) -> None:
        """Wait until every lookup scheduled so far has finished."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    def clear(self) -> None:
        """Drop the cache and cancel running lookups."""
        for task in self._in_flight.values():
            task.cancel()
        self._in_flight.clear()
        self._cache.clear()

    async def _fetch(self, key: int) -> None:
        task = asyncio.current_task()
        try:
            name = await self._lookup(key)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning(
                "reference_lookup_failed",
                resolver=self.name,
                ref_id=key,
                error=type(exc).__name__,
            )
            return
        finally:
            if self._in_flight.get(key) is task:
                self._in_flight.pop(key, None)
        if name:
            self._cache[key] = name
        else:
            logger.info("reference_lookup_empty", resolver=self.name, ref_id=key)
