"""
Resource catalogue and a thin per-resource API client.

Each `Resource` describes how one entity collection of the records API is
reached: its listing endpoint (server-paginated), its keyword search
endpoints (flat full-match list and/or server-paginated), its filtered
paged endpoints, the default sort, and which fields carry the id and the
display name. Entity screens hand a `ResourceClient`
to a list controller and use `name_of` as the lookup function of a
reference resolver.

CRUD payload rules are intentionally not modelled here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from string import Formatter
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote

import structlog

from console.transport.client import Transport
from console.transport.errors import ApiError

from .models import ListQuery, SortDirection

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FilterRoute:
    """A paged endpoint serving one combination of filters.

    Filters named as `{placeholders}` in `path` become path segments; the
    rest are sent as query parameters.
    """

    path: str
    required: FrozenSet[str]
    optional: FrozenSet[str] = frozenset()

    def matches(self, names: Iterable[str]) -> bool:
        names = set(names)
        return bool(names) and self.required <= names <= (self.required | self.optional)

    def build(self, filters: Mapping[str, str]) -> Tuple[str, Dict[str, str]]:
        embedded = {name for _, name, _, _ in Formatter().parse(self.path) if name}
        path = self.path.format(**{k: quote(filters[k], safe="") for k in embedded})
        return path, {k: v for k, v in filters.items() if k not in embedded}


def route(path: str, *required: str, optional: Iterable[str] = ()) -> FilterRoute:
    return FilterRoute(path, frozenset(required), frozenset(optional))


@dataclass(frozen=True)
class Resource:
    name: str
    base_path: str
    id_field: str
    name_field: Optional[str] = None
    # Flat full-match search, e.g. GET /students/search?name=...
    search_path: Optional[str] = None
    search_param: str = "keyword"
    # Server-paginated search; may embed `{keyword}` as a path segment
    paged_search_path: Optional[str] = None
    paged_search_param: Optional[str] = None
    default_direction: SortDirection = SortDirection.ASC
    # Tried in order; the first route accepting the active filter names wins
    filter_routes: Tuple[FilterRoute, ...] = field(default=())

    @property
    def page_path(self) -> str:
        return f"{self.base_path}/page"

    @property
    def default_sort(self) -> str:
        return self.id_field

    @property
    def searchable(self) -> bool:
        return bool(self.search_path or self.paged_search_path)

    def item_path(self, item_id: int | str) -> str:
        return f"{self.base_path}/{quote(str(item_id), safe='')}"

    def filter_route(self, names: Iterable[str]) -> Optional[FilterRoute]:
        names = set(names)
        for candidate in self.filter_routes:
            if candidate.matches(names):
                return candidate
        return None


ACADEMIES = Resource(
    name="academies",
    base_path="/academies",
    id_field="academyId",
    name_field="academyName",
    paged_search_path="/academies/search/name/page",
    paged_search_param="name",
    filter_routes=(route("/academies/search/dean/page", "deanName"),),
)
MAJORS = Resource(
    name="majors",
    base_path="/majors",
    id_field="majorId",
    name_field="majorName",
    paged_search_path="/majors/name/{keyword}/page",
    filter_routes=(
        route("/majors/grade/{grade}/page", "grade"),
        route("/majors/academy/{academyId}/page", "academyId"),
        route("/majors/counselor/{counselorId}/page", "counselorId"),
    ),
)
SUBJECTS = Resource(
    name="subjects",
    base_path="/subjects",
    id_field="subjectId",
    name_field="subjectName",
    search_path="/subjects/search",
    search_param="keyword",
    paged_search_path="/subjects/search/name/page",
    paged_search_param="name",
    filter_routes=(
        route("/subjects/academy/{academy}/page", "academy"),
        route("/subjects/credit/{credit}/page", "credit"),
        route("/subjects/credit-range/page", "minCredit", "maxCredit"),
        route(
            "/subjects/search/multiple/page",
            optional=("academy", "subjectName", "minCredit", "maxCredit"),
        ),
    ),
)
TEACHERS = Resource(
    name="teachers",
    base_path="/teachers",
    id_field="teacherId",
    name_field="teacherName",
    search_path="/teachers/search",
    search_param="name",
    paged_search_path="/teachers/search/page",
    paged_search_param="name",
)
STUDENTS = Resource(
    name="students",
    base_path="/students",
    id_field="stuId",
    name_field="stuName",
    search_path="/students/search",
    search_param="name",
)
PAYMENTS = Resource(
    name="payments",
    base_path="/payments",
    id_field="paymentId",
    search_path="/payments/search",
    search_param="keyword",
    default_direction=SortDirection.DESC,
    filter_routes=(
        route("/payments/type/{type}/page", "type"),
        route("/payments/status/{status}/page", "status"),
    ),
)
SCORES = Resource(
    name="scores",
    base_path="/scores",
    id_field="scoreId",
    default_direction=SortDirection.DESC,
)
TOTAL_CLASSES = Resource(
    name="total_classes",
    base_path="/classes/total",
    id_field="totalClassId",
    name_field="totalClassName",
    search_path="/classes/total/search/general",
    search_param="keyword",
)
SUB_CLASSES = Resource(
    name="sub_classes",
    base_path="/classes/sub",
    id_field="subClassId",
    name_field="subClassName",
    search_path="/classes/sub/search/general",
    search_param="keyword",
)

CATALOGUE: Dict[str, Resource] = {
    r.name: r
    for r in (ACADEMIES, MAJORS, SUBJECTS, TEACHERS, STUDENTS, PAYMENTS, SCORES, TOTAL_CLASSES, SUB_CLASSES)
}


def get_resource(name: str) -> Resource:
    try:
        return CATALOGUE[name]
    except KeyError:
        raise ValueError(f"unknown resource: {name}") from None


def page_params(query: ListQuery) -> Dict[str, Any]:
    return {
        "page": query.page_index,
        "size": query.page_size,
        "sortBy": query.sort_field,
        "sortDir": query.sort_direction.value,
    }


class ResourceClient:
    """Read/delete access to one resource through the console transport."""

    def __init__(self, transport: Transport, resource: Resource) -> None:
        self.transport = transport
        self.resource = resource

    async def page(self, query: ListQuery) -> Any:
        """GET one server-paginated page; returns the envelope payload.

        With a keyword, the resource's paged search endpoint is used and
        filters are ignored; otherwise active filters pick a filter route.
        """
        params = page_params(query)
        path = self.resource.page_path
        if not query.keyword and query.filters:
            filters = query.filter_map
            chosen = self.resource.filter_route(filters)
            if chosen is None:
                raise ValueError(f"{self.resource.name} cannot filter by {sorted(filters)}")
            path, extra = chosen.build(filters)
            params.update(extra)
        elif query.keyword:
            template = self.resource.paged_search_path
            if not template:
                raise ValueError(f"{self.resource.name} has no paged search endpoint")
            if "{keyword}" in template:
                path = template.format(keyword=quote(query.keyword, safe=""))
            else:
                path = template
                params[self.resource.paged_search_param or self.resource.search_param] = query.keyword
        return await self.transport.data("GET", path, query=params)

    async def search(self, keyword: str) -> List[Any]:
        """GET the flat full-match list for `keyword`."""
        if not self.resource.search_path:
            raise ValueError(f"{self.resource.name} has no flat search endpoint")
        data = await self.transport.data("GET", self.resource.search_path, query={self.resource.search_param: keyword})
        if data is None:
            return []
        if not isinstance(data, list):
            raise ApiError("unexpected search response", code="search_payload_invalid")
        return data

    async def get(self, item_id: int | str) -> Any:
        return await self.transport.data("GET", self.resource.item_path(item_id))

    async def delete(self, item_id: int | str) -> None:
        await self.transport.send("DELETE", self.resource.item_path(item_id))
        logger.info("resource_deleted", resource=self.resource.name, item_id=item_id)

    async def name_of(self, item_id: int) -> Optional[str]:
        """Resolve an id to its display name; None when unavailable."""
        if not self.resource.name_field:
            raise ValueError(f"{self.resource.name} has no display name field")
        item = await self.get(item_id)
        if not isinstance(item, dict):
            return None
        name = item.get(self.resource.name_field)
        if name is None or not str(name).strip():
            return None
        return str(name)
