"""
Filtered listings, keyword routing and per-resource default sort.

Requirements:
- a filter routes the listing to the resource's filtered paged endpoint,
  embedding path filters and sending the rest as query parameters
- changing a filter resets to page 0; clearing filters returns to the plain listing
- a filter combination no route serves is rejected before any request
- a keyword takes precedence over filters
- academies keyword search stays server paged
- payments and scores list newest first by default
"""
from __future__ import annotations

import httpx
import pytest

from console.listing import (
    ListController,
    ListQuery,
    ResourceClient,
    ServerPaged,
    SortDirection,
    get_resource,
    select_strategy,
)
from console.transport import Transport
from utils.fake_api import FakeApi, page_payload

pytestmark = pytest.mark.anyio


def _controller(settings, api: FakeApi, resource: str):
    transport = Transport(settings, http_transport=api.transport)
    return transport, ListController(ResourceClient(transport, get_resource(resource)), settings)


def _paged(total_pages: int):
    def respond(request: httpx.Request):
        index = int(request.url.params["page"])
        return httpx.Response(200, json=page_payload([{"majorId": index}], total_pages=total_pages, page_index=index))

    return respond


async def test_majors_grade_filter_uses_grade_endpoint_from_first_page(settings):
    api = FakeApi()
    api.add("GET", "/majors/page", _paged(5))
    api.add("GET", "/majors/grade/3/page", _paged(2))
    transport, controller = _controller(settings, api, "majors")
    await controller.goto_page(3)

    page = await controller.set_filter("grade", 3)

    assert page.page_index == 0
    assert controller.query.filter_map == {"grade": "3"}
    params = api.calls("GET", "/majors/grade/3/page")[0].url.params
    assert dict(params) == {"page": "0", "size": "10", "sortBy": "majorId", "sortDir": "asc"}

    await controller.goto_page(1)
    cleared = await controller.clear_filters()

    assert cleared.page_index == 0
    assert controller.query.filters == ()
    assert api.calls("GET", "/majors/page")[-1].url.params["page"] == "0"
    await transport.aclose()


async def test_query_parameter_filter_is_sent_alongside_paging(settings):
    api = FakeApi().add("GET", "/academies/search/dean/page", (200, page_payload([], total_pages=0, page_index=0)))
    transport, controller = _controller(settings, api, "academies")

    await controller.set_filter("deanName", "  Li  ")

    params = api.calls("GET", "/academies/search/dean/page")[0].url.params
    assert params["deanName"] == "Li"
    assert params["sortBy"] == "academyId"
    await transport.aclose()


async def test_subject_credit_range_needs_both_bounds_on_its_route(settings):
    api = FakeApi()
    api.add("GET", "/subjects/credit-range/page", (200, page_payload([], total_pages=0, page_index=0)))
    api.add("GET", "/subjects/search/multiple/page", (200, page_payload([], total_pages=0, page_index=0)))
    transport, controller = _controller(settings, api, "subjects")

    await controller.set_filter("minCredit", 2)
    await controller.set_filter("maxCredit", 4)

    assert len(api.calls("GET", "/subjects/search/multiple/page")) == 1
    ranged = api.calls("GET", "/subjects/credit-range/page")[0].url.params
    assert ranged["minCredit"] == "2" and ranged["maxCredit"] == "4"
    await transport.aclose()


async def test_unsupported_filter_is_rejected_without_request(settings):
    api = FakeApi()
    transport, controller = _controller(settings, api, "teachers")

    with pytest.raises(ValueError):
        await controller.set_filter("grade", 1)
    with pytest.raises(ValueError):
        select_strategy(get_resource("majors"), ListQuery(filters={"grade": 1, "academyId": 2}))

    assert api.requests == []
    assert controller.query.filters == ()
    await transport.aclose()


async def test_keyword_takes_precedence_over_filters(settings):
    api = FakeApi().add("GET", "/majors/name/Physics/page", (200, page_payload([{"majorId": 2}], total_pages=1, page_index=0)))
    client = ResourceClient(Transport(settings, http_transport=api.transport), get_resource("majors"))

    data = await client.page(ListQuery(keyword="Physics", filters={"grade": 3}))

    assert data["content"] == [{"majorId": 2}]
    await client.transport.aclose()


async def test_academy_keyword_search_is_server_paged(settings):
    api = FakeApi().add("GET", "/academies/search/name/page", (200, page_payload([{"academyId": 4}], total_pages=1, page_index=0)))
    transport, controller = _controller(settings, api, "academies")

    page = await controller.search("Science")

    assert isinstance(select_strategy(get_resource("academies"), controller.query), ServerPaged)
    assert api.calls("GET", "/academies/search/name/page")[0].url.params["name"] == "Science"
    assert page.content == ({"academyId": 4},)
    await transport.aclose()


@pytest.mark.parametrize("resource, id_field", [("payments", "paymentId"), ("scores", "scoreId")])
async def test_newest_first_resources_default_to_descending(settings, resource, id_field):
    path = get_resource(resource).page_path
    api = FakeApi().add("GET", path, (200, page_payload([], total_pages=0, page_index=0)))
    transport, controller = _controller(settings, api, resource)

    await controller.reload()

    assert controller.query.sort_direction is SortDirection.DESC
    params = api.calls("GET", path)[0].url.params
    assert params["sortBy"] == id_field and params["sortDir"] == "desc"
    await transport.aclose()
