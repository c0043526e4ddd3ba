"""Listing: paginated tables, pagination strategies and reference resolution."""

from .controller import ListController
from .models import ListQuery, ListState, Page, SortDirection, clamp_page_index
from .references import ReferenceResolver
from .resources import CATALOGUE, FilterRoute, Resource, ResourceClient, get_resource
from .strategies import ClientSlicedFromFullMatch, ServerPaged, select_strategy

__all__ = [
    "ListController",
    "ListQuery",
    "ListState",
    "Page",
    "SortDirection",
    "clamp_page_index",
    "ReferenceResolver",
    "CATALOGUE",
    "FilterRoute",
    "Resource",
    "ResourceClient",
    "get_resource",
    "ClientSlicedFromFullMatch",
    "ServerPaged",
    "select_strategy",
]
