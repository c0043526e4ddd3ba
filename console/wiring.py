"""
Composition root: build one console from settings.

The transport, session store and guard are passed explicitly to whoever
needs them; nothing in the core reaches for a module-level singleton apart
from `get_settings()`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

import httpx
import structlog

from console.config import ConsoleSettings, ensure_secure_config_on_startup, get_settings
from console.identity_access.guard import AuthorizationGuard
from console.identity_access.session import SessionStore
from console.identity_access.stores import JsonFileStorage, KeyValueStorage
from console.log import configure_logging
from console.listing.controller import ListController
from console.listing.references import ReferenceResolver
from console.listing.resources import ResourceClient, get_resource
from console.transport.client import Transport

logger = structlog.get_logger(__name__)


@dataclass
class Console:
    settings: ConsoleSettings
    transport: Transport
    session: SessionStore
    guard: AuthorizationGuard

    def client(self, resource_name: str) -> ResourceClient:
        return ResourceClient(self.transport, get_resource(resource_name))

    def resolver(self, resource_name: str) -> ReferenceResolver:
        client = self.client(resource_name)
        return ReferenceResolver(client.name_of, name=resource_name)

    def list_controller(
        self,
        resource_name: str,
        *,
        references: Optional[Mapping[str, str]] = None,
    ) -> ListController:
        """Controller for one resource table.

        `references` maps a row field holding a foreign key to the resource
        that owns it, e.g. `{"studentId": "students"}`.
        """
        resolvers = {
            field_name: self.resolver(owner) for field_name, owner in (references or {}).items()
        }
        return ListController(self.client(resource_name), self.settings, references=resolvers)

    async def aclose(self) -> None:
        self.guard.close()
        await self.transport.aclose()


def build_console(
    settings: Optional[ConsoleSettings] = None,
    *,
    storage: Optional[KeyValueStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Console:
    """Wire transport, session store and guard for one console process.

    `transport` is an optional httpx transport (e.g. `httpx.MockTransport`).
    """
    settings = settings or get_settings()
    ensure_secure_config_on_startup(settings)
    configure_logging(settings.log_level, json=settings.log_json)
    http = Transport(settings, http_transport=transport)
    store = SessionStore(http, storage if storage is not None else JsonFileStorage(settings.session_file))
    guard = AuthorizationGuard(store, settings)
    logger.info("console_built", environment=settings.environment, api_base_url=settings.api_base_url)
    return Console(settings=settings, transport=http, session=store, guard=guard)
