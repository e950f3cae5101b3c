"""
tests/conftest.py
Shared fixtures for the apiwizard test suite.

No external mocking libraries are used.  Engine and store tests talk to
``FakeServiceClient``, an in-memory stand-in with the same coroutine
methods as ``ServiceClient``; client tests go through a FastAPI app
mounted on ``httpx.ASGITransport``.
"""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest

from apiwizard.configuration import default_global_configuration
from apiwizard.coordinator import Coordinator
from apiwizard.models import TableInfo, WorkflowState
from apiwizard.schema import parse_schema_response
from apiwizard.settings import WizardSettings
from apiwizard.store import WorkflowStore


# ---------------------------------------------------------------------------
# Raw payload helpers
# ---------------------------------------------------------------------------


def openapi_document(paths: Optional[List[str]] = None, **overrides: Any) -> Dict[str, Any]:
    """A minimal, structurally valid OpenAPI 3 document."""
    doc: Dict[str, Any] = {
        "openapi": "3.0.3",
        "info": {"title": "svc1 API", "version": "1.0.0"},
        "paths": {p: {"get": {"summary": f"List {p}"}} for p in (paths or ["/users"])},
        "components": {"schemas": {"Users": {"type": "object"}, "Orders": {"type": "object"}}},
    }
    doc.update(overrides)
    return doc


def _raw_tables() -> List[Dict[str, Any]]:
    return [
        {
            "name": "users",
            "label": "Users",
            "description": "Registered accounts",
            "field": [
                {"name": "id", "db_type": "int(11)", "is_primary_key": True,
                 "auto_increment": True, "allow_null": False},
                {"name": "email", "db_type": "varchar(255)", "is_unique": True,
                 "allow_null": False},
                {"name": "is_active", "db_type": "tinyint(1)"},
            ],
        },
        {
            "name": "orders",
            "label": "Orders",
            "description": "Customer purchases",
            "field": [
                {"name": "id", "db_type": "bigint", "is_primary_key": True},
                {"name": "customer_id", "db_type": "int", "ref_table": "users",
                 "ref_field": "id"},
                {"name": "total", "db_type": "decimal(10,2)"},
            ],
            "related": [
                {"name": "orders_customer_id_fk", "field": "customer_id",
                 "ref_table": "users", "ref_field": "id", "on_delete": "CASCADE"},
            ],
        },
        {
            "name": "products",
            "label": "Catalogue",
            "description": "Things for sale",
            "field": [
                {"name": "sku", "db_type": "char(12)", "is_primary_key": True},
                {"name": "created_by_user", "db_type": "int"},
            ],
        },
        {
            "name": "invoices",
            "field": [{"name": "id", "db_type": "uuid", "is_primary_key": True}],
        },
    ]


@pytest.fixture()
def raw_schema_payload() -> Dict[str, Any]:
    """Schema-discovery response in the canonical ``{tables: [...]}`` shape."""
    return {"tables": _raw_tables()}


@pytest.fixture()
def tables(raw_schema_payload: Dict[str, Any]) -> List[TableInfo]:
    return parse_schema_response(raw_schema_payload)


@pytest.fixture()
def two_tables_payload() -> Dict[str, Any]:
    return {"tables": _raw_tables()[:2]}


# ---------------------------------------------------------------------------
# State fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def base_state(tables: List[TableInfo]) -> WorkflowState:
    """Service ``svc1`` with four discovered tables and nothing selected."""
    return WorkflowState(
        service_id="svc1",
        available_tables={t.id: t for t in tables},
        global_configuration=default_global_configuration(),
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeServiceClient:
    """
    In-memory admin service.

    Queued items are consumed first; each may be a response, an exception
    to raise, or ``(asyncio.Event, item)`` to wait for the event first.
    """

    def __init__(self, schema: Any = None) -> None:
        self.schema: Any = schema
        self.schema_queue: List[Any] = []
        self.preview_queue: List[Any] = []
        self.default_preview: Any = openapi_document(["/users", "/orders"])
        self.generate_response: Any = {
            "success": True,
            "endpointUrls": ["/api/v2/svc1/_table/users", "/api/v2/svc1/_table/orders"],
            "warnings": [],
        }
        self.delete_error: Optional[BaseException] = None
        self.calls: Dict[str, int] = defaultdict(int)
        self.preview_payloads: List[Dict[str, Any]] = []
        self.generate_payloads: List[Dict[str, Any]] = []
        self.deleted: List[tuple] = []

    @staticmethod
    async def _resolve(item: Any) -> Any:
        if isinstance(item, tuple):
            gate, item = item
            await gate.wait()
        if isinstance(item, BaseException):
            raise item
        return copy.deepcopy(item)

    async def get_schema(self, service_id: str) -> Any:
        self.calls["get_schema"] += 1
        item = self.schema_queue.pop(0) if self.schema_queue else self.schema
        return await self._resolve(item)

    async def post_preview(self, service_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls["post_preview"] += 1
        self.preview_payloads.append(payload)
        item = self.preview_queue.pop(0) if self.preview_queue else self.default_preview
        return await self._resolve(item)

    async def post_generate(self, service_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls["post_generate"] += 1
        self.generate_payloads.append(payload)
        return await self._resolve(self.generate_response)

    async def delete_relationship(self, service_id: str, table_name: str, relationship: str) -> None:
        self.calls["delete_relationship"] += 1
        await asyncio.sleep(0)
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((table_name, relationship))


@pytest.fixture()
def fast_settings() -> WizardSettings:
    """No backoff sleeps, short timeouts."""
    return WizardSettings(
        base_url="http://testserver/api/v2",
        request_timeout=2.0,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        discovery_max_attempts=3,
        preview_max_attempts=2,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_client(raw_schema_payload: Dict[str, Any]) -> FakeServiceClient:
    return FakeServiceClient(schema=raw_schema_payload)


@pytest.fixture()
def coordinator(
    fake_client: FakeServiceClient, fast_settings: WizardSettings, clock: FakeClock
) -> Coordinator:
    return Coordinator(fake_client, fast_settings, clock=clock)


@pytest.fixture()
def store(coordinator: Coordinator) -> WorkflowStore:
    wizard = WorkflowStore(coordinator)
    wizard.set_service("svc1")
    return wizard
