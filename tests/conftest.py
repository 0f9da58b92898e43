"""Shared fakes and fixtures for the sync test-suite.

The Snipe-IT fake implements ``session.request`` over in-memory tables so the
real ``SnipeITClient`` (gate, envelope handling, pagination) is exercised end
to end without a network.
"""

from __future__ import annotations

import copy
import sys
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    # Ensure tests can import `ninja_snipe_sync` without package installation.
    sys.path.insert(0, project_root_str)

from ninja_snipe_sync.snipeit.client import SnipeITClient  # noqa: E402
from ninja_snipe_sync.snipeit.rate_limiter import RequestGate  # noqa: E402

SNIPE_BASE = "https://snipe.test/api/v1"
NINJA_BASE = "https://ninja.test"


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("" if body is None else str(body))

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no JSON body")
        return copy.deepcopy(self._body)


class FakeClock:
    """Manual monotonic clock; ``sleep`` advances it and records the delay."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSnipeServer:
    """In-memory Snipe-IT API behind a ``requests.Session``-like interface."""

    def __init__(self, base_url: str = SNIPE_BASE) -> None:
        self.base_path = urlsplit(base_url).path.rstrip("/")
        self.headers: Dict[str, str] = {}
        self.manufacturers: List[Dict[str, Any]] = []
        self.categories: List[Dict[str, Any]] = []
        self.models: List[Dict[str, Any]] = []
        self.hardware: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, str, Optional[Dict[str, Any]], Optional[Dict[str, Any]]]] = []
        self.queued: Dict[Tuple[str, str], Deque[Any]] = {}
        self._next_id = 100

    # seeding helpers

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_manufacturer(self, name: str) -> Dict[str, Any]:
        row = {"id": self._new_id(), "name": name}
        self.manufacturers.append(row)
        return row

    def add_category(self, name: str) -> Dict[str, Any]:
        row = {"id": self._new_id(), "name": name, "category_type": "asset"}
        self.categories.append(row)
        return row

    def add_model(self, name: str, manufacturer_id: Any, category_id: Any) -> Dict[str, Any]:
        category = self._find(self.categories, category_id) or {"id": category_id, "name": None}
        row = {
            "id": self._new_id(),
            "name": name,
            "model_number": name,
            "manufacturer": {"id": manufacturer_id} if manufacturer_id is not None else None,
            "category": {"id": category_id, "name": category["name"]} if category_id is not None else None,
        }
        self.models.append(row)
        return row

    def add_hardware(self, serial: str, name: str, model_id: Any, manufacturer_id: Any,
                     model_number: Optional[str] = None) -> Dict[str, Any]:
        row = {
            "id": self._new_id(),
            "name": name,
            "serial": serial,
            "model": {"id": model_id},
            "manufacturer": {"id": manufacturer_id},
            "model_number": model_number,
            "notes": None,
            "custom_fields": {},
        }
        self.hardware.append(row)
        return row

    def queue(self, method: str, path: str, *responses: Any) -> None:
        """Serve the given responses (or raise the given exceptions) before normal dispatch."""
        self.queued.setdefault((method, path), deque()).extend(responses)

    # introspection helpers

    def writes(self) -> List[Tuple[str, str]]:
        return [(method, path) for method, path, _, _ in self.calls if method != "GET"]

    def calls_to(self, method: str, path: str) -> List[Tuple[str, str, Any, Any]]:
        return [call for call in self.calls if call[0] == method and call[1] == path]

    # session interface

    def request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None,
                json: Optional[Dict[str, Any]] = None, timeout: Any = None, **kwargs: Any) -> FakeResponse:
        path = urlsplit(url).path[len(self.base_path):].strip("/")
        self.calls.append((method, path, copy.deepcopy(params), copy.deepcopy(json)))

        pending = self.queued.get((method, path))
        if pending:
            item = pending.popleft()
            if isinstance(item, Exception):
                raise item
            return item

        parts = path.split("/")
        table = getattr(self, parts[0], None)
        if table is None:
            return FakeResponse(404, {"status": "error", "messages": "Not found"})

        if method == "GET" and len(parts) == 1:
            return self._list(table, params or {})
        if method == "GET":
            row = self._find(table, int(parts[1]))
            if row is None:
                return FakeResponse(200, {"status": "error", "messages": "Model not found"})
            return FakeResponse(200, row)
        if method == "POST":
            return self._create(parts[0], json or {})
        if method in ("PUT", "PATCH"):
            return self._update(parts[0], int(parts[1]), json or {})
        return FakeResponse(405, {"status": "error", "messages": "Method not allowed"})

    @staticmethod
    def _find(table: List[Dict[str, Any]], row_id: Any) -> Optional[Dict[str, Any]]:
        for row in table:
            if row["id"] == row_id:
                return row
        return None

    @staticmethod
    def _list(table: List[Dict[str, Any]], params: Dict[str, Any]) -> FakeResponse:
        rows = table
        search = params.get("search")
        if search:
            rows = [row for row in rows if search.lower() in (row.get("name") or "").lower()]
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 50))
        return FakeResponse(200, {"total": len(rows), "rows": rows[offset:offset + limit]})

    def _create(self, resource: str, data: Dict[str, Any]) -> FakeResponse:
        if resource == "manufacturers":
            row = self.add_manufacturer(data["name"])
        elif resource == "categories":
            row = self.add_category(data["name"])
        elif resource == "models":
            row = self.add_model(data["name"], data.get("manufacturer_id"), data.get("category_id"))
            # Snipe-IT echoes the flat form on create
            row = {"id": row["id"], "name": data["name"], "manufacturer_id": data.get("manufacturer_id"),
                   "category_id": data.get("category_id"), "model_number": data.get("model_number")}
        elif resource == "hardware":
            row = self.add_hardware(data.get("serial"), data.get("name"), data.get("model_id"),
                                    data.get("manufacturer_id"), data.get("model_number"))
            self.hardware[-1]["notes"] = data.get("notes")
            self.hardware[-1]["custom_fields"] = data.get("custom_fields") or {}
            row = {"id": row["id"], "name": data.get("name"), "serial": data.get("serial"),
                   "model_id": data.get("model_id")}
        else:
            return FakeResponse(404, {"status": "error", "messages": "Not found"})
        return FakeResponse(200, {"status": "success", "messages": "created", "payload": row})

    def _update(self, resource: str, row_id: int, data: Dict[str, Any]) -> FakeResponse:
        table = getattr(self, resource)
        row = self._find(table, row_id)
        if row is None:
            return FakeResponse(200, {"status": "error", "messages": f"{resource} not found"})

        for key, value in data.items():
            if key in ("manufacturer_id", "category_id", "model_id"):
                related = key[:-3]
                row[related] = {"id": value}
                if related == "category":
                    category = self._find(self.categories, value)
                    row[related]["name"] = category["name"] if category else None
            else:
                row[key] = value
        flat = {"id": row_id, "name": row.get("name")}
        flat.update(data)
        return FakeResponse(200, {"status": "success", "messages": "updated", "payload": flat})


class FakeNinjaSession:
    """Records requests and replays queued responses for the NinjaOne client."""

    def __init__(self, *responses: Any) -> None:
        self.responses: Deque[Any] = deque(responses)
        self.calls: List[Dict[str, Any]] = []
        self.headers: Dict[str, str] = {}

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.popleft()
        if isinstance(item, Exception):
            raise item
        return item


class StaticSource:
    """Device source returning a fixed list."""

    def __init__(self, devices: List[Any]) -> None:
        self.devices = devices
        self.fetches = 0

    def fetch_devices(self) -> List[Any]:
        self.fetches += 1
        return list(self.devices)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def snipe_server() -> FakeSnipeServer:
    return FakeSnipeServer()


@pytest.fixture
def snipe_client(snipe_server: FakeSnipeServer, clock: FakeClock) -> SnipeITClient:
    gate = RequestGate(min_interval=1.0, clock=clock, sleep=clock.sleep)
    return SnipeITClient(SNIPE_BASE, "test-key", page_size=500, session=snipe_server, gate=gate)


@pytest.fixture
def base_config() -> Dict[str, Any]:
    return {
        "ninja": {
            "base_url": NINJA_BASE,
            "client_id": "client",
            "client_secret": "secret",
            "auth_endpoint": "/ws/oauth/token",
            "device_endpoint": "/v2/devices-detailed",
        },
        "snipeit": {
            "base_url": SNIPE_BASE,
            "api_key": "test-key",
        },
    }
