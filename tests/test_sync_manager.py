"""End-to-end run tests: real client and resolver over the in-memory Snipe-IT."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

import pytest

from ninja_snipe_sync.ninja.device_source import normalize_device
from ninja_snipe_sync.ninja.models import CanonicalDevice
from ninja_snipe_sync.snipeit.client import SnipeITClient
from ninja_snipe_sync.sync.sync_manager import SyncManager, run_scheduled_sync
from ninja_snipe_sync.utils.exceptions import AuthError, ConfigError, ReferenceResolutionError
from tests.conftest import FakeResponse, FakeSnipeServer, StaticSource

GIB = 1024 ** 3


def _device(device_id: int, serial: str, manufacturer: str = "Dell", model: str = "OptiPlex 7090",
            node_class: str = "WINDOWS_WORKSTATION", name: str = "") -> CanonicalDevice:
    return normalize_device({
        "id": device_id,
        "systemName": name or f"HOST-{device_id}",
        "nodeClass": node_class,
        "system": {
            "name": name or f"HOST-{device_id}",
            "manufacturer": manufacturer,
            "model": model,
            "serialNumber": serial,
            "domain": "corp.local",
            "domainRole": "MemberWorkstation",
            "numberOfProcessors": 4,
            "totalPhysicalMemory": 8 * GIB,
        },
    })


def _manager(config: Dict[str, Any], devices: List[CanonicalDevice], client: SnipeITClient) -> SyncManager:
    return SyncManager(config, source=StaticSource(devices), target=client)


def test_new_device_creates_references_then_asset(base_config: Dict[str, Any],
                                                  snipe_server: FakeSnipeServer,
                                                  snipe_client: SnipeITClient) -> None:
    """Against an empty target the writes are manufacturer, category, model, asset."""
    result = _manager(base_config, [_device(1, "SN1")], snipe_client).run()

    assert snipe_server.writes() == [
        ("POST", "manufacturers"),
        ("POST", "categories"),
        ("POST", "models"),
        ("POST", "hardware"),
    ]
    assert (result.total, result.processed, result.created) == (1, 1, 1)
    assert result.failed == []

    created = snipe_server.hardware[0]
    assert created["serial"] == "SN1"
    assert created["custom_fields"] == {"_snipeit_processor_count_1": 4, "_snipeit_memory_2": 8}
    assert snipe_server.categories[0]["name"] == "Windows Workstations"


def test_second_run_only_refreshes_the_asset(base_config: Dict[str, Any],
                                             snipe_server: FakeSnipeServer,
                                             snipe_client: SnipeITClient) -> None:
    devices = [_device(1, "SN1")]
    _manager(base_config, devices, snipe_client).run()
    writes_before = len(snipe_server.writes())

    result = _manager(base_config, devices, snipe_client).run()

    asset_id = snipe_server.hardware[0]["id"]
    assert snipe_server.writes()[writes_before:] == [("PATCH", f"hardware/{asset_id}")]
    patch = snipe_server.calls_to("PATCH", f"hardware/{asset_id}")[0][3]
    assert set(patch) == {"custom_fields", "notes"}
    assert (result.created, result.updated, result.unchanged) == (0, 0, 1)


def test_renamed_device_is_counted_as_updated(base_config: Dict[str, Any],
                                              snipe_server: FakeSnipeServer,
                                              snipe_client: SnipeITClient) -> None:
    _manager(base_config, [_device(1, "SN1")], snipe_client).run()

    result = _manager(base_config, [_device(1, "SN1", name="HOST-NEW")], snipe_client).run()

    assert result.updated == 1
    assert snipe_server.hardware[0]["name"] == "HOST-NEW"


def test_same_serial_twice_in_one_run_creates_then_patches(base_config: Dict[str, Any],
                                                           snipe_server: FakeSnipeServer,
                                                           snipe_client: SnipeITClient) -> None:
    result = _manager(base_config, [_device(1, "SN1"), _device(2, "sn1")], snipe_client).run()

    assert len(snipe_server.hardware) == 1
    assert (result.created, result.updated) == (1, 1)


def test_shared_references_are_created_once(base_config: Dict[str, Any],
                                            snipe_server: FakeSnipeServer,
                                            snipe_client: SnipeITClient) -> None:
    devices = [_device(1, "SN1"), _device(2, "SN2"), _device(3, "SN3", model="Latitude 5520")]

    result = _manager(base_config, devices, snipe_client).run()

    assert result.created == 3
    assert len(snipe_server.calls_to("POST", "manufacturers")) == 1
    assert len(snipe_server.calls_to("POST", "categories")) == 1
    assert len(snipe_server.calls_to("POST", "models")) == 2


def test_failing_device_does_not_stop_the_run(base_config: Dict[str, Any],
                                              snipe_server: FakeSnipeServer,
                                              snipe_client: SnipeITClient) -> None:
    """One device failing reference resolution is recorded; its neighbours still sync."""
    snipe_server.add_manufacturer("Dell")
    snipe_server.queue("POST", "manufacturers", FakeResponse(500, {"status": "error", "messages": "db down"}))
    devices = [_device(1, "SN1"), _device(2, "SN2", manufacturer="HP"), _device(3, "SN3")]

    result = _manager(base_config, devices, snipe_client).run()

    assert (result.total, result.processed, result.created) == (3, 2, 2)
    assert len(result.failed) == 1
    failure = result.failed[0]
    assert (failure.device_id, failure.name, failure.serial) == (2, "HOST-2", "SN2")
    assert failure.error_kind == "ReferenceResolutionError"
    assert [row["serial"] for row in snipe_server.hardware] == ["SN1", "SN3"]


def test_asset_write_failure_is_a_reconciliation_error(base_config: Dict[str, Any],
                                                       snipe_server: FakeSnipeServer,
                                                       snipe_client: SnipeITClient) -> None:
    snipe_server.queue("POST", "hardware", FakeResponse(422, {"status": "error", "messages": "serial taken"}))

    result = _manager(base_config, [_device(1, "SN1"), _device(2, "SN2")], snipe_client).run()

    assert [failure.error_kind for failure in result.failed] == ["ReconciliationError"]
    assert result.created == 1


def test_unknown_serial_is_created_by_default(base_config: Dict[str, Any],
                                              snipe_server: FakeSnipeServer,
                                              snipe_client: SnipeITClient) -> None:
    """An unmatchable serial never matches an existing asset, so it is created."""
    result = _manager(base_config, [_device(1, "Unknown"), _device(2, "")], snipe_client).run()

    assert (result.created, result.skipped, result.processed) == (2, 0, 2)
    assert len(snipe_server.calls_to("POST", "hardware")) == 2


def test_device_without_system_block_is_created(base_config: Dict[str, Any],
                                                snipe_server: FakeSnipeServer,
                                                snipe_client: SnipeITClient) -> None:
    """The default system block flows through resolution and ends in POST hardware."""
    device = normalize_device({"id": 9, "systemName": "NAS-01", "nodeClass": "NAS"})

    result = _manager(base_config, [device], snipe_client).run()

    assert (result.total, result.processed, result.created, result.skipped) == (1, 1, 1, 0)
    assert snipe_server.writes()[-1] == ("POST", "hardware")
    created = snipe_server.hardware[0]
    assert created["name"] == "NAS-01"
    assert created["serial"] == "Unknown"
    assert snipe_server.manufacturers[0]["name"] == "Unknown"
    assert snipe_server.categories[0]["name"] == "Other Hardware"


def test_unknown_serial_is_skipped_when_enabled(base_config: Dict[str, Any],
                                                snipe_server: FakeSnipeServer,
                                                snipe_client: SnipeITClient) -> None:
    config = copy.deepcopy(base_config)
    config["sync"] = {"skip_unknown_serial": True}

    result = _manager(config, [_device(1, "Unknown"), _device(2, "")], snipe_client).run()

    assert (result.skipped, result.processed, result.created) == (2, 2, 0)
    assert snipe_server.writes() == []


def test_disabled_provenance_refresh_leaves_identical_assets_alone(base_config: Dict[str, Any],
                                                                   snipe_server: FakeSnipeServer,
                                                                   snipe_client: SnipeITClient) -> None:
    devices = [_device(1, "SN1")]
    _manager(base_config, devices, snipe_client).run()
    writes_before = len(snipe_server.writes())
    config = copy.deepcopy(base_config)
    config["sync"] = {"refresh_provenance": False}

    result = _manager(config, devices, snipe_client).run()

    assert snipe_server.writes()[writes_before:] == []
    assert result.unchanged == 1


def test_source_failure_aborts_the_run(base_config: Dict[str, Any], snipe_client: SnipeITClient) -> None:
    class FailingSource:
        def fetch_devices(self) -> List[CanonicalDevice]:
            raise AuthError("bad credentials", status_code=401)

    with pytest.raises(AuthError):
        SyncManager(base_config, source=FailingSource(), target=snipe_client).run()


def test_preload_failure_aborts_the_run(base_config: Dict[str, Any],
                                        snipe_server: FakeSnipeServer,
                                        snipe_client: SnipeITClient) -> None:
    snipe_server.queue("GET", "categories", FakeResponse(503, None, text="maintenance"))

    with pytest.raises(ReferenceResolutionError):
        _manager(base_config, [_device(1, "SN1")], snipe_client).run()

    assert snipe_server.writes() == []


def test_result_serializes_failures(base_config: Dict[str, Any],
                                    snipe_server: FakeSnipeServer,
                                    snipe_client: SnipeITClient) -> None:
    snipe_server.queue("POST", "hardware", FakeResponse(500, None, text="boom"))

    data = _manager(base_config, [_device(1, "SN1")], snipe_client).run().to_dict()

    assert data["success"] is False
    assert data["failed"][0]["device_id"] == 1
    assert data["run_id"]


def test_scheduled_sync_rejects_missing_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    """Missing environment configuration fails before any network call."""
    for name in ("NINJA_BASE_URL", "NINJA_CLIENT_ID", "NINJA_CLIENT_SECRET", "NINJA_AUTH_ENDPOINT",
                 "NINJA_DEVICE_ENDPOINT", "SNIPE_BASE_URL", "SNIPE_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ConfigError):
        run_scheduled_sync()
