"""Unit tests for the asset planner.

Devices, models and assets are built by hand so each planning rule is checked
without any Snipe-IT traffic.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from ninja_snipe_sync.ninja.models import CanonicalDevice, NodeClass, SystemInfo
from ninja_snipe_sync.snipeit.models import Asset, Manufacturer, Model
from ninja_snipe_sync.sync.reconciler import (
    ALWAYS_REFRESHED_FIELDS,
    AssetSettings,
    CreateAsset,
    NoOp,
    PatchAsset,
    memory_gib,
    plan_asset,
    serial_key,
    sync_notes,
)

NOW = datetime(2024, 3, 5, 7, 8, 9, 123456, tzinfo=timezone.utc)
GIB = 1024 ** 3

DELL = Manufacturer(id=11, name="Dell")
OPTIPLEX = Model(id=21, name="OptiPlex 7090", manufacturer_id=11, category_id=31)


def _device(serial: str = "SN1", name: str = "HOST-1", **system: Any) -> CanonicalDevice:
    values = {
        "name": name,
        "manufacturer": "Dell",
        "model": "OptiPlex 7090",
        "serial_number": serial,
        "domain": "corp.local",
        "domain_role": "MemberWorkstation",
        "number_of_processors": 8,
        "total_physical_memory": 16 * GIB,
    }
    values.update(system)
    return CanonicalDevice(id=1, system_name=name, node_class=NodeClass.WINDOWS_WORKSTATION,
                           system=SystemInfo(**values))


def _asset_matching(device: CanonicalDevice, asset_id: int = 501) -> Asset:
    return Asset(
        id=asset_id,
        name=device.system_name,
        serial=device.serial_number,
        model_id=OPTIPLEX.id,
        manufacturer_id=DELL.id,
        model_number=device.system.model,
    )


@pytest.mark.parametrize("raw", [None, "", "   ", "Unknown", "unknown"])
def test_serial_key_rejects_unmatchable_serials(raw: Any) -> None:
    assert serial_key(raw) is None


def test_serial_key_normalizes_case_and_whitespace() -> None:
    assert serial_key("  AbC-123 ") == "abc-123"


@pytest.mark.parametrize(
    ("total_bytes", "expected"),
    [(0, 0), (16 * GIB, 16), (int(8.5 * GIB), 9), (int(8.49 * GIB), 8), (None, 0)],
)
def test_memory_is_rounded_half_up_to_whole_gib(total_bytes: Any, expected: int) -> None:
    assert memory_gib(total_bytes) == expected


def test_notes_carry_timestamp_domain_and_role() -> None:
    assert sync_notes(_device(), NOW) == (
        "Last synced from Ninja RMM: 2024-03-05T07:08:09.123Z\n"
        "Domain: corp.local\n"
        "Role: MemberWorkstation"
    )


def test_notes_convert_offset_timestamps_to_utc() -> None:
    local = NOW.astimezone(timezone(timedelta(hours=8)))
    assert sync_notes(_device(), local).startswith("Last synced from Ninja RMM: 2024-03-05T07:08:09.123Z")


def test_absent_serial_plans_full_create() -> None:
    device = _device()

    plan = plan_asset(device, OPTIPLEX, DELL, {}, now=NOW)

    assert isinstance(plan, CreateAsset)
    assert plan.payload == {
        "status_id": 1,
        "model_id": 21,
        "name": "HOST-1",
        "serial": "SN1",
        "manufacturer_id": 11,
        "model_number": "OptiPlex 7090",
        "notes": sync_notes(device, NOW),
        "custom_fields": {"_snipeit_processor_count_1": 8, "_snipeit_memory_2": 16},
    }


def test_configured_field_names_and_status_are_used() -> None:
    settings = AssetSettings(status_id=4, processor_field="_snipeit_cpu_9", memory_field="_snipeit_ram_10")

    plan = plan_asset(_device(), OPTIPLEX, DELL, {}, now=NOW, settings=settings)

    assert plan.payload["status_id"] == 4
    assert plan.payload["custom_fields"] == {"_snipeit_cpu_9": 8, "_snipeit_ram_10": 16}


def test_unchanged_asset_still_refreshes_provenance() -> None:
    """An identical asset gets a patch of only the always-refreshed fields."""
    device = _device()
    existing = {"sn1": _asset_matching(device)}

    plan = plan_asset(device, OPTIPLEX, DELL, existing, now=NOW)

    assert isinstance(plan, PatchAsset)
    assert plan.asset_id == 501
    assert set(plan.changed_fields) == set(ALWAYS_REFRESHED_FIELDS)
    assert plan.structural_fields == ()
    assert not plan.is_structural


def test_structural_changes_are_reported() -> None:
    device = _device(name="HOST-RENAMED")
    asset = _asset_matching(_device())
    moved_model = Model(id=22, name="OptiPlex 7090", manufacturer_id=11, category_id=31)

    plan = plan_asset(device, moved_model, DELL, {"sn1": asset}, now=NOW)

    assert isinstance(plan, PatchAsset)
    assert plan.structural_fields == ("name", "model_id")
    assert plan.changed_fields["name"] == "HOST-RENAMED"
    assert plan.changed_fields["model_id"] == 22
    assert "manufacturer_id" not in plan.changed_fields
    assert plan.is_structural


def test_serial_matching_ignores_case() -> None:
    device = _device(serial="sn1")

    plan = plan_asset(device, OPTIPLEX, DELL, {"sn1": _asset_matching(_device(serial="SN1"))}, now=NOW)

    assert isinstance(plan, PatchAsset)


def test_no_op_only_when_refresh_policy_is_disabled() -> None:
    device = _device()

    plan = plan_asset(device, OPTIPLEX, DELL, {"sn1": _asset_matching(device)}, now=NOW, always_refreshed=())

    assert plan == NoOp(asset_id=501)


def test_disabled_refresh_policy_still_patches_structural_changes() -> None:
    device = _device(model="OptiPlex 7090 AIO")

    plan = plan_asset(device, OPTIPLEX, DELL, {"sn1": _asset_matching(_device())}, now=NOW, always_refreshed=())

    assert isinstance(plan, PatchAsset)
    assert plan.changed_fields == {"model_number": "OptiPlex 7090 AIO"}


def test_unknown_serial_never_matches_an_existing_asset() -> None:
    device = _device(serial="Unknown")

    plan = plan_asset(device, OPTIPLEX, DELL, {"unknown": _asset_matching(device)}, now=NOW)

    assert isinstance(plan, CreateAsset)


def test_created_asset_plans_no_structural_change_next_time() -> None:
    """Create then re-plan against the created record: only provenance is refreshed."""
    device = _device()
    created = plan_asset(device, OPTIPLEX, DELL, {}, now=NOW)
    asset = Asset.from_dict({"id": 777, **created.payload})

    plan = plan_asset(device, OPTIPLEX, DELL, {"sn1": asset}, now=NOW + timedelta(hours=1))

    assert isinstance(plan, PatchAsset)
    assert plan.structural_fields == ()
    assert plan.changed_fields["notes"] != created.payload["notes"]
