"""Tests for the packaged device presets."""

import pytest

from modbus_convert import UnknownPresetError, apply_preset, get_preset, list_presets, validate_rules
from modbus_convert.presets import normalize_byte_order

PRESET_IDS = [
    "temperature_sensor",
    "pressure_transmitter",
    "power_meter",
    "flow_meter",
    "plc_status",
    "vfd_drive",
    "tank_level",
    "energy_meter",
]


def test_all_presets_listed() -> None:
    assert [p.id for p in list_presets()] == PRESET_IDS


@pytest.mark.parametrize("preset_id", PRESET_IDS)
def test_every_preset_validates(preset_id: str) -> None:
    report = validate_rules(apply_preset(preset_id))
    assert report.valid, report.errors


def test_get_preset() -> None:
    preset = get_preset("power_meter")
    assert preset.name == "Power Meter"
    assert len(preset.conversions) == 7


def test_unknown_preset() -> None:
    with pytest.raises(UnknownPresetError) as exc:
        get_preset("toaster")
    assert exc.value.preset_id == "toaster"


def test_apply_preset_offset() -> None:
    rules = apply_preset("flow_meter", start_offset=10)
    assert [r["start_register"] for r in rules] == [10, 12]
    assert all(r["byte_order"] == "big_endian" for r in rules)


def test_apply_preset_returns_copies() -> None:
    rules = apply_preset("temperature_sensor")
    rules[0]["unit_conversion"]["to"] = "kelvin"
    rules[0]["start_register"] = 99
    fresh = apply_preset("temperature_sensor")
    assert fresh[0]["unit_conversion"]["to"] == "fahrenheit"
    assert fresh[0]["start_register"] == 0


def test_negative_offset_rejected() -> None:
    with pytest.raises(ValueError):
        apply_preset("flow_meter", start_offset=-1)


@pytest.mark.parametrize(
    "raw, expected",
    [("BE", "big_endian"), ("LE", "little_endian"), ("little_endian", "little_endian"), (None, "big_endian")],
)
def test_normalize_byte_order(raw: str | None, expected: str) -> None:
    assert normalize_byte_order(raw) == expected


def test_normalize_byte_order_unknown() -> None:
    with pytest.raises(ValueError, match="Unknown byte order"):
        normalize_byte_order("ME")
