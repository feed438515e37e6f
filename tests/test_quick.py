"""Tests for quick conversions and reader-output detection."""

import struct

import pytest

from modbus_convert import SnapshotError, detect_input, quick_convert, validate_rules
from modbus_convert.quick import QuickMode, suggest_rules
from modbus_convert.types import DataType


def test_single() -> None:
    result = quick_convert([0xFFFF], mode="single")
    assert result.values == {"value": 65535}
    assert result.metadata["data_type"] == "uint16"
    assert result.metadata["register_count"] == 1


def test_single_with_scale() -> None:
    result = quick_convert([250], mode="single", scale_factor=0.1)
    assert result.values["value"] == pytest.approx(25.0)
    assert result.metadata["scaling_applied"] is True


def test_float() -> None:
    result = quick_convert([16968, 41943], mode=QuickMode.FLOAT)
    assert result.values["value"] == pytest.approx(50.16, abs=1e-4)


def test_float_word_swap() -> None:
    result = quick_convert([41943, 16968], mode="float", word_swap=True)
    assert result.values["value"] == pytest.approx(50.16, abs=1e-4)
    assert result.metadata["word_swap"] is True


def test_float_requires_two_registers() -> None:
    with pytest.raises(SnapshotError, match="requires at least 2 registers, got 1"):
        quick_convert([1], mode="float")


@pytest.mark.parametrize(
    "long_value, expected",
    [("signed", {"value": -1}), ("unsigned", {"value": 4294967295}), ("both", {"value_signed": -1, "value_unsigned": 4294967295})],
)
def test_long(long_value: str, expected: dict) -> None:
    result = quick_convert([0xFFFF, 0xFFFF], mode="long", long_value=long_value)
    assert result.values == expected
    assert result.metadata["long_value"] == long_value


def test_double() -> None:
    words = list(struct.unpack(">4H", struct.pack(">d", -12.5)))
    assert quick_convert(words, mode="double").values["value"] == -12.5
    with pytest.raises(SnapshotError):
        quick_convert(words[:3], mode="double")


def test_bcd() -> None:
    assert quick_convert([0x1234], mode="bcd").values == {"value": 1234}


def test_bcd_invalid_reports_error() -> None:
    result = quick_convert([0x1A34], mode="bcd")
    assert "value" not in result.values
    assert "Invalid BCD digit" in result.values["value_error"]


def test_bitfield() -> None:
    bits = quick_convert([0b101], mode="bitfield").values["bits"]
    assert len(bits) == 16
    assert bits["bit_0"] is True
    assert bits["bit_1"] is False
    assert bits["bit_2"] is True
    assert bits["bit_15"] is False


def test_all_mode_keys_depend_on_length() -> None:
    one = quick_convert([0x0012]).values
    assert set(one) == {"single_int16", "single_uint16", "single_bcd", "single_bits"}
    assert one["single_bcd"] == 12

    two = quick_convert([16968, 41943]).values
    assert {"float32_value", "int32_value", "uint32_value"} <= set(two)
    assert "double_value" not in two
    assert two["single_bcd"] == 4248

    four = quick_convert([0, 0, 0, 0]).values
    assert four["double_value"] == 0.0


def test_rejects_invalid_registers() -> None:
    with pytest.raises(SnapshotError):
        quick_convert([70000])


def test_rejects_empty() -> None:
    with pytest.raises(SnapshotError):
        quick_convert([])


class TestDetection:
    def test_detects_reader_output(self) -> None:
        detection = detect_input({"function_code": "FC3", "address": 0, "quantity": 2, "data": [16968, 41943]})
        assert detection.is_modbus_data
        assert detection.function_code == "FC3"
        names = [s.name for s in detection.suggestions]
        assert names == ["temperature", "scaled_value", "counter_value"]
        assert detection.suggestions[0].confidence == 0.8

    def test_detects_first_item_of_list(self) -> None:
        detection = detect_input([{"functionCode": "FC1", "data": [1, 0, 1]}])
        assert detection.is_modbus_data
        assert [s.name for s in detection.suggestions] == ["status_bits"]

    def test_not_modbus(self) -> None:
        assert not detect_input({"data": [1, 2]}).is_modbus_data
        assert not detect_input("hello").is_modbus_data
        assert not detect_input([]).is_modbus_data

    def test_analog_suggestion_uses_signed_value(self) -> None:
        suggestions = suggest_rules("FC3", [0xFFF6])
        assert [s.name for s in suggestions] == ["analog_value", "scaled_value"]
        assert suggestions[0].data_type == DataType.INT16

    def test_suggestions_are_valid_rules(self) -> None:
        for suggestion in suggest_rules("FC3", [16968, 41943]) + suggest_rules("FC2", [1]):
            report = validate_rules([suggestion.to_rule()])
            assert report.valid, report.errors
