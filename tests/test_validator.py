"""Tests for rule-set validation and loading."""

import pytest

from modbus_convert import RuleValidationError, find_overlaps, load_rules, validate_rules
from modbus_convert.types import ByteOrder, ConversionRule, DataType, ScaledParams
from modbus_convert.validator import register_window, validate_rule


def entry(name: str = "value", start: int = 0, data_type: str = "int16", **extra) -> dict:
    out = {"name": name, "start_register": start, "data_type": data_type, "byte_order": "big_endian"}
    out.update(extra)
    return out


def test_valid_rule_set() -> None:
    report = validate_rules([entry("a", 0, "float32"), entry("b", 2, "int16")])
    assert report.valid
    assert report.errors == []
    assert report.warnings == []


def test_rules_must_be_list() -> None:
    report = validate_rules("not a list")
    assert not report.valid
    assert report.errors == ["Conversion rules must be a list"]


def test_empty_rule_set() -> None:
    report = validate_rules([])
    assert not report.valid
    assert report.errors == ["At least one conversion rule is required"]


@pytest.mark.parametrize(
    "bad, message",
    [
        ({"name": ""}, "Rule 1: Name is required"),
        ({"start_register": -1}, "Rule 1: Start register must be an integer >= 0"),
        ({"start_register": 1.5}, "Rule 1: Start register must be an integer >= 0"),
        ({"data_type": ""}, "Rule 1: Data type is required"),
        ({"data_type": "int64"}, "Rule 1: Unsupported data type 'int64'"),
        ({"byte_order": None}, "Rule 1: Byte order is required"),
        ({"byte_order": "middle_endian"}, "Rule 1: Unsupported byte order 'middle_endian'"),
        ({"decimal_places": 11}, "Rule 1: Decimal places must be between 0 and 10"),
    ],
)
def test_structural_errors(bad: dict, message: str) -> None:
    rule = entry()
    rule.update(bad)
    report = validate_rules([rule])
    assert not report.valid
    assert message in report.errors


def test_error_index_is_one_based() -> None:
    report = validate_rules([entry("a"), entry("b", 1, "nope")])
    assert report.errors == ["Rule 2: Unsupported data type 'nope'"]


def test_bitfield_requires_mask_or_position() -> None:
    report = validate_rules([entry(data_type="bitfield")])
    assert "Rule 1: Bitfield conversion requires bit mask or bit position" in report.errors


@pytest.mark.parametrize(
    "extra, message",
    [
        ({"bit_mask": 0x10000}, "Rule 1: Bit mask must be an integer between 0 and 0xFFFF"),
        ({"bit_position": 16}, "Rule 1: Bit position must be between 0 and 15"),
        ({"bit_position": 0, "bit_length": 0}, "Rule 1: Bit length must be between 1 and 16"),
        ({"bit_position": 0, "bit_length": 17}, "Rule 1: Bit length must be between 1 and 16"),
    ],
)
def test_bitfield_bounds(extra: dict, message: str) -> None:
    report = validate_rules([entry(data_type="bitfield", **extra)])
    assert message in report.errors


def test_bitfield_bounds_accepted_at_edges() -> None:
    report = validate_rules(
        [
            entry("mask", 0, "bitfield", bit_mask=0xFFFF),
            entry("bit", 1, "bitfield", bit_position=15, bit_length=1),
            entry("range", 2, "bitfield", bit_position=0, bit_length=16),
        ]
    )
    assert report.valid, report.errors


def test_scaled_without_parameters_warns() -> None:
    report = validate_rules([entry(data_type="scaled")])
    assert report.valid
    assert report.warnings == ["Rule 1: Scaled conversion without scale factor or offset"]


def test_validation_min_greater_than_max() -> None:
    report = validate_rules([entry(validation={"enabled": True, "min": 10, "max": 5})])
    assert report.errors == ["Rule 1: Validation minimum cannot be greater than maximum"]


def test_disabled_validation_is_not_checked() -> None:
    report = validate_rules([entry(validation={"enabled": False, "min": 10, "max": 5})])
    assert report.valid


def test_unit_conversion_checks() -> None:
    missing = validate_rules([entry(unit_conversion={"from": "celsius"})])
    assert "Rule 1: Unit conversion requires both 'from' and 'to' units" in missing.errors

    same = validate_rules([entry(unit_conversion={"from": "bar", "to": "bar"})])
    assert same.valid
    assert same.warnings == ["Rule 1: Unit conversion from and to are the same"]

    unknown = validate_rules([entry(unit_conversion={"from": "furlong", "to": "celsius"})])
    assert unknown.valid
    assert "Rule 1: Unknown unit 'furlong'" in unknown.warnings
    assert "Rule 1: No conversion available from furlong to celsius" in unknown.warnings


@pytest.mark.parametrize(
    "bad, message",
    [
        ({"data_type": ["int16"]}, "Rule 1: Unsupported data type '['int16']'"),
        ({"byte_order": {"order": "big"}}, "Rule 1: Unsupported byte order '{'order': 'big'}'"),
        (
            {"validation": {"enabled": True, "min": "10", "max": 5}},
            "Rule 1: Validation minimum and maximum must be numbers",
        ),
        (
            {"validation": {"enabled": True, "min": True, "max": 5}},
            "Rule 1: Validation minimum and maximum must be numbers",
        ),
        ({"validation": "strict"}, "Rule 1: Validation must be an object"),
        (
            {"unit_conversion": {"from": ["c"], "to": "fahrenheit"}},
            "Rule 1: Unit conversion requires both 'from' and 'to' units",
        ),
        ({"unit_conversion": "celsius"}, "Rule 1: Unit conversion requires both 'from' and 'to' units"),
    ],
)
def test_malformed_values_are_reported(bad: dict, message: str) -> None:
    rule = entry()
    rule.update(bad)
    report = validate_rules([rule])
    assert not report.valid
    assert message in report.errors


def test_malformed_data_type_has_no_register_window() -> None:
    assert register_window(entry(data_type=["int16"])) is None


def test_empty_unit_conversion_is_an_error() -> None:
    report = validate_rules([entry(unit_conversion={})])
    assert not report.valid
    assert report.errors == ["Rule 1: Unit conversion requires both 'from' and 'to' units"]


def test_duplicate_names_are_case_insensitive() -> None:
    report = validate_rules([entry("Temp", 0), entry(" temp ", 1), entry("other", 2)])
    assert not report.valid
    assert "Duplicate conversion names found: Temp" in report.errors


def test_duplicate_names_keep_first_spelling() -> None:
    report = validate_rules([entry("FlowRate", 0), entry("flowrate", 1), entry("FLOWRATE", 2)])
    assert report.errors == ["Duplicate conversion names found: FlowRate"]


def test_overlap_is_warning() -> None:
    report = validate_rules([entry("A", 0, "float32"), entry("B", 1, "int16")])
    assert report.valid
    assert report.warnings == ["Register overlaps detected: A and B"]


def test_find_overlaps_pairs() -> None:
    rules = [entry("a", 0, "double"), entry("b", 3, "int16"), entry("c", 4, "uint32"), entry("d", 5, "int16")]
    assert find_overlaps(rules) == [("a", "b"), ("c", "d")]


def test_register_window() -> None:
    assert register_window(entry(start=4, data_type="double")) == (4, 7)
    assert register_window(entry(start=-1)) is None
    assert register_window(entry(data_type="unknown")) is None


def test_camel_case_keys_accepted() -> None:
    report = validate_rules(
        [{"name": "t", "startRegister": 0, "dataType": "float32", "byteOrder": "little_endian", "wordSwap": True}]
    )
    assert report.valid


def test_validate_rule_accepts_typed_rule() -> None:
    rule = ConversionRule(name="p", start_register=0, data_type=DataType.SCALED, params=ScaledParams(0.1))
    assert validate_rule(rule, 0).valid


def test_load_rules_builds_typed_rules() -> None:
    rules = load_rules(
        [
            entry("temp", 0, "float32", decimal_places=2, unit_conversion={"from": "celsius", "to": "fahrenheit"}),
            entry("flags", 2, "bitfield", bit_position=3),
            {"name": "le", "start_register": 3, "data_type": "int32", "byte_order": "little_endian"},
        ]
    )
    assert [r.name for r in rules] == ["temp", "flags", "le"]
    assert rules[0].unit_conversion.label == "celsius to fahrenheit"
    assert rules[1].params.bit_position == 3
    assert rules[2].byte_order == ByteOrder.LITTLE_ENDIAN


def test_load_rules_raises_with_report() -> None:
    with pytest.raises(RuleValidationError) as exc:
        load_rules([entry("a"), entry("a", 1)])
    assert exc.value.errors == ["Duplicate conversion names found: a"]
    assert "Conversion rules validation failed:" in str(exc.value)


def test_load_rules_logs_warnings(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="modbus_convert.validator"):
        load_rules([entry("A", 0, "float32"), entry("B", 1, "int16")])
    assert "Register overlaps detected: A and B" in caplog.text
