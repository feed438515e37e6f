"""Static checks over a rule set: required fields, bounds, duplicates, register overlaps."""

import logging
from typing import Any, Mapping, Sequence, Union

from .errors import RuleValidationError
from .types import ByteOrder, ConversionRule, DataType, ValidationReport, normalize_keys
from .units import UnitCatalog, get_default_catalog

logger = logging.getLogger(__name__)

RuleEntry = Union[Mapping[str, Any], ConversionRule]

SUPPORTED_DATA_TYPES = frozenset(dt.value for dt in DataType)
SUPPORTED_BYTE_ORDERS = frozenset(bo.value for bo in ByteOrder)


def _as_mapping(entry: RuleEntry) -> dict[str, Any]:
    if isinstance(entry, ConversionRule):
        return entry.to_mapping()
    return normalize_keys(entry)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _enum_value(value: Any) -> Any:
    """Accept enum members as well as their string values."""
    return getattr(value, "value", value)


def validate_rule(
    entry: RuleEntry,
    index: int,
    catalog: UnitCatalog | None = None,
) -> ValidationReport:
    """Validate a single rule; messages are prefixed with its 1-based position."""
    report = ValidationReport()
    rule = _as_mapping(entry)
    prefix = f"Rule {index + 1}"

    name = rule.get("name")
    if not isinstance(name, str) or not name.strip():
        report.errors.append(f"{prefix}: Name is required")

    start = rule.get("start_register")
    if start is None or not _is_int(start) or start < 0:
        report.errors.append(f"{prefix}: Start register must be an integer >= 0")

    data_type = _enum_value(rule.get("data_type"))
    if not data_type:
        report.errors.append(f"{prefix}: Data type is required")
    elif not isinstance(data_type, str) or data_type not in SUPPORTED_DATA_TYPES:
        report.errors.append(f"{prefix}: Unsupported data type '{data_type}'")

    byte_order = _enum_value(rule.get("byte_order"))
    if not byte_order:
        report.errors.append(f"{prefix}: Byte order is required")
    elif not isinstance(byte_order, str) or byte_order not in SUPPORTED_BYTE_ORDERS:
        report.errors.append(f"{prefix}: Unsupported byte order '{byte_order}'")

    if data_type == DataType.SCALED.value:
        if rule.get("scale_factor") is None and rule.get("offset") is None:
            report.warnings.append(f"{prefix}: Scaled conversion without scale factor or offset")
    elif data_type == DataType.BITFIELD.value:
        bit_mask = rule.get("bit_mask")
        bit_position = rule.get("bit_position")
        bit_length = rule.get("bit_length")
        if bit_mask is None and bit_position is None:
            report.errors.append(f"{prefix}: Bitfield conversion requires bit mask or bit position")
        if bit_mask is not None and (not _is_int(bit_mask) or not 0 <= bit_mask <= 0xFFFF):
            report.errors.append(f"{prefix}: Bit mask must be an integer between 0 and 0xFFFF")
        if bit_position is not None and (not _is_int(bit_position) or not 0 <= bit_position <= 15):
            report.errors.append(f"{prefix}: Bit position must be between 0 and 15")
        if bit_length is not None and (not _is_int(bit_length) or not 1 <= bit_length <= 16):
            report.errors.append(f"{prefix}: Bit length must be between 1 and 16")

    validation = rule.get("validation")
    if validation is not None and not isinstance(validation, Mapping):
        report.errors.append(f"{prefix}: Validation must be an object")
    elif validation is not None and validation.get("enabled"):
        vmin, vmax = validation.get("min"), validation.get("max")
        bad_bounds = [b for b in (vmin, vmax) if b is not None and not _is_number(b)]
        if bad_bounds:
            report.errors.append(f"{prefix}: Validation minimum and maximum must be numbers")
        elif vmin is not None and vmax is not None and vmin > vmax:
            report.errors.append(f"{prefix}: Validation minimum cannot be greater than maximum")

    units = rule.get("unit_conversion")
    if units is not None:
        src = units.get("from") if isinstance(units, Mapping) else None
        dst = units.get("to") if isinstance(units, Mapping) else None
        if not isinstance(src, str) or not isinstance(dst, str) or not src or not dst:
            report.errors.append(f"{prefix}: Unit conversion requires both 'from' and 'to' units")
        elif src == dst:
            report.warnings.append(f"{prefix}: Unit conversion from and to are the same")
        else:
            cat = catalog or get_default_catalog()
            for unit in (src, dst):
                if cat.find_unit(unit) is None:
                    report.warnings.append(f"{prefix}: Unknown unit '{unit}'")
            if not cat.is_available(src, dst):
                report.warnings.append(f"{prefix}: No conversion available from {src} to {dst}")

    places = rule.get("decimal_places")
    if places is not None and (not _is_int(places) or not 0 <= places <= 10):
        report.errors.append(f"{prefix}: Decimal places must be between 0 and 10")

    report.valid = not report.errors
    return report


def register_window(entry: RuleEntry) -> tuple[int, int] | None:
    """Inclusive register range a rule reads, or None when it cannot be computed."""
    rule = _as_mapping(entry)
    start = rule.get("start_register")
    data_type = _enum_value(rule.get("data_type"))
    if not _is_int(start) or start < 0 or not isinstance(data_type, str) or data_type not in SUPPORTED_DATA_TYPES:
        return None
    return start, start + DataType(data_type).footprint - 1


def find_overlaps(entries: Sequence[RuleEntry]) -> list[tuple[str, str]]:
    """Every pair of rules whose register windows intersect, in rule order."""
    ranges: list[tuple[str, int, int]] = []
    for entry in entries:
        window = register_window(entry)
        if window is not None:
            ranges.append((str(_as_mapping(entry).get("name")), window[0], window[1]))

    overlaps: list[tuple[str, str]] = []
    for i, (name_a, start_a, end_a) in enumerate(ranges):
        for name_b, start_b, end_b in ranges[i + 1 :]:
            if start_a <= end_b and start_b <= end_a:
                overlaps.append((name_a, name_b))
    return overlaps


def validate_rules(
    entries: Sequence[RuleEntry],
    catalog: UnitCatalog | None = None,
) -> ValidationReport:
    """Validate a whole rule set; overlaps are warnings, everything structural is an error."""
    report = ValidationReport()

    if isinstance(entries, (str, bytes)) or not isinstance(entries, Sequence):
        report.errors.append("Conversion rules must be a list")
        report.valid = False
        return report

    if not entries:
        report.errors.append("At least one conversion rule is required")
        report.valid = False
        return report

    for index, entry in enumerate(entries):
        if not isinstance(entry, (Mapping, ConversionRule)):
            report.errors.append(f"Rule {index + 1}: Expected a mapping, got {type(entry).__name__}")
            continue
        rule_report = validate_rule(entry, index, catalog)
        report.errors.extend(rule_report.errors)
        report.warnings.extend(rule_report.warnings)

    rule_entries = [e for e in entries if isinstance(e, (Mapping, ConversionRule))]

    # lowercased name -> first spelling seen
    seen: dict[str, str] = {}
    duplicates: list[str] = []
    for entry in rule_entries:
        name = _as_mapping(entry).get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        key = name.strip().lower()
        if key in seen and seen[key] not in duplicates:
            duplicates.append(seen[key])
        seen.setdefault(key, name.strip())
    if duplicates:
        report.errors.append(f"Duplicate conversion names found: {', '.join(duplicates)}")

    overlaps = find_overlaps(rule_entries)
    if overlaps:
        pairs = ", ".join(f"{a} and {b}" for a, b in overlaps)
        report.warnings.append(f"Register overlaps detected: {pairs}")

    report.valid = not report.errors
    return report


def load_rules(
    entries: Sequence[RuleEntry],
    catalog: UnitCatalog | None = None,
) -> tuple[ConversionRule, ...]:
    """
    Validate a rule set and build typed rules from it.

    Raises RuleValidationError when any blocking error is found. Warnings are logged
    and otherwise ignored.
    """
    report = validate_rules(entries, catalog)
    if not report.valid:
        raise RuleValidationError(report)
    for warning in report.warnings:
        logger.warning("Rule validation: %s", warning)

    rules = tuple(e if isinstance(e, ConversionRule) else ConversionRule.from_mapping(e) for e in entries)
    logger.debug("Loaded %d conversion rules", len(rules))
    return rules
