"""Batch conversion: one result per rule, error policy, output records."""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Sequence

from .decoder import decode
from .errors import ConversionFailedError
from .types import ConversionResult, ConversionRule, DataType, ErrorPolicy, NUMERIC_TYPES, OutputFormat
from .units import UnitCatalog, get_default_catalog
from .validator import RuleEntry, load_rules

logger = logging.getLogger(__name__)


def convert_all(
    registers: Sequence[int],
    rules: Sequence[ConversionRule],
    catalog: UnitCatalog | None = None,
) -> list[ConversionResult]:
    """Decode every rule independently; the list always has one entry per rule."""
    catalog = catalog or get_default_catalog()
    results = [decode(registers, rule, catalog) for rule in rules]
    invalid = sum(1 for r in results if not r.valid)
    logger.debug("Converted %d rules over %d registers (%d invalid)", len(results), len(registers), invalid)
    return results


def default_value_for(data_type: str) -> Any:
    """Substitute used by the default_values policy: 0 for numbers, False for bitfields."""
    try:
        dt = DataType(data_type)
    except ValueError:
        return None
    if dt == DataType.BITFIELD:
        return False
    if dt in NUMERIC_TYPES:
        return 0
    return None


def apply_policy(results: Sequence[ConversionResult], policy: ErrorPolicy | str) -> list[ConversionResult]:
    """
    Apply an error policy over a batch.

    stop_on_error raises ConversionFailedError for the first invalid result;
    skip_invalid drops invalid results; default_values replaces their value and
    marks them valid, keeping the original error text for inspection.
    """
    policy = ErrorPolicy(policy)
    if policy == ErrorPolicy.STOP_ON_ERROR:
        for result in results:
            if not result.valid:
                raise ConversionFailedError(result)
        return list(results)
    if policy == ErrorPolicy.SKIP_INVALID:
        return [r for r in results if r.valid]

    out: list[ConversionResult] = []
    for result in results:
        if result.valid:
            out.append(result)
        else:
            out.append(replace(result, value=default_value_for(result.data_type), valid=True))
    return out


def build_record(
    registers: Sequence[int],
    results: Sequence[ConversionResult],
    output_format: OutputFormat | str = OutputFormat.INDIVIDUAL_FIELDS,
) -> dict[str, Any]:
    """Flatten results into the output record handed back to the host."""
    output_format = OutputFormat(output_format)
    record: dict[str, Any] = {
        "_registers": list(registers),
        "_register_count": len(registers),
    }
    if output_format in (OutputFormat.INDIVIDUAL_FIELDS, OutputFormat.BOTH):
        for result in results:
            if result.valid:
                record[result.name] = result.value
            else:
                record[f"{result.name}_error"] = result.error
    if output_format in (OutputFormat.CONVERSION_OBJECT, OutputFormat.BOTH):
        record["conversions"] = [r.as_dict() for r in results]
    return record


@dataclass(frozen=True)
class ConverterSettings:
    policy: ErrorPolicy = ErrorPolicy.STOP_ON_ERROR
    output_format: OutputFormat = OutputFormat.INDIVIDUAL_FIELDS
    catalog: UnitCatalog | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Coerce plain strings from configuration into enum members
        object.__setattr__(self, "policy", ErrorPolicy(self.policy))
        object.__setattr__(self, "output_format", OutputFormat(self.output_format))


class Converter:
    """
    A validated rule set plus settings, reused across many register snapshots.

    Rules are validated once on construction (RuleValidationError on failure);
    each convert() call is independent and touches no shared mutable state.
    """

    def __init__(self, rules: Sequence[RuleEntry], settings: ConverterSettings | None = None) -> None:
        self._settings = settings or ConverterSettings()
        self._catalog = self._settings.catalog or get_default_catalog()
        self._rules = load_rules(rules, self._catalog)

    @property
    def rules(self) -> tuple[ConversionRule, ...]:
        return self._rules

    @property
    def settings(self) -> ConverterSettings:
        return self._settings

    def convert_raw(self, registers: Sequence[int]) -> list[ConversionResult]:
        """One result per rule, before the error policy is applied."""
        return convert_all(registers, self._rules, self._catalog)

    def convert(self, registers: Sequence[int]) -> list[ConversionResult]:
        return apply_policy(self.convert_raw(registers), self._settings.policy)

    def convert_record(self, registers: Sequence[int]) -> dict[str, Any]:
        return build_record(registers, self.convert(registers), self._settings.output_format)

    def convert_values(self, registers: Sequence[int]) -> dict[str, Any]:
        """name -> value for every result that survives the policy."""
        return {r.name: r.value for r in self.convert(registers) if r.valid}
