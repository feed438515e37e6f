"""Exceptions for modbus-convert: rule validation, per-rule decode failures, I/O errors."""

from typing import Any

from .types import ConversionResult, ValidationReport


class ModbusConvertError(Exception):
    """Base exception for modbus-convert."""

    pass


class RuleValidationError(ModbusConvertError):
    """Raised when a rule set is malformed; carries the full validation report."""

    def __init__(self, report: ValidationReport, message: str | None = None) -> None:
        self.report = report
        self._msg = message or format_report(report, "Conversion rules")
        super().__init__(self._msg)

    @property
    def errors(self) -> list[str]:
        return list(self.report.errors)

    @property
    def warnings(self) -> list[str]:
        return list(self.report.warnings)


class InsufficientRegistersError(ModbusConvertError):
    """Raised when a snapshot is shorter than the window a rule needs."""

    def __init__(self, rule_name: str, required: int, available: int) -> None:
        self.rule_name = rule_name
        self.required = required
        self.available = available
        super().__init__(
            f"Not enough registers available. Required: {required}, Available: {available}"
        )


class RangeValidationError(ModbusConvertError):
    """Raised when a decoded value fails its configured min/max or NaN check."""

    def __init__(self, rule_name: str, value: Any, message: str) -> None:
        self.rule_name = rule_name
        self.value = value
        super().__init__(message)


class ConversionFailedError(ModbusConvertError):
    """Raised under the stop_on_error policy for the first invalid result."""

    def __init__(self, result: ConversionResult) -> None:
        self.result = result
        super().__init__(f"Conversion {result.name!r} failed: {result.error}")


class SnapshotError(ModbusConvertError):
    """Raised when register data cannot be extracted from a payload."""

    pass


class UnknownPresetError(ModbusConvertError):
    """Raised when a preset id is not in the packaged preset library."""

    def __init__(self, preset_id: str, message: str | None = None) -> None:
        self.preset_id = preset_id
        super().__init__(message or f"Unknown preset: {preset_id!r}")


class ModbusIOError(ModbusConvertError):
    """Raised when a Modbus read fails (wraps pymodbus or connection errors)."""

    def __init__(
        self,
        message: str,
        *,
        function: str | None = None,
        address: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.function = function
        self.address = address
        self.cause = cause
        super().__init__(message)


def format_report(report: ValidationReport, context: str) -> str:
    """Render a validation report as a multi-line message."""
    lines = [f"{context} validation failed:"]
    if report.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"- {e}" for e in report.errors)
    if report.warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"- {w}" for w in report.warnings)
    return "\n".join(lines)
