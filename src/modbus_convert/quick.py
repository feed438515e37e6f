"""Rule-less quick conversions and reader-output detection with rule suggestions."""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from .decoder import decode, decode_float32, decode_int16, extract_bits, is_number
from .errors import SnapshotError
from .snapshot import make_snapshot
from .types import ByteOrder, ConversionRule, DataType

logger = logging.getLogger(__name__)


class QuickMode(str, Enum):
    SINGLE = "single"
    FLOAT = "float"
    LONG = "long"
    DOUBLE = "double"
    BCD = "bcd"
    BITFIELD = "bitfield"
    ALL = "all"


class LongValue(str, Enum):
    SIGNED = "signed"
    UNSIGNED = "unsigned"
    BOTH = "both"


@dataclass
class QuickConversion:
    mode: QuickMode
    values: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)


def _decode_at_zero(
    registers: Sequence[int],
    data_type: DataType,
    byte_order: ByteOrder,
    word_swap: bool,
) -> Any:
    """Decode registers[0:] as one type; None when the decode is invalid."""
    rule = ConversionRule(
        name=data_type.value,
        start_register=0,
        data_type=data_type,
        byte_order=byte_order,
        word_swap=word_swap and data_type.footprint == 2,
    )
    result = decode(registers, rule)
    return result.value if result.valid else None


def _require(registers: Sequence[int], count: int, mode: QuickMode) -> None:
    if len(registers) < count:
        raise SnapshotError(f"Quick mode {mode.value!r} requires at least {count} registers, got {len(registers)}")


def quick_convert(
    registers: Sequence[int],
    mode: QuickMode | str = QuickMode.ALL,
    byte_order: ByteOrder | str = ByteOrder.BIG_ENDIAN,
    word_swap: bool = False,
    scale_factor: float | None = None,
    long_value: LongValue | str = LongValue.SIGNED,
) -> QuickConversion:
    """
    Convert the leading registers without authoring a rule.

    Every decode goes through the same Decoder as rule-based conversion, so BCD
    and byte-order semantics are identical in both paths.
    """
    mode = QuickMode(mode)
    byte_order = ByteOrder(byte_order)
    long_value = LongValue(long_value)
    snapshot = make_snapshot(registers)
    if not snapshot:
        raise SnapshotError("No register data found in input")

    def scaled(value: Any) -> Any:
        if scale_factor is None or not is_number(value):
            return value
        return value * scale_factor

    values: dict[str, Any] = {}
    data_type: str | None = None

    if mode == QuickMode.SINGLE:
        values["value"] = scaled(snapshot[0])
        data_type = DataType.UINT16.value
    elif mode == QuickMode.FLOAT:
        _require(snapshot, 2, mode)
        values["value"] = scaled(_decode_at_zero(snapshot, DataType.FLOAT32, byte_order, word_swap))
        data_type = DataType.FLOAT32.value
    elif mode == QuickMode.LONG:
        _require(snapshot, 2, mode)
        signed = scaled(_decode_at_zero(snapshot, DataType.INT32, byte_order, word_swap))
        unsigned = scaled(_decode_at_zero(snapshot, DataType.UINT32, byte_order, word_swap))
        if long_value == LongValue.SIGNED:
            values["value"] = signed
            data_type = DataType.INT32.value
        elif long_value == LongValue.UNSIGNED:
            values["value"] = unsigned
            data_type = DataType.UINT32.value
        else:
            values["value_signed"] = signed
            values["value_unsigned"] = unsigned
            data_type = "int32/uint32"
    elif mode == QuickMode.DOUBLE:
        _require(snapshot, 4, mode)
        values["value"] = scaled(_decode_at_zero(snapshot, DataType.DOUBLE, byte_order, False))
        data_type = DataType.DOUBLE.value
    elif mode == QuickMode.BCD:
        rule = ConversionRule(name="value", start_register=0, data_type=DataType.BCD)
        result = decode(snapshot, rule)
        if not result.valid:
            values["value_error"] = result.error
        else:
            values["value"] = scaled(result.value)
        data_type = DataType.BCD.value
    elif mode == QuickMode.BITFIELD:
        values["bits"] = extract_bits(snapshot[0])
        data_type = DataType.BITFIELD.value
    else:
        values["single_int16"] = scaled(decode_int16(snapshot[0]))
        values["single_uint16"] = scaled(snapshot[0])
        values["single_bcd"] = scaled(_decode_at_zero(snapshot, DataType.BCD, byte_order, False))
        values["single_bits"] = extract_bits(snapshot[0])
        if len(snapshot) >= 2:
            values["float32_value"] = scaled(_decode_at_zero(snapshot, DataType.FLOAT32, byte_order, word_swap))
            values["int32_value"] = scaled(_decode_at_zero(snapshot, DataType.INT32, byte_order, word_swap))
            values["uint32_value"] = scaled(_decode_at_zero(snapshot, DataType.UINT32, byte_order, word_swap))
        if len(snapshot) >= 4:
            values["double_value"] = scaled(_decode_at_zero(snapshot, DataType.DOUBLE, byte_order, False))

    metadata: dict[str, Any] = {
        "type": mode.value,
        "byte_order": byte_order.value,
        "word_swap": word_swap,
        "raw_registers": list(snapshot),
        "register_count": len(snapshot),
    }
    if data_type is not None:
        metadata["data_type"] = data_type
    if scale_factor is not None:
        metadata["scale_factor"] = scale_factor
        metadata["scaling_applied"] = True
    if mode == QuickMode.LONG:
        metadata["long_value"] = long_value.value
    return QuickConversion(mode=mode, values=values, metadata=metadata)


# ----------------------------------------------------------------------------
# Input detection
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class SuggestedRule:
    name: str
    data_type: DataType
    start_register: int
    confidence: float
    reason: str

    def to_rule(self) -> dict[str, Any]:
        """A rule mapping that passes validation as-is."""
        rule: dict[str, Any] = {
            "name": self.name,
            "start_register": self.start_register,
            "data_type": self.data_type.value,
            "byte_order": ByteOrder.BIG_ENDIAN.value,
        }
        if self.data_type == DataType.BITFIELD:
            rule["bit_mask"] = 0xFFFF
        elif self.data_type == DataType.SCALED:
            rule["scale_factor"] = 0.01
        return rule


@dataclass
class DetectionResult:
    is_modbus_data: bool
    function_code: str | None = None
    address: int | None = None
    quantity: int | None = None
    data: list[int] = field(default_factory=list)
    suggestions: list[SuggestedRule] = field(default_factory=list)


def _float32_suggestion(first: int, second: int) -> SuggestedRule | None:
    value = decode_float32([first, second], ByteOrder.BIG_ENDIAN)
    if not math.isfinite(value):
        return None
    if -50 <= value <= 150:
        return SuggestedRule("temperature", DataType.FLOAT32, 0, 0.8, f"Value {value:.2f} is in typical temperature range")
    if 0 <= value <= 1000:
        return SuggestedRule("pressure", DataType.FLOAT32, 0, 0.7, f"Value {value:.2f} is in typical pressure range")
    if -10000 <= value <= 10000:
        return SuggestedRule("measurement", DataType.FLOAT32, 0, 0.5, "Value appears to be a valid floating-point measurement")
    return None


def suggest_rules(function_code: str, data: Sequence[int]) -> list[SuggestedRule]:
    """Heuristic rule suggestions for one block of reader output."""
    if function_code in ("FC1", "FC2"):
        return [SuggestedRule("status_bits", DataType.BITFIELD, 0, 1.0, "Coil/Discrete input data is typically boolean")]

    suggestions: list[SuggestedRule] = []
    if not data:
        return suggestions

    if len(data) >= 2:
        float_guess = _float32_suggestion(data[0], data[1])
        if float_guess is not None:
            suggestions.append(float_guess)

    if -1000 <= decode_int16(data[0]) <= 1000:
        suggestions.append(SuggestedRule("analog_value", DataType.INT16, 0, 0.7, "Value is in typical analog sensor range"))

    if any(value > 10000 for value in data):
        suggestions.append(SuggestedRule("scaled_value", DataType.SCALED, 0, 0.6, "Large values often indicate scaling is needed"))

    if len(data) >= 2 and (data[0] > 32767 or data[1] > 0):
        suggestions.append(
            SuggestedRule("counter_value", DataType.UINT32, 0, 0.5, "Multiple registers with high values suggest 32-bit counter")
        )
    return suggestions


def detect_input(payload: Any) -> DetectionResult:
    """Recognise RegisterReader output (or a list of it) and suggest rules for it."""
    item = payload
    if isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)) and payload:
        item = payload[0]
    if not isinstance(item, Mapping):
        return DetectionResult(is_modbus_data=False)

    function_code = item.get("function_code") or item.get("functionCode")
    data = item.get("data")
    if not function_code or not isinstance(data, Sequence) or isinstance(data, (str, bytes)):
        return DetectionResult(is_modbus_data=False)

    registers = list(make_snapshot(data))
    suggestions = suggest_rules(str(function_code), registers)
    logger.debug("Detected %s block of %d registers, %d suggestions", function_code, len(registers), len(suggestions))
    return DetectionResult(
        is_modbus_data=True,
        function_code=str(function_code),
        address=item.get("address"),
        quantity=item.get("quantity"),
        data=registers,
        suggestions=suggestions,
    )
