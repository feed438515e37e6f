"""Decode a register window into a typed value according to one ConversionRule."""

import logging
import math
import struct
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Sequence

from .errors import InsufficientRegistersError, RangeValidationError
from .types import (
    BitfieldParams,
    ByteOrder,
    ConversionResult,
    ConversionRule,
    DataType,
    ScaledParams,
    ValueValidation,
)
from .units import UnitCatalog, get_default_catalog

logger = logging.getLogger(__name__)


def is_number(value: Any) -> bool:
    """True for int/float values; bool is a flag, not a number."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ----------------------------------------------------------------------------
# Single-register types
# ----------------------------------------------------------------------------


def decode_int16(word: int) -> int:
    """Reinterpret an unsigned 16-bit word as two's complement."""
    word &= 0xFFFF
    if word > 32767:
        return word - 65536
    return word


def decode_uint16(word: int) -> int:
    return word & 0xFFFF


def decode_scaled(word: int, params: ScaledParams) -> int | float:
    """raw * scale_factor + offset; the raw word stays unsigned."""
    value: int | float = word & 0xFFFF
    if params.scale_factor is not None:
        value *= params.scale_factor
    if params.offset is not None:
        value += params.offset
    return value


def decode_bitfield(word: int, params: BitfieldParams) -> int | bool:
    """Mask, or shift-and-mask a bit range; a single bit comes back as bool."""
    if params.bit_mask is not None:
        return word & params.bit_mask
    if params.bit_position is not None:
        bit_length = params.bit_length or 1
        mask = (1 << bit_length) - 1
        value = (word >> params.bit_position) & mask
        if bit_length == 1:
            return bool(value)
        return value
    return word


def decode_bcd(word: int) -> int:
    """
    Decode a 16-bit packed BCD word: 0x1234 -> 1234.

    Raises ValueError when any nibble is above 9.
    """
    digits = [(word >> shift) & 0x0F for shift in (12, 8, 4, 0)]
    for digit in digits:
        if digit > 9:
            raise ValueError(f"Invalid BCD digit {digit:X} in register 0x{word & 0xFFFF:04X}")
    high = digits[0] * 10 + digits[1]
    low = digits[2] * 10 + digits[3]
    return high * 100 + low


def extract_bits(word: int) -> dict[str, bool]:
    """All 16 bits of a word as {"bit_0": ..., "bit_15": ...}."""
    return {f"bit_{i}": bool(word & (1 << i)) for i in range(16)}


# ----------------------------------------------------------------------------
# Multi-register types
# ----------------------------------------------------------------------------


def order_words(words: Sequence[int], byte_order: ByteOrder, word_swap: bool = False) -> tuple[int, int]:
    """
    Return (high, low) for a two-register value.

    word_swap exchanges which register counts as first; byte_order then decides
    whether the first word is the high half (big endian) or the low half.
    """
    first, second = words[0] & 0xFFFF, words[1] & 0xFFFF
    if word_swap:
        first, second = second, first
    if byte_order == ByteOrder.BIG_ENDIAN:
        return first, second
    return second, first


def assemble_uint32(words: Sequence[int], byte_order: ByteOrder, word_swap: bool = False) -> int:
    high, low = order_words(words, byte_order, word_swap)
    return ((high << 16) | low) & 0xFFFFFFFF


def decode_uint32(words: Sequence[int], byte_order: ByteOrder, word_swap: bool = False) -> int:
    return assemble_uint32(words, byte_order, word_swap)


def decode_int32(words: Sequence[int], byte_order: ByteOrder, word_swap: bool = False) -> int:
    raw = assemble_uint32(words, byte_order, word_swap)
    if raw > 2147483647:
        return raw - 4294967296
    return raw


def decode_float32(words: Sequence[int], byte_order: ByteOrder, word_swap: bool = False) -> float:
    high, low = order_words(words, byte_order, word_swap)
    return struct.unpack(">f", struct.pack(">HH", high, low))[0]


def decode_double(words: Sequence[int], byte_order: ByteOrder) -> float:
    """Four registers as IEEE-754 double; little endian reverses the word order."""
    ordered = [w & 0xFFFF for w in words[:4]]
    if byte_order == ByteOrder.LITTLE_ENDIAN:
        ordered.reverse()
    return struct.unpack(">d", struct.pack(">4H", *ordered))[0]


# ----------------------------------------------------------------------------
# Post-processing
# ----------------------------------------------------------------------------


def round_half_away(value: float, places: int) -> float:
    """Round to ``places`` decimals, halves away from zero. Ints and non-finite pass through."""
    if isinstance(value, int) or not math.isfinite(value):
        return value
    with localcontext() as ctx:
        ctx.prec = 400
        quantum = Decimal(1).scaleb(-places)
        return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def check_value(name: str, value: Any, validation: ValueValidation) -> None:
    """Raise RangeValidationError when a numeric value fails the configured checks."""
    if not is_number(value):
        return
    if isinstance(value, float) and math.isnan(value):
        if not validation.allow_nan:
            raise RangeValidationError(name, value, "Value is NaN")
        return
    if validation.min is not None and value < validation.min:
        raise RangeValidationError(name, value, f"Value {value} is below minimum {validation.min}")
    if validation.max is not None and value > validation.max:
        raise RangeValidationError(name, value, f"Value {value} is above maximum {validation.max}")


def decode_window(window: Sequence[int], rule: ConversionRule) -> Any:
    """Decode an already-sliced register window (len == rule.footprint)."""
    dt = rule.data_type
    if dt == DataType.INT16:
        return decode_int16(window[0])
    if dt == DataType.UINT16:
        return decode_uint16(window[0])
    if dt == DataType.INT32:
        return decode_int32(window, rule.byte_order, rule.word_swap)
    if dt == DataType.UINT32:
        return decode_uint32(window, rule.byte_order, rule.word_swap)
    if dt == DataType.FLOAT32:
        return decode_float32(window, rule.byte_order, rule.word_swap)
    if dt == DataType.DOUBLE:
        return decode_double(window, rule.byte_order)
    if dt == DataType.SCALED:
        return decode_scaled(window[0], rule.params)
    if dt == DataType.BITFIELD:
        return decode_bitfield(window[0], rule.params)
    if dt == DataType.BCD:
        return decode_bcd(window[0])
    raise ValueError(f"Unsupported data type: {dt}")


def _metadata(rule: ConversionRule) -> dict[str, Any]:
    meta: dict[str, Any] = {"byte_order": rule.byte_order.value}
    if isinstance(rule.params, ScaledParams):
        meta["scale_factor"] = rule.params.scale_factor
        meta["offset"] = rule.params.offset
    if rule.unit_conversion is not None:
        meta["unit_conversion"] = rule.unit_conversion.label
    return meta


def decode(
    registers: Sequence[int],
    rule: ConversionRule,
    catalog: UnitCatalog | None = None,
) -> ConversionResult:
    """
    Apply one rule to a register snapshot. Never raises: every failure, expected or
    not, comes back as a result with valid=False and the failure message.
    """
    metadata = _metadata(rule)
    value: Any = None
    original: int | tuple[int, ...] | None = None
    try:
        required = rule.footprint
        if len(registers) < rule.start_register + required:
            available = max(0, len(registers) - rule.start_register)
            raise InsufficientRegistersError(rule.name, required, available)

        window = tuple(registers[rule.start_register : rule.start_register + required])
        original = window[0] if required == 1 else window

        value = decode_window(window, rule)

        if rule.unit_conversion is not None and is_number(value):
            outcome = (catalog or get_default_catalog()).convert(
                value, rule.unit_conversion.from_unit, rule.unit_conversion.to_unit
            )
            value = outcome.value
            metadata["unit_conversion"] = outcome.label

        if rule.decimal_places is not None and is_number(value):
            value = round_half_away(value, rule.decimal_places)

        if rule.validation is not None and rule.validation.enabled:
            check_value(rule.name, value, rule.validation)
    except (InsufficientRegistersError, RangeValidationError) as e:
        return ConversionResult(
            name=rule.name,
            value=value,
            original_value=original,
            data_type=rule.data_type.value,
            valid=False,
            error=str(e),
            metadata=metadata,
        )
    except Exception as e:
        logger.warning("Conversion %r failed: %s", rule.name, e)
        return ConversionResult(
            name=rule.name,
            value=None,
            original_value=original,
            data_type=rule.data_type.value,
            valid=False,
            error=str(e) or type(e).__name__,
            metadata={"byte_order": rule.byte_order.value},
        )

    return ConversionResult(
        name=rule.name,
        value=value,
        original_value=original,
        data_type=rule.data_type.value,
        valid=True,
        metadata=metadata,
    )
