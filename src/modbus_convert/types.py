"""Core data model: data types, byte orders, conversion rules and results."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union


class DataType(str, Enum):
    """Register data types a conversion rule can decode."""

    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    FLOAT32 = "float32"
    SCALED = "scaled"
    BITFIELD = "bitfield"
    BCD = "bcd"
    DOUBLE = "double"

    @property
    def footprint(self) -> int:
        """Number of consecutive registers this type consumes."""
        return REGISTER_FOOTPRINT[self]


REGISTER_FOOTPRINT: Mapping[DataType, int] = MappingProxyType(
    {
        DataType.INT16: 1,
        DataType.UINT16: 1,
        DataType.SCALED: 1,
        DataType.BITFIELD: 1,
        DataType.BCD: 1,
        DataType.INT32: 2,
        DataType.UINT32: 2,
        DataType.FLOAT32: 2,
        DataType.DOUBLE: 4,
    }
)

NUMERIC_TYPES = frozenset(
    {
        DataType.INT16,
        DataType.UINT16,
        DataType.INT32,
        DataType.UINT32,
        DataType.FLOAT32,
        DataType.SCALED,
        DataType.BCD,
        DataType.DOUBLE,
    }
)


class ByteOrder(str, Enum):
    """Which assembled word is the most-significant half of a multi-register value."""

    BIG_ENDIAN = "big_endian"
    LITTLE_ENDIAN = "little_endian"


class ErrorPolicy(str, Enum):
    """How a batch treats invalid per-rule results."""

    STOP_ON_ERROR = "stop_on_error"
    SKIP_INVALID = "skip_invalid"
    DEFAULT_VALUES = "default_values"


class OutputFormat(str, Enum):
    """Shape of the record built from a batch of results."""

    INDIVIDUAL_FIELDS = "individual_fields"
    CONVERSION_OBJECT = "conversion_object"
    BOTH = "both"


# camelCase keys accepted from configuration authored for other tools
_KEY_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "startRegister": "start_register",
        "dataType": "data_type",
        "byteOrder": "byte_order",
        "wordSwap": "word_swap",
        "scaleFactor": "scale_factor",
        "decimalPlaces": "decimal_places",
        "bitMask": "bit_mask",
        "bitPosition": "bit_position",
        "bitLength": "bit_length",
        "unitConversion": "unit_conversion",
        "allowNaN": "allow_nan",
    }
)


def normalize_keys(entry: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of a rule mapping with camelCase keys mapped to snake_case."""
    out: dict[str, Any] = {}
    for key, value in entry.items():
        key = _KEY_ALIASES.get(key, key)
        if key == "validation" and isinstance(value, Mapping):
            value = normalize_keys(value)
        out[key] = value
    return out


@dataclass(frozen=True)
class ValueValidation:
    """Range and NaN checks applied to a decoded value."""

    enabled: bool = False
    min: float | None = None
    max: float | None = None
    allow_nan: bool = False


@dataclass(frozen=True)
class UnitConversion:
    """Named source and target units for a post-decode conversion."""

    from_unit: str
    to_unit: str

    @property
    def label(self) -> str:
        return f"{self.from_unit} to {self.to_unit}"


@dataclass(frozen=True)
class ScaledParams:
    """Payload for DataType.SCALED: value = raw * scale_factor + offset."""

    scale_factor: float | None = None
    offset: float | None = None


@dataclass(frozen=True)
class BitfieldParams:
    """Payload for DataType.BITFIELD: either a mask or a position/length pair."""

    bit_mask: int | None = None
    bit_position: int | None = None
    bit_length: int | None = None


RuleParams = Union[ScaledParams, BitfieldParams, None]

_PARAMS_FOR_TYPE: Mapping[DataType, type] = MappingProxyType(
    {
        DataType.SCALED: ScaledParams,
        DataType.BITFIELD: BitfieldParams,
    }
)


@dataclass(frozen=True)
class ConversionRule:
    """
    One named conversion: which registers to read and how to turn them into a value.

    Type-specific settings travel in ``params``: ScaledParams for scaled rules,
    BitfieldParams for bitfield rules, None for everything else.
    """

    name: str
    start_register: int
    data_type: DataType
    byte_order: ByteOrder = ByteOrder.BIG_ENDIAN
    word_swap: bool = False
    params: RuleParams = None
    decimal_places: int | None = None
    validation: ValueValidation | None = None
    unit_conversion: UnitConversion | None = None

    def __post_init__(self) -> None:
        if self.start_register < 0:
            raise ValueError(f"start_register must be >= 0, got {self.start_register}")
        expected = _PARAMS_FOR_TYPE.get(self.data_type)
        if expected is None:
            if self.params is not None:
                raise ValueError(f"{self.data_type.value} rules take no parameters, got {self.params!r}")
        elif not isinstance(self.params, expected):
            raise ValueError(f"{self.data_type.value} rules require {expected.__name__}, got {self.params!r}")

    @property
    def footprint(self) -> int:
        return self.data_type.footprint

    @property
    def window(self) -> tuple[int, int]:
        """Inclusive (first, last) register indices this rule reads."""
        return self.start_register, self.start_register + self.footprint - 1

    @classmethod
    def from_mapping(cls, entry: Mapping[str, Any]) -> "ConversionRule":
        """Build a rule from a (validated) configuration mapping."""
        raw = normalize_keys(entry)
        data_type = DataType(raw["data_type"])

        params: RuleParams = None
        if data_type == DataType.SCALED:
            params = ScaledParams(scale_factor=raw.get("scale_factor"), offset=raw.get("offset"))
        elif data_type == DataType.BITFIELD:
            params = BitfieldParams(
                bit_mask=raw.get("bit_mask"),
                bit_position=raw.get("bit_position"),
                bit_length=raw.get("bit_length"),
            )

        validation = None
        raw_validation = raw.get("validation")
        if raw_validation is not None:
            validation = ValueValidation(
                enabled=bool(raw_validation.get("enabled", False)),
                min=raw_validation.get("min"),
                max=raw_validation.get("max"),
                allow_nan=bool(raw_validation.get("allow_nan", False)),
            )

        unit_conversion = None
        raw_units = raw.get("unit_conversion")
        if raw_units is not None:
            unit_conversion = UnitConversion(from_unit=raw_units["from"], to_unit=raw_units["to"])

        return cls(
            name=str(raw["name"]).strip(),
            start_register=int(raw["start_register"]),
            data_type=data_type,
            byte_order=ByteOrder(raw.get("byte_order") or ByteOrder.BIG_ENDIAN.value),
            word_swap=bool(raw.get("word_swap", False)),
            params=params,
            decimal_places=raw.get("decimal_places"),
            validation=validation,
            unit_conversion=unit_conversion,
        )

    def to_mapping(self) -> dict[str, Any]:
        """Inverse of from_mapping; omits unset optional fields."""
        out: dict[str, Any] = {
            "name": self.name,
            "start_register": self.start_register,
            "data_type": self.data_type.value,
            "byte_order": self.byte_order.value,
            "word_swap": self.word_swap,
        }
        if self.params is not None:
            out.update({k: v for k, v in asdict(self.params).items() if v is not None})
        if self.decimal_places is not None:
            out["decimal_places"] = self.decimal_places
        if self.validation is not None:
            out["validation"] = asdict(self.validation)
        if self.unit_conversion is not None:
            out["unit_conversion"] = {
                "from": self.unit_conversion.from_unit,
                "to": self.unit_conversion.to_unit,
            }
        return out


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of applying one rule to one register snapshot."""

    name: str
    value: Any
    original_value: int | tuple[int, ...] | None
    data_type: str
    valid: bool
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        out = {
            "name": self.name,
            "value": self.value,
            "original_value": list(self.original_value)
            if isinstance(self.original_value, tuple)
            else self.original_value,
            "data_type": self.data_type,
            "valid": self.valid,
            "metadata": dict(self.metadata),
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass
class ValidationReport:
    """Accumulated errors (blocking) and warnings (non-blocking) for a rule set."""

    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
