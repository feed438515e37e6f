"""modbus-convert: decode raw Modbus register arrays into typed engineering values."""

__version__ = "0.1.0"

from .batch import Converter, ConverterSettings, apply_policy, build_record, convert_all
from .decoder import decode
from .errors import (
    ConversionFailedError,
    InsufficientRegistersError,
    ModbusConvertError,
    ModbusIOError,
    RangeValidationError,
    RuleValidationError,
    SnapshotError,
    UnknownPresetError,
)
from .presets import apply_preset, get_preset, list_presets
from .quick import detect_input, quick_convert
from .reader import ReadFunction, ReadResult, RegisterReader
from .snapshot import RegisterSnapshot, extract_registers
from .types import (
    BitfieldParams,
    ByteOrder,
    ConversionResult,
    ConversionRule,
    DataType,
    ErrorPolicy,
    OutputFormat,
    ScaledParams,
    UnitConversion,
    ValidationReport,
    ValueValidation,
)
from .units import UnitCatalog, get_default_catalog
from .validator import find_overlaps, load_rules, validate_rules

__all__ = [
    "__version__",
    "Converter",
    "ConverterSettings",
    "apply_policy",
    "build_record",
    "convert_all",
    "decode",
    "ConversionFailedError",
    "InsufficientRegistersError",
    "ModbusConvertError",
    "ModbusIOError",
    "RangeValidationError",
    "RuleValidationError",
    "SnapshotError",
    "UnknownPresetError",
    "apply_preset",
    "get_preset",
    "list_presets",
    "detect_input",
    "quick_convert",
    "ReadFunction",
    "ReadResult",
    "RegisterReader",
    "RegisterSnapshot",
    "extract_registers",
    "BitfieldParams",
    "ByteOrder",
    "ConversionResult",
    "ConversionRule",
    "DataType",
    "ErrorPolicy",
    "OutputFormat",
    "ScaledParams",
    "UnitConversion",
    "ValidationReport",
    "ValueValidation",
    "UnitCatalog",
    "get_default_catalog",
    "find_overlaps",
    "load_rules",
    "validate_rules",
]
