"""Packaged rule templates for common field devices."""

import copy
import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from typing import Any

from .errors import UnknownPresetError
from .types import ByteOrder

logger = logging.getLogger(__name__)

_PRESET_PACKAGE = "modbus_convert.data"
_PRESET_RESOURCE = "presets.json"

_BYTE_ORDER_ALIASES = {
    "BE": ByteOrder.BIG_ENDIAN.value,
    "LE": ByteOrder.LITTLE_ENDIAN.value,
    ByteOrder.BIG_ENDIAN.value: ByteOrder.BIG_ENDIAN.value,
    ByteOrder.LITTLE_ENDIAN.value: ByteOrder.LITTLE_ENDIAN.value,
}


def normalize_byte_order(value: str | None) -> str:
    """Map "BE"/"LE" shorthands to ByteOrder values; absent means big endian."""
    if value is None:
        return ByteOrder.BIG_ENDIAN.value
    try:
        return _BYTE_ORDER_ALIASES[value]
    except KeyError:
        raise ValueError(f"Unknown byte order: {value!r}") from None


@dataclass(frozen=True)
class ConversionPreset:
    id: str
    name: str
    description: str
    conversions: tuple[dict[str, Any], ...]


@lru_cache(maxsize=None)
def _load_presets() -> dict[str, ConversionPreset]:
    with resources.files(_PRESET_PACKAGE).joinpath(_PRESET_RESOURCE).open("r", encoding="utf-8") as f:
        data = json.load(f)
    presets: dict[str, ConversionPreset] = {}
    for entry in data:
        preset = ConversionPreset(
            id=entry["id"],
            name=entry["name"],
            description=entry.get("description", ""),
            conversions=tuple(entry["conversions"]),
        )
        if preset.id in presets:
            raise ValueError(f"Duplicate preset id: {preset.id}")
        presets[preset.id] = preset
    logger.debug("Loaded %d conversion presets", len(presets))
    return presets


def list_presets() -> list[ConversionPreset]:
    return list(_load_presets().values())


def get_preset(preset_id: str) -> ConversionPreset:
    """Return the preset; raise UnknownPresetError if it is not packaged."""
    try:
        return _load_presets()[preset_id]
    except KeyError:
        raise UnknownPresetError(preset_id) from None


def apply_preset(preset_id: str, start_offset: int = 0) -> list[dict[str, Any]]:
    """
    Rule mappings for a preset, shifted by ``start_offset`` registers.

    The returned mappings are fresh copies with ``byte_order`` normalised, ready
    for validate_rules/load_rules.
    """
    if start_offset < 0:
        raise ValueError(f"start_offset must be >= 0, got {start_offset}")
    rules: list[dict[str, Any]] = []
    for conv in get_preset(preset_id).conversions:
        rule = copy.deepcopy(conv)
        rule["start_register"] = conv["start_register"] + start_offset
        rule["byte_order"] = normalize_byte_order(conv.get("byte_order"))
        rules.append(rule)
    return rules
