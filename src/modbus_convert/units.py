"""UnitCatalog: physical units and directed conversion formulas loaded from packaged JSON."""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import Any, Mapping, Sequence

logger = logging.getLogger(__name__)

_CATALOG_PACKAGE = "modbus_convert.data"
_CATALOG_RESOURCE = "units.json"


@dataclass(frozen=True)
class Unit:
    name: str
    symbol: str
    category: str
    description: str


@dataclass(frozen=True)
class UnitFormula:
    """Directed conversion: ((value + pre_offset) * factor / divisor) + post_offset."""

    from_unit: str
    to_unit: str
    formula: str
    factor: float = 1.0
    divisor: float = 1.0
    pre_offset: float = 0.0
    post_offset: float = 0.0

    def __post_init__(self) -> None:
        if self.divisor == 0:
            raise ValueError(f"divisor must be non-zero for {self.from_unit} -> {self.to_unit}")

    @property
    def is_affine(self) -> bool:
        """True when the formula has an additive term (not invertible by a single factor)."""
        return self.pre_offset != 0 or self.post_offset != 0

    def apply(self, value: float) -> float:
        return (value + self.pre_offset) * self.factor / self.divisor + self.post_offset


@dataclass(frozen=True)
class UnitConversionOutcome:
    """Converted value plus the label recorded in result metadata."""

    value: float
    applied: bool
    label: str


def _parse_formula(raw: dict[str, Any]) -> UnitFormula:
    """Build UnitFormula from a JSON entry (from, to, factor, divisor, offsets, formula)."""
    return UnitFormula(
        from_unit=raw["from"],
        to_unit=raw["to"],
        formula=raw.get("formula", ""),
        factor=float(raw.get("factor", 1.0)),
        divisor=float(raw.get("divisor", 1.0)),
        pre_offset=float(raw.get("pre_offset", 0.0)),
        post_offset=float(raw.get("post_offset", 0.0)),
    )


class UnitCatalog:
    """
    Read-only table of units grouped by category and directed conversion formulas.

    Lookup order: identical units, exact formula, inverted reverse formula (only
    when the reverse formula is purely multiplicative), otherwise unavailable.
    """

    def __init__(
        self,
        units: Mapping[str, Sequence[Unit]],
        conversions: Sequence[UnitFormula],
        presets: Mapping[str, Mapping[str, str]] | None = None,
    ) -> None:
        self._units = MappingProxyType({cat: tuple(items) for cat, items in units.items()})
        self._by_name: dict[str, Unit] = {}
        for items in self._units.values():
            for unit in items:
                self._by_name.setdefault(unit.name, unit)

        self._formulas: dict[tuple[str, str], UnitFormula] = {}
        for conv in conversions:
            key = (conv.from_unit, conv.to_unit)
            if key in self._formulas:
                raise ValueError(f"Duplicate conversion in catalog: {conv.from_unit} -> {conv.to_unit}")
            self._formulas[key] = conv
        self._presets = MappingProxyType(
            {pid: MappingProxyType(dict(p)) for pid, p in (presets or {}).items()}
        )

    @classmethod
    def from_resource(cls, package: str = _CATALOG_PACKAGE, name: str = _CATALOG_RESOURCE) -> "UnitCatalog":
        """Load the catalog from a JSON resource shipped inside a package."""
        try:
            with resources.files(package).joinpath(name).open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Unit catalog resource not found: {package}/{name}") from None

        units = {
            category: [
                Unit(name=u["name"], symbol=u["symbol"], category=category, description=u.get("description", ""))
                for u in entries
            ]
            for category, entries in data.get("units", {}).items()
        }
        conversions = [_parse_formula(entry) for entry in data.get("conversions", [])]
        catalog = cls(units, conversions, data.get("presets"))
        logger.debug(
            "UnitCatalog loaded: %d categories, %d units, %d conversions",
            len(catalog._units),
            len(catalog._by_name),
            len(catalog._formulas),
        )
        return catalog

    def categories(self) -> list[str]:
        return list(self._units)

    def units_in(self, category: str) -> list[Unit]:
        return list(self._units.get(category, ()))

    def all_units(self) -> list[Unit]:
        return [unit for items in self._units.values() for unit in items]

    def find_unit(self, name: str) -> Unit | None:
        return self._by_name.get(name)

    def _resolve(self, from_unit: str, to_unit: str) -> tuple[UnitFormula, bool] | None:
        """Return (formula, inverted) or None when no usable formula exists."""
        direct = self._formulas.get((from_unit, to_unit))
        if direct is not None:
            return direct, False
        reverse = self._formulas.get((to_unit, from_unit))
        if reverse is not None and not reverse.is_affine:
            return reverse, True
        return None

    def is_available(self, from_unit: str, to_unit: str) -> bool:
        return from_unit == to_unit or self._resolve(from_unit, to_unit) is not None

    def formula(self, from_unit: str, to_unit: str) -> str:
        resolved = self._resolve(from_unit, to_unit)
        if resolved is None:
            return "No formula available"
        formula, inverted = resolved
        return f"Inverse of: {formula.formula}" if inverted else formula.formula

    def conversions_for(self, unit: str) -> list[str]:
        """Units reachable from ``unit`` either directly or by inverting a multiplicative formula."""
        targets: list[str] = []
        for src, dst in self._formulas:
            if src == unit and dst not in targets:
                targets.append(dst)
        for (src, dst), formula in self._formulas.items():
            if dst == unit and not formula.is_affine and src not in targets:
                targets.append(src)
        return targets

    def presets(self) -> Mapping[str, Mapping[str, str]]:
        return self._presets

    def convert(self, value: float, from_unit: str, to_unit: str) -> UnitConversionOutcome:
        """
        Convert ``value``; never raises for a missing conversion.

        An unavailable conversion returns the input unchanged with applied=False and
        a "no conversion available" label.
        """
        label = f"{from_unit} to {to_unit}"
        if from_unit == to_unit:
            return UnitConversionOutcome(value=value, applied=True, label=label)

        resolved = self._resolve(from_unit, to_unit)
        if resolved is None:
            logger.debug("No conversion available from %s to %s", from_unit, to_unit)
            return UnitConversionOutcome(
                value=value,
                applied=False,
                label=f"no conversion available from {from_unit} to {to_unit}",
            )

        formula, inverted = resolved
        if inverted:
            return UnitConversionOutcome(value=value / formula.apply(1.0), applied=True, label=label)
        return UnitConversionOutcome(value=formula.apply(value), applied=True, label=label)


@lru_cache(maxsize=None)
def get_default_catalog() -> UnitCatalog:
    """Load (once) and return the packaged unit catalog."""
    return UnitCatalog.from_resource()
