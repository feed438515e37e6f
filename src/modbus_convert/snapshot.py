"""Extract an immutable register snapshot from the payload shapes readers produce."""

from typing import Any, Mapping, Sequence

from .errors import SnapshotError

RegisterSnapshot = tuple[int, ...]

MAX_REGISTERS = 2000

INPUT_SOURCES = ("auto", "data", "values", "registers", "custom_path")

# Keys searched, in order, when the source is "auto"
_AUTO_KEYS = ("data", "registers", "values")


def get_by_path(obj: Any, path: str) -> Any:
    """Follow a dotted path through nested mappings (and list indices); None if missing."""
    current = obj
    for key in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)) and key.isdigit():
            idx = int(key)
            current = current[idx] if idx < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def make_snapshot(values: Sequence[Any]) -> RegisterSnapshot:
    """Check every element is an unsigned 16-bit int and freeze the sequence."""
    if len(values) > MAX_REGISTERS:
        raise SnapshotError(f"Too many registers: {len(values)} (maximum {MAX_REGISTERS})")
    bad = [v for v in values if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v <= 0xFFFF]
    if bad:
        shown = ", ".join(repr(v) for v in bad[:5])
        more = "..." if len(bad) > 5 else ""
        raise SnapshotError(f"Register values must be integers between 0 and 65535: {shown}{more}")
    return tuple(values)


def _as_register_list(value: Any, where: str) -> Sequence[Any]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return [value]
    raise SnapshotError(f"{where} does not contain valid register data")


def extract_registers(payload: Any, source: str = "auto", path: str | None = None) -> RegisterSnapshot:
    """
    Build a RegisterSnapshot from reader output.

    Accepts a plain sequence of ints, a mapping with a ``data``, ``registers`` or
    ``values`` key (directly or under ``json``), or any nested location through
    ``source="custom_path"`` and a dotted ``path``.
    """
    if source not in INPUT_SOURCES:
        raise SnapshotError(f"Unsupported input source: {source!r}. Must be one of: {', '.join(INPUT_SOURCES)}")
    if payload is None:
        raise SnapshotError("Input data is required")

    if source == "custom_path":
        if not path:
            raise SnapshotError("Custom path is required when using custom_path input source")
        registers = _as_register_list(get_by_path(payload, path), f"Custom path {path!r}")
    elif isinstance(payload, Sequence) and not isinstance(payload, (str, bytes)):
        registers = payload
    elif isinstance(payload, Mapping):
        keys = _AUTO_KEYS if source == "auto" else (source,)
        found = None
        for container in (payload, payload.get("json")):
            if not isinstance(container, Mapping):
                continue
            for key in keys:
                if container.get(key) is not None:
                    found = _as_register_list(container[key], f"Property {key!r}")
                    break
            if found is not None:
                break
        if found is None:
            raise SnapshotError(f"No register data found (looked for: {', '.join(keys)})")
        registers = found
    elif isinstance(payload, int) and not isinstance(payload, bool):
        registers = [payload]
    else:
        raise SnapshotError(f"Expected a list of registers or a mapping, got {type(payload).__name__}")

    if not registers:
        raise SnapshotError("No register data found in input")
    return make_snapshot(registers)
