#!/usr/bin/env python3
"""Command-line interface for modbus-convert using Typer."""

import json
import logging
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .batch import Converter, ConverterSettings
from .config import RuleConfig, load_rule_config
from .errors import (
    ConversionFailedError,
    ModbusIOError,
    RuleValidationError,
    SnapshotError,
    UnknownPresetError,
)
from .presets import apply_preset, get_preset, list_presets
from .quick import detect_input, quick_convert
from .reader import ReadFunction, RegisterReader
from .snapshot import extract_registers, make_snapshot
from .types import ErrorPolicy, OutputFormat
from .units import get_default_catalog
from .validator import validate_rules

app = typer.Typer(
    name="modbus-convert",
    help="Convert raw Modbus register arrays into typed engineering values.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

EXIT_USAGE = 2
EXIT_MODBUS_IO = 3
EXIT_UNEXPECTED = 4
EXIT_CONVERSION_FAILED = 5

# ============================================================================
# Shared options and helpers
# ============================================================================

RegistersArgument = Annotated[
    list[str],
    typer.Argument(help="Register values (decimal or 0x hex), e.g. 16827 39322"),
]
RulesOption = Annotated[
    Optional[Path],
    typer.Option("--rules", "-r", help="JSON rule file (list, or object with 'rules')", envvar="MODBUS_CONVERT_RULES"),
]
PresetOption = Annotated[
    Optional[str],
    typer.Option("--preset", help="Use a packaged device preset instead of a rule file"),
]
OffsetOption = Annotated[
    int,
    typer.Option("--offset", help="Register offset applied to preset rules"),
]
PolicyOption = Annotated[
    Optional[ErrorPolicy],
    typer.Option("--policy", help="Error handling policy (overrides the rule file)"),
]
FormatOption = Annotated[
    Optional[OutputFormat],
    typer.Option("--format", "-f", help="Output record format (overrides the rule file)"),
]
HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="Device hostname or IP address", envvar="MODBUS_CONVERT_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port", envvar="MODBUS_CONVERT_PORT"),
]
UnitIdOption = Annotated[
    int,
    typer.Option("--unit-id", "-u", help="Modbus unit ID", envvar="MODBUS_CONVERT_UNIT_ID"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Connection timeout in seconds", envvar="MODBUS_CONVERT_TIMEOUT"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_register(value: str) -> int:
    """Parse one register value from string, supporting hex and validating the 16-bit range."""
    v = value.strip()
    if v.lower().startswith("0x"):
        num = int(v, 16)
    else:
        num = int(v)
    if not (0 <= num <= 65535):
        raise ValueError(f"Register value out of range 0-65535: {num}")
    return num


def parse_registers(values: list[str]) -> tuple[int, ...]:
    return make_snapshot([parse_register(v) for v in values])


def resolve_rule_config(
    rules: Optional[Path],
    preset: Optional[str],
    offset: int,
    policy: Optional[ErrorPolicy],
    output_format: Optional[OutputFormat],
) -> RuleConfig:
    """Rules from --rules or --preset, with --policy/--format overriding file settings."""
    if rules is not None and preset is not None:
        typer.echo("Error: use either --rules or --preset, not both", err=True)
        raise typer.Exit(EXIT_USAGE)
    if rules is not None:
        if not rules.is_file():
            typer.echo(f"Error: Rule file not found: {rules}", err=True)
            raise typer.Exit(EXIT_USAGE)
        config = load_rule_config(rules)
    elif preset is not None:
        config = RuleConfig(rules=apply_preset(preset, offset), settings=ConverterSettings())
    else:
        typer.echo("Error: --rules or --preset is required for this command", err=True)
        raise typer.Exit(EXIT_USAGE)

    settings = config.settings
    if policy is not None:
        settings = replace(settings, policy=policy)
    if output_format is not None:
        settings = replace(settings, output_format=output_format)
    return RuleConfig(rules=config.rules, settings=settings)


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def fail_unexpected(e: Exception, verbose: bool) -> None:
    typer.echo(f"Error: Unexpected error: {e}", err=True)
    if verbose:
        import traceback
        traceback.print_exc()
    raise typer.Exit(EXIT_UNEXPECTED)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def convert(
    registers: RegistersArgument,
    rules: RulesOption = None,
    preset: PresetOption = None,
    offset: OffsetOption = 0,
    policy: PolicyOption = None,
    output_format: FormatOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Apply a rule set to a register array and print the output record as JSON.
    """
    setup_logging(verbose)

    try:
        snapshot = parse_registers(registers)
        config = resolve_rule_config(rules, preset, offset, policy, output_format)
        converter = Converter(config.rules, config.settings)
        echo_json(converter.convert_record(snapshot))
    except RuleValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)
    except ConversionFailedError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_CONVERSION_FAILED)
    except (SnapshotError, UnknownPresetError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)
    except typer.Exit:
        raise
    except Exception as e:
        fail_unexpected(e, verbose)


@app.command()
def validate(
    rules: RulesOption = None,
    preset: PresetOption = None,
    offset: OffsetOption = 0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Check a rule set without converting anything.

    Exits 0 when valid (warnings allowed), 2 when any error is found.
    """
    setup_logging(verbose)

    try:
        config = resolve_rule_config(rules, preset, offset, None, None)
        report = validate_rules(config.rules)
    except (UnknownPresetError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)
    except typer.Exit:
        raise
    except Exception as e:
        fail_unexpected(e, verbose)

    if json_output:
        echo_json(asdict(report))
    else:
        typer.echo("OK: rule set is valid" if report.valid else "INVALID: rule set has errors")
        for error in report.errors:
            typer.echo(f"  error:   {error}")
        for warning in report.warnings:
            typer.echo(f"  warning: {warning}")
    if not report.valid:
        raise typer.Exit(EXIT_USAGE)


@app.command()
def units(
    category: Annotated[Optional[str], typer.Option("--category", "-c", help="Only list this category")] = None,
    json_output: JsonOption = False,
) -> None:
    """List the unit catalog, grouped by category."""
    catalog = get_default_catalog()
    categories = [category] if category else catalog.categories()
    if category and category not in catalog.categories():
        typer.echo(f"Error: Unknown category {category!r}. Known: {', '.join(catalog.categories())}", err=True)
        raise typer.Exit(EXIT_USAGE)

    listing = {cat: [asdict(u) for u in catalog.units_in(cat)] for cat in categories}
    if json_output:
        echo_json(listing)
        return
    for cat in categories:
        typer.echo(f"{cat}:")
        for unit in catalog.units_in(cat):
            targets = ", ".join(catalog.conversions_for(unit.name)) or "-"
            typer.echo(f"  {unit.name:<20} {unit.symbol:<8} -> {targets}")


@app.command(name="unit-convert")
def unit_convert(
    value: Annotated[float, typer.Argument(help="Value to convert")],
    from_unit: Annotated[str, typer.Argument(help="Source unit, e.g. celsius")],
    to_unit: Annotated[str, typer.Argument(help="Target unit, e.g. fahrenheit")],
    json_output: JsonOption = False,
) -> None:
    """Convert a single value between two catalog units."""
    catalog = get_default_catalog()
    outcome = catalog.convert(value, from_unit, to_unit)
    if json_output:
        echo_json(
            {
                "value": outcome.value,
                "applied": outcome.applied,
                "label": outcome.label,
                "formula": catalog.formula(from_unit, to_unit),
            }
        )
    else:
        typer.echo(f"{outcome.value}")
    if not outcome.applied:
        typer.echo(f"Error: {outcome.label}", err=True)
        raise typer.Exit(EXIT_USAGE)


@app.command()
def presets(
    preset_id: Annotated[Optional[str], typer.Argument(help="Show the rules of one preset")] = None,
    offset: OffsetOption = 0,
) -> None:
    """List packaged device presets, or print one preset's rules as JSON."""
    if preset_id is None:
        for preset in list_presets():
            typer.echo(f"{preset.id:<22} {preset.name} - {preset.description}")
        return
    try:
        preset = get_preset(preset_id)
        echo_json({"id": preset.id, "name": preset.name, "rules": apply_preset(preset_id, offset)})
    except (UnknownPresetError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)


@app.command()
def quick(
    registers: RegistersArgument,
    mode: Annotated[str, typer.Option("--mode", "-m", help="single, float, long, double, bcd, bitfield, all")] = "all",
    byte_order: Annotated[str, typer.Option("--byte-order", "-b", help="big_endian or little_endian")] = "big_endian",
    word_swap: Annotated[bool, typer.Option("--word-swap", help="Swap the two words of 32-bit values")] = False,
    scale: Annotated[Optional[float], typer.Option("--scale", help="Multiply numeric results by this factor")] = None,
    long_value: Annotated[str, typer.Option("--long", help="long mode output: signed, unsigned, both")] = "signed",
    verbose: VerboseOption = False,
) -> None:
    """Convert registers without a rule file (common interpretations)."""
    setup_logging(verbose)

    try:
        result = quick_convert(
            parse_registers(registers),
            mode=mode,
            byte_order=byte_order,
            word_swap=word_swap,
            scale_factor=scale,
            long_value=long_value,
        )
        echo_json({"output": result.values, "conversion": result.metadata})
    except (SnapshotError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)
    except Exception as e:
        fail_unexpected(e, verbose)


@app.command()
def detect(
    input_file: Annotated[Path, typer.Option("--input", "-i", help="JSON file holding reader output")],
    verbose: VerboseOption = False,
) -> None:
    """Inspect saved reader output and suggest conversion rules."""
    setup_logging(verbose)

    if not input_file.is_file():
        typer.echo(f"Error: Input file not found: {input_file}", err=True)
        raise typer.Exit(EXIT_USAGE)
    try:
        with open(input_file, encoding="utf-8") as f:
            payload = json.load(f)
        detection = detect_input(payload)
    except (SnapshotError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)

    output = asdict(detection)
    output["suggested_rules"] = [s.to_rule() for s in detection.suggestions]
    echo_json(output)


@app.command()
def read(
    address: Annotated[int, typer.Option("--address", "-a", help="Start address (0-based)")],
    count: Annotated[int, typer.Option("--count", "-n", help="Number of registers or bits")],
    function: Annotated[ReadFunction, typer.Option("--function", help="FC1, FC2, FC3 or FC4")] = ReadFunction.FC3,
    host: HostOption = None,
    port: PortOption = 502,
    unit_id: UnitIdOption = 1,
    timeout: TimeoutOption = 3.0,
    rules: RulesOption = None,
    preset: PresetOption = None,
    offset: OffsetOption = 0,
    policy: PolicyOption = None,
    output_format: FormatOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Read one block from a device and print it, converted when rules are given.
    """
    setup_logging(verbose)

    if not host:
        typer.echo("Error: --host is required for this command", err=True)
        raise typer.Exit(EXIT_USAGE)

    try:
        converter = None
        if rules is not None or preset is not None:
            config = resolve_rule_config(rules, preset, offset, policy, output_format)
            converter = Converter(config.rules, config.settings)

        with RegisterReader(host=host, port=port, unit_id=unit_id, timeout=timeout) as reader:
            block = reader.read(function, address, count)

        if converter is None:
            echo_json(block.as_dict())
        else:
            echo_json(converter.convert_record(extract_registers(block.as_dict())))
    except RuleValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)
    except ModbusIOError as e:
        typer.echo(f"Error: Connection/Modbus error: {e}", err=True)
        raise typer.Exit(EXIT_MODBUS_IO)
    except ConversionFailedError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_CONVERSION_FAILED)
    except (SnapshotError, UnknownPresetError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_USAGE)
    except typer.Exit:
        raise
    except Exception as e:
        fail_unexpected(e, verbose)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"modbus-convert {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """modbus-convert - turn raw Modbus registers into engineering values."""
    pass


if __name__ == "__main__":
    app()
