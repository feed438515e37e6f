"""Tests for JSON rule configuration files."""

import json
from pathlib import Path

import pytest

from modbus_convert.config import load_rule_config, parse_rule_config
from modbus_convert.types import ErrorPolicy, OutputFormat


def test_bare_list_uses_default_settings() -> None:
    config = parse_rule_config([{"name": "a"}])
    assert config.rules == [{"name": "a"}]
    assert config.settings.policy == ErrorPolicy.STOP_ON_ERROR
    assert config.settings.output_format == OutputFormat.INDIVIDUAL_FIELDS


def test_object_with_settings() -> None:
    config = parse_rule_config({"rules": [], "policy": "default_values", "output_format": "both"})
    assert config.settings.policy == ErrorPolicy.DEFAULT_VALUES
    assert config.settings.output_format == OutputFormat.BOTH


@pytest.mark.parametrize(
    "data, match",
    [
        ("rules", "must be a list or an object"),
        ({"policy": "skip_invalid"}, "requires a 'rules' list"),
        ({"rules": [], "policy": "nope"}, "Invalid converter settings"),
    ],
)
def test_invalid_config(data: object, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        parse_rule_config(data)


def test_load_rule_config(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"rules": [{"name": "x"}], "policy": "skip_invalid"}), encoding="utf-8")
    config = load_rule_config(path)
    assert config.rules == [{"name": "x"}]
    assert config.settings.policy == ErrorPolicy.SKIP_INVALID
