"""Load rule sets and converter settings from JSON configuration files."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .batch import ConverterSettings
from .types import ErrorPolicy, OutputFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleConfig:
    rules: list[dict[str, Any]]
    settings: ConverterSettings


def parse_rule_config(data: Any) -> RuleConfig:
    """
    Accept either a bare list of rules or an object:
    {"rules": [...], "policy": "skip_invalid", "output_format": "both"}.
    """
    if isinstance(data, list):
        return RuleConfig(rules=data, settings=ConverterSettings())
    if not isinstance(data, dict):
        raise ValueError(f"Rule config must be a list or an object, got {type(data).__name__}")

    rules = data.get("rules")
    if not isinstance(rules, list):
        raise ValueError("Rule config object requires a 'rules' list")
    try:
        settings = ConverterSettings(
            policy=ErrorPolicy(data.get("policy", ErrorPolicy.STOP_ON_ERROR.value)),
            output_format=OutputFormat(data.get("output_format", OutputFormat.INDIVIDUAL_FIELDS.value)),
        )
    except ValueError as e:
        raise ValueError(f"Invalid converter settings: {e}") from e
    return RuleConfig(rules=rules, settings=settings)


def load_rule_config(path: Path) -> RuleConfig:
    """Read a JSON rule file from disk."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    config = parse_rule_config(data)
    logger.debug("Loaded %d rules from %s", len(config.rules), path)
    return config
