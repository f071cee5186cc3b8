"""
Configuration loading and management for the rebalancing simulator.

This module handles loading run configurations from YAML files and
validation of configuration parameters. Every setting has a default, so a
run can also be configured without a file.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from rebalance_sim.models import RunConfig
from rebalance_sim.simulation.schedule import ScheduleKind

KNOWN_FIELDS = {
    "data_dir",
    "output_dir",
    "stats_file",
    "decision_log",
    "schedule",
    "threshold",
    "trading_expense_threshold",
    "allocation_tolerance",
    "log_level",
}


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def load_run_config(config_path: str | Path) -> RunConfig:
    """
    Load a run configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        RunConfig object with validated settings

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError(
            f"Configuration file {config_path} must contain a mapping"
        )

    return _parse_run_config(raw_config)


def _parse_run_config(raw: dict[str, Any]) -> RunConfig:
    """
    Parse and validate raw configuration dictionary into RunConfig.

    Args:
        raw: Dictionary loaded from YAML

    Returns:
        Validated RunConfig

    Raises:
        ConfigurationError: If a field is unknown or invalid
    """
    unknown = sorted(set(raw) - KNOWN_FIELDS)
    if unknown:
        raise ConfigurationError(f"Unknown configuration fields: {unknown}")

    defaults = RunConfig()

    schedule = str(raw.get("schedule", defaults.schedule))
    try:
        ScheduleKind.parse(schedule)
    except ValueError as e:
        raise ConfigurationError(str(e))

    log_level = str(raw.get("log_level", defaults.log_level)).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"Invalid log_level: {log_level}")

    decision_log = raw.get("decision_log", defaults.decision_log)

    return RunConfig(
        data_dir=str(raw.get("data_dir", defaults.data_dir)),
        output_dir=str(raw.get("output_dir", defaults.output_dir)),
        stats_file=str(raw.get("stats_file", defaults.stats_file)),
        decision_log=str(decision_log) if decision_log else None,
        schedule=schedule.strip().lower(),
        threshold=_parse_decimal(
            raw.get("threshold", defaults.threshold),
            "threshold",
            min_val=Decimal("0"),
            max_val=Decimal("1"),
        ),
        trading_expense_threshold=_parse_decimal(
            raw.get("trading_expense_threshold", defaults.trading_expense_threshold),
            "trading_expense_threshold",
            min_val=Decimal("0"),
        ),
        allocation_tolerance=_parse_decimal(
            raw.get("allocation_tolerance", defaults.allocation_tolerance),
            "allocation_tolerance",
            min_val=Decimal("0"),
            max_val=Decimal("1"),
        ),
        log_level=log_level,
    )


def parse_date(value: Any, field_name: str) -> date:
    """
    Parse a date value from various formats.

    Args:
        value: The value to parse (string or date object)
        field_name: Name of the field for error messages

    Returns:
        Parsed date object

    Raises:
        ConfigurationError: If the date cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            pass

        try:
            return datetime.fromisoformat(value).date()
        except ValueError:
            pass

    raise ConfigurationError(
        f"Invalid date format for {field_name}: {value}. Expected YYYY-MM-DD"
    )


def _parse_decimal(
    value: Any,
    field_name: str,
    min_val: Decimal | None = None,
    max_val: Decimal | None = None,
) -> Decimal:
    """
    Parse a decimal value with optional range validation.

    Raises:
        ConfigurationError: If the value is invalid or out of range
    """
    try:
        decimal_value = Decimal(str(value))
    except Exception:
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if not decimal_value.is_finite():
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if min_val is not None and decimal_value < min_val:
        raise ConfigurationError(
            f"{field_name} must be >= {min_val}, got {decimal_value}"
        )

    if max_val is not None and decimal_value > max_val:
        raise ConfigurationError(
            f"{field_name} must be <= {max_val}, got {decimal_value}"
        )

    return decimal_value


def write_config(config: RunConfig, output_path: str | Path) -> None:
    """
    Write a RunConfig to a YAML file.

    Args:
        config: The configuration to write
        output_path: Path to write the YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = {
        "data_dir": config.data_dir,
        "output_dir": config.output_dir,
        "stats_file": config.stats_file,
        "decision_log": config.decision_log,
        "schedule": config.schedule,
        "threshold": str(config.threshold),
        "trading_expense_threshold": str(config.trading_expense_threshold),
        "allocation_tolerance": str(config.allocation_tolerance),
        "log_level": config.log_level,
    }

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
