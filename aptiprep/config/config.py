from __future__ import annotations

"""Configuration loading and validation for aptiprep.

This module loads YAML configuration, applies defaults, and validates
that thresholds, timings and weight tables are sane.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..app import explain
from ..engine.scoring import ScoreWeightConfig
from ..errors import ConfigError

logger = logging.getLogger(__name__)

ALLOWED_STORAGE_BACKENDS = {"memory", "parquet"}
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return data


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        cfg = _load_yaml(Path(path))
    else:
        cfg = _load_yaml(Path(__file__).with_name("defaults.yml"))
    return cfg


def _positive(section: Dict[str, Any], key: str, default: float) -> None:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        logger.warning("Invalid %s %r, using %s", key, value, default)
        section[key] = default


def _percent(section: Dict[str, Any], key: str, default: float) -> None:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not (0 <= value <= 100):
        logger.warning("Invalid %s %r, using %s", key, value, default)
        section[key] = default


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Invalid values are replaced by defaults with a logged warning; weight
    tables that fail validation raise ConfigError since scores would be wrong.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    # Shallow defaults for missing sections
    cfg.setdefault("session", {})
    cfg.setdefault("scoring", {})
    cfg.setdefault("weights", {})
    cfg.setdefault("bank", {})
    cfg.setdefault("storage", {})
    cfg.setdefault("logging", {})
    cfg.setdefault("explain", {})

    session = cfg["session"]
    scoring = cfg["scoring"]
    storage = cfg["storage"]
    log_cfg = cfg["logging"]

    # Apply section defaults
    session.setdefault("tick_interval_ms", 1000)
    session.setdefault("default_memorize_seconds", 10)
    session.setdefault("distraction_seconds", 5)
    session.setdefault("feedback_ms", 1500)
    session.setdefault("auto_advance", True)
    session.setdefault("strict_transitions", True)

    scoring.setdefault("strength_threshold", 75)
    scoring.setdefault("weakness_threshold", 50)
    scoring.setdefault("weights", "default")

    cfg["bank"].setdefault("path", None)

    storage.setdefault("backend", "memory")
    storage.setdefault("data_dir", "./data")

    log_cfg.setdefault("level", "INFO")
    log_cfg.setdefault("format", "%(asctime)s %(levelname)s %(name)s: %(message)s")

    cfg["explain"].setdefault("enabled", False)

    # Timing validations
    _positive(session, "tick_interval_ms", 1000)
    _positive(session, "default_memorize_seconds", 10)
    _positive(session, "distraction_seconds", 5)
    _positive(session, "feedback_ms", 1500)

    # Threshold validations
    _percent(scoring, "strength_threshold", 75)
    _percent(scoring, "weakness_threshold", 50)
    if scoring["weakness_threshold"] > scoring["strength_threshold"]:
        logger.warning(
            "weakness_threshold %s above strength_threshold %s, using 50/75",
            scoring["weakness_threshold"],
            scoring["strength_threshold"],
        )
        scoring["strength_threshold"], scoring["weakness_threshold"] = 75, 50

    # Enum validations
    backend = storage.get("backend")
    if backend not in ALLOWED_STORAGE_BACKENDS:
        logger.warning("Unsupported storage backend '%s', using 'memory'.", backend)
        storage["backend"] = "memory"

    level = str(log_cfg.get("level", "INFO")).upper()
    if level not in ALLOWED_LOG_LEVELS:
        logger.warning("Unsupported log level '%s', using 'INFO'.", level)
        level = "INFO"
    log_cfg["level"] = level

    # Weight tables must parse
    tables = cfg["weights"]
    if not isinstance(tables, dict):
        raise ConfigError("'weights' must map table names to category weights")
    for name, table in tables.items():
        try:
            ScoreWeightConfig.from_table(table)
        except PydanticValidationError as exc:
            raise ConfigError(f"Invalid weight table '{name}': {exc}") from exc
    selected = scoring.get("weights")
    if selected is not None and selected not in tables:
        logger.warning("Weight table '%s' not defined; categories will use default weights", selected)

    return cfg


def weights_from_config(cfg: Dict[str, Any], name: Optional[str] = None) -> ScoreWeightConfig:
    """Return the named weight table (or the scoring default) as a model."""
    name = name or cfg.get("scoring", {}).get("weights")
    table = cfg.get("weights", {}).get(name) if name else None
    return ScoreWeightConfig.from_table(table)


def configure_logging(cfg: Dict[str, Any]) -> None:
    """Set up root logging and explain tracing from a validated config."""
    log_cfg = cfg.get("logging", {})
    logging.basicConfig(
        level=getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO),
        format=log_cfg.get("format", "%(asctime)s %(levelname)s %(name)s: %(message)s"),
    )
    explain.enable(bool(cfg.get("explain", {}).get("enabled", False)))
