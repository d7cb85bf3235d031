"""Configuration loader with YAML merging and hashing."""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import ValidationError
from ruamel.yaml import YAML

from .schema import EngineConfig, TradingPlan


def deep_merge(base: Dict, override: Dict) -> Dict:
    """Deep merge two dictionaries (override takes precedence).

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary. Neither input is mutated.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file to dict.

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    yaml = YAML(typ="safe")
    with path.open("r") as f:
        data = yaml.load(f)

    return data if data is not None else {}


def get_default_config() -> Path:
    """Path to the packaged defaults.yaml."""
    default_path = Path(__file__).parent / "defaults.yaml"
    if not default_path.exists():
        raise FileNotFoundError(f"Default config not found: {default_path}")
    return default_path


def _plan_defaults(raw_config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply ``plan_defaults`` to every entry under ``plans``.

    The defaults section is consumed and removed from the returned dict.
    """
    plan_defaults = raw_config.pop("plan_defaults", None) or {}
    plans = raw_config.get("plans") or {}
    merged = {}
    for symbol, plan in plans.items():
        plan = deep_merge(plan_defaults, plan or {})
        plan.setdefault("symbol", symbol)
        merged[symbol] = plan
    raw_config["plans"] = merged
    return raw_config


def load_config(
    path: Optional[Path | str] = None,
    use_defaults: bool = True,
) -> EngineConfig:
    """Load engine configuration with optional defaults merging.

    Args:
        path: Path to user configuration file. If None, loads defaults only.
        use_defaults: Whether to merge with defaults.yaml.

    Returns:
        Validated EngineConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config validation fails.
    """
    if use_defaults:
        raw_config = load_yaml(get_default_config())
        logger.debug("Loaded defaults configuration")
    else:
        raw_config = {}

    if path is not None:
        path = Path(path)
        user_config = load_yaml(path)
        raw_config = deep_merge(raw_config, user_config)
        logger.debug(f"Merged user configuration from {path}")

    raw_config = _plan_defaults(raw_config)

    try:
        config = EngineConfig(**raw_config)
    except ValidationError as e:
        raise ValueError(f"Config validation failed: {e}") from e

    logger.info(
        f"Loaded configuration: {config.name} v{config.version} with {len(config.plans)} plans"
    )
    return config


def load_trading_plan(data: Dict[str, Any]) -> TradingPlan:
    """Validate a single plan dict, e.g. one produced by a plan-authoring tool.

    Raises:
        ValueError: If the plan is malformed.
    """
    try:
        return TradingPlan(**data)
    except ValidationError as e:
        raise ValueError(f"Trading plan validation failed: {e}") from e


def resolved_config_hash(config: EngineConfig) -> str:
    """Generate stable hash of configuration for reproducibility.

    Returns:
        SHA256 hash (first 16 characters).
    """
    config_dict = config.model_dump(mode="json")

    canonical_json = json.dumps(
        config_dict,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )

    config_hash = hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()[:16]
    logger.debug(f"Config hash: {config_hash}")

    return config_hash


def save_config(config: EngineConfig, path: Path) -> None:
    """Save configuration to YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.default_flow_style = False
    with path.open("w") as f:
        yaml.dump(config.model_dump(mode="json"), f)

    logger.info(f"Saved configuration to {path}")
