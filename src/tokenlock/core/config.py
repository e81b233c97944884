"""
tokenlock Configuration

Engine limits, logging and persistence settings are read from
``TOKENLOCK_*`` environment variables. Plan definitions are loaded from
YAML or JSON files so operators can review them before they are committed
to an engine.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc


ENVIRONMENT = os.getenv("TOKENLOCK_ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("TOKENLOCK_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("TOKENLOCK_LOG_FILE", "").strip() or None

# Plan table limits
MAX_LOCK_PLANS = _get_int("TOKENLOCK_MAX_LOCK_PLANS", 3)
MAX_PLAN_STEPS = _get_int("TOKENLOCK_MAX_PLAN_STEPS", 32)
PERCENT_DENOMINATOR = 100

# Where `tokenlock state` commands look for a snapshot by default
STATE_PATH = os.getenv(
    "TOKENLOCK_STATE_PATH",
    os.path.join(os.getcwd(), "data", "vesting_state.json"),
)


@dataclass
class VestingConfig:
    """Settings an engine is constructed with."""

    max_lock_plans: int = MAX_LOCK_PLANS
    max_plan_steps: int = MAX_PLAN_STEPS
    engine_address: str = "vesting_contract_address"
    environment: str = ENVIRONMENT
    log_level: str = LOG_LEVEL
    state_path: Optional[str] = None

    def validate(self) -> "VestingConfig":
        if not isinstance(self.max_lock_plans, int) or self.max_lock_plans <= 0:
            raise ConfigurationError("max_lock_plans must be a positive integer.")
        if not isinstance(self.max_plan_steps, int) or self.max_plan_steps <= 0:
            raise ConfigurationError("max_plan_steps must be a positive integer.")
        if not self.engine_address or not self.engine_address.strip():
            raise ConfigurationError("engine_address cannot be empty.")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Unknown log level {self.log_level!r}.")
        return self

    @classmethod
    def from_env(cls) -> "VestingConfig":
        return cls(
            max_lock_plans=_get_int("TOKENLOCK_MAX_LOCK_PLANS", MAX_LOCK_PLANS),
            max_plan_steps=_get_int("TOKENLOCK_MAX_PLAN_STEPS", MAX_PLAN_STEPS),
            engine_address=os.getenv("TOKENLOCK_ENGINE_ADDRESS", "vesting_contract_address"),
            environment=os.getenv("TOKENLOCK_ENVIRONMENT", ENVIRONMENT),
            log_level=os.getenv("TOKENLOCK_LOG_LEVEL", LOG_LEVEL),
            state_path=os.getenv("TOKENLOCK_STATE_PATH") or None,
        ).validate()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "VestingConfig":
        known = {name for name in cls.__dataclass_fields__}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(data)).validate()


@dataclass
class PlanDefinition:
    """A plan as written in a plan file, before it reaches a plan table."""

    plan_id: int
    offsets: List[int] = field(default_factory=list)
    percents: List[int] = field(default_factory=list)
    name: str = ""


_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: Any) -> int:
    """
    Parse a plan offset into seconds.

    Accepts plain integers or strings with a unit suffix such as ``"7d"``,
    ``"12h"`` or ``"90m"``.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text.isdigit():
            return int(text)
        unit = text[-1:]
        number = text[:-1]
        if unit in _DURATION_UNITS and number.isdigit():
            return int(number) * _DURATION_UNITS[unit]
    raise ConfigurationError(f"Invalid duration {value!r}")


def _read_document(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            if path.suffix.lower() == ".json":
                data = json.load(handle)
            else:
                data = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Plan file not found: {path}") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not parse plan file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Plan file {path} must contain a mapping at the top level.")
    return data


def load_plan_file(path: str | Path) -> List[PlanDefinition]:
    """
    Load plan definitions from a YAML or JSON file.

    Expected layout::

        plans:
          - id: 0
            name: seed
            steps:
              - {offset: 7d, percent: 35}
              - {offset: 14d, percent: 35}
              - {offset: 21d, percent: 30}

    Only the file shape is checked here; plan rules (sum to 100, strictly
    increasing offsets) are enforced when the plan is defined on a table.
    """
    plan_path = Path(path)
    document = _read_document(plan_path)
    raw_plans = document.get("plans")
    if not isinstance(raw_plans, list) or not raw_plans:
        raise ConfigurationError(f"Plan file {plan_path} has no 'plans' list.")

    definitions: List[PlanDefinition] = []
    seen: set[int] = set()
    for index, raw in enumerate(raw_plans):
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Plan entry #{index} must be a mapping.")
        plan_id = raw.get("id")
        if not isinstance(plan_id, int) or isinstance(plan_id, bool):
            raise ConfigurationError(f"Plan entry #{index} needs an integer 'id'.")
        if plan_id in seen:
            raise ConfigurationError(f"Plan id {plan_id} appears more than once.")
        seen.add(plan_id)

        steps = raw.get("steps")
        if not isinstance(steps, list):
            raise ConfigurationError(f"Plan {plan_id} needs a 'steps' list.")
        offsets: List[int] = []
        percents: List[int] = []
        for step in steps:
            if not isinstance(step, dict) or "offset" not in step or "percent" not in step:
                raise ConfigurationError(f"Plan {plan_id} steps need 'offset' and 'percent'.")
            percent = step["percent"]
            if not isinstance(percent, int) or isinstance(percent, bool):
                raise ConfigurationError(f"Plan {plan_id} percents must be integers.")
            offsets.append(parse_duration(step["offset"]))
            percents.append(percent)

        definitions.append(
            PlanDefinition(
                plan_id=plan_id,
                offsets=offsets,
                percents=percents,
                name=str(raw.get("name", "")),
            )
        )

    logger.debug(
        "Loaded plan file",
        extra={"event": "config.plans_loaded", "path": str(plan_path), "plans": len(definitions)},
    )
    return definitions
