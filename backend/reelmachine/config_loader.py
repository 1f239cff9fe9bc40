"""JSON loader for MachineConfig.

Validation failures of any kind surface as ConfigurationError so callers
only have one fatal setup error to handle.
"""
import json
import logging
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from reelmachine.config import MachineConfig, settings
from reelmachine.errors import ConfigurationError


logger = logging.getLogger(__name__)


def build_machine_config(data: Mapping[str, Any]) -> MachineConfig:
    """Validate a raw mapping into a MachineConfig."""
    try:
        return MachineConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid machine configuration: {e}") from e


def load_machine_config(path: Path | str) -> MachineConfig:
    """Load and validate a MachineConfig from a JSON file."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Machine config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Machine config {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Machine config root must be an object in {path}")

    config = build_machine_config(raw)
    logger.info("Loaded machine config from %s (%d rollers)", path, config.roller_count)
    return config


def default_machine_config() -> MachineConfig:
    """MachineConfig from SLOT_MACHINE_CONFIG_PATH when set, built-in defaults otherwise."""
    if settings.machine_config_path:
        return load_machine_config(settings.machine_config_path)
    return MachineConfig()
