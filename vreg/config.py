"""Configuration for local registrar deployments.

Values come from defaults, then an optional YAML file, then environment
variables (``VREG_STATE_DIR``, ``VREG_HASH_ALGORITHM``, ``VREG_LOG_LEVEL``).
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import yaml

from vreg.registrar.labels import DEFAULT_HASH_ALGORITHM, hash_bytes

CONFIG_FILE = "vreg.yaml"

_ENV_OVERRIDES = {
    "VREG_STATE_DIR": "state_dir",
    "VREG_HASH_ALGORITHM": "hash_algorithm",
    "VREG_LOG_LEVEL": "log_level",
}


@dataclass
class RegistrarConfig:
    """Settings for a local registrar deployment."""

    state_dir: str = str(Path.home() / ".vreg")
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    parent_name: str = "eth"
    base_label: str = "version"
    log_level: str = "WARNING"
    event_log: str = "events.jsonl"

    @property
    def base_name(self) -> str:
        return f"{self.base_label}.{self.parent_name}" if self.parent_name else self.base_label

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(
    path: Optional[str | Path] = None, state_dir: Optional[str | Path] = None
) -> RegistrarConfig:
    """Load configuration from YAML (if present) and the environment.

    When ``path`` is omitted, ``vreg.yaml`` inside the state directory is
    used if it exists. The YAML settings live under a ``registrar:`` key.
    An explicit ``state_dir`` wins over ``VREG_STATE_DIR`` and the YAML file.
    """
    config = RegistrarConfig()
    env_state_dir = os.environ.get("VREG_STATE_DIR")
    if state_dir:
        config.state_dir = str(state_dir)
    elif env_state_dir:
        config.state_dir = env_state_dir

    config_path = Path(path) if path else config.state_path / CONFIG_FILE
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        section = data.get("registrar", {}) if isinstance(data, dict) else {}
        for key, value in section.items():
            if key not in RegistrarConfig.__dataclass_fields__:
                raise ValueError(f"Unknown registrar setting '{key}' in {config_path}")
            setattr(config, key, str(value))
    elif path:
        raise FileNotFoundError(f"Config file not found: {path}")

    for env_name, attr in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            setattr(config, attr, value)
    if state_dir:
        config.state_dir = str(state_dir)

    validate_config(config)
    return config


def validate_config(config: RegistrarConfig) -> None:
    try:
        hash_bytes(b"", config.hash_algorithm)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Unusable hash algorithm '{config.hash_algorithm}': {e}") from e
    if not config.base_label:
        raise ValueError("base_label must not be empty")
    config.log_level = config.log_level.upper()
    if not isinstance(logging.getLevelName(config.log_level), int):
        raise ValueError(f"Unknown log level '{config.log_level}'")
