"""
Configuration management and loading.

Handles the optional YAML settings file and its environment override.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from claudette.core.aggregation import GroupBy
from claudette.storage.sources import DEFAULT_PROJECT_ROOTS


CONFIG_ENV_VAR = "CLAUDETTE_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "claudette" / "config.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    session_duration_hours: float = 5.0
    project_roots: Tuple[Path, ...] = DEFAULT_PROJECT_ROOTS
    group_by: GroupBy = GroupBy.DAY
    log_level: str = "WARNING"

    def __post_init__(self):
        """Validate configuration values."""
        if self.session_duration_hours <= 0:
            raise ValueError("session_duration_hours must be > 0")
        if not self.project_roots:
            raise ValueError("project_roots must not be empty")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {list(LOG_LEVELS)}")

    @property
    def session_duration(self) -> timedelta:
        return timedelta(hours=self.session_duration_hours)


def load_config(path: str) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Strict validation: unknown keys and wrongly typed values are errors
    rather than being ignored.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object; an empty file yields the defaults

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    return _parse_config(raw_config)


def _parse_config(raw_config: Dict[str, Any]) -> AppConfig:
    allowed_keys = {'session_duration_hours', 'project_roots', 'group_by', 'log_level'}
    unknown_keys = set(raw_config.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    values: Dict[str, Any] = {}

    if 'session_duration_hours' in raw_config:
        hours = raw_config['session_duration_hours']
        if isinstance(hours, bool) or not isinstance(hours, (int, float)) or hours <= 0:
            raise ValueError("'session_duration_hours' must be a number > 0")
        values['session_duration_hours'] = float(hours)

    if 'project_roots' in raw_config:
        roots = raw_config['project_roots']
        if not isinstance(roots, list) or not roots:
            raise ValueError("'project_roots' must be a non-empty list")
        for root in roots:
            if not isinstance(root, str) or not root.strip():
                raise ValueError("'project_roots' entries must be non-empty strings")
        values['project_roots'] = tuple(Path(root).expanduser() for root in roots)

    if 'group_by' in raw_config:
        group_by = raw_config['group_by']
        valid_groups = [g.value for g in GroupBy]
        if not isinstance(group_by, str) or group_by.lower() not in valid_groups:
            raise ValueError(f"'group_by' must be one of: {valid_groups}")
        values['group_by'] = GroupBy(group_by.lower())

    if 'log_level' in raw_config:
        level = raw_config['log_level']
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            raise ValueError(f"'log_level' must be one of: {list(LOG_LEVELS)}")
        values['log_level'] = level.upper()

    return AppConfig(**values)


def resolve_config(path: Optional[str] = None) -> AppConfig:
    """Find and load the active configuration.

    Precedence: explicit path, then the CLAUDETTE_CONFIG environment
    variable, then the default location if that file exists. Without any
    file the defaults apply.
    """
    if path:
        return load_config(path)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return load_config(env_path)

    if DEFAULT_CONFIG_PATH.exists():
        return load_config(str(DEFAULT_CONFIG_PATH))

    return AppConfig()
