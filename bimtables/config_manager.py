"""ConfigManager: environment profiles, engine settings and logging setup."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from bimtables import config as defaults

logger = logging.getLogger(__name__)

# All known configuration keys with defaults
_CONFIG_KEYS: dict[str, dict[str, Any]] = {
    "BIMTABLES_ENV": {"default": "development", "description": "Environment profile"},
    "BIMTABLES_LOG_LEVEL": {"default": "INFO", "description": "Logging level"},
    "BIMTABLES_STORE": {"default": "memory", "description": "Table store backend (memory|sqlite)"},
    "BIMTABLES_DB": {"default": "tables.db", "description": "SQLite table store path"},
    "BIMTABLES_SAMPLE_SIZE": {
        "default": str(defaults.DISCOVERY_SAMPLE_SIZE),
        "description": "Elements sampled during parameter discovery",
    },
    "BIMTABLES_MIN_FREQUENCY": {
        "default": str(defaults.DISCOVERY_MIN_FREQUENCY),
        "description": "Minimum share of elements a discovered parameter must appear on",
    },
    "BIMTABLES_BATCH_SIZE": {
        "default": str(defaults.DISCOVERY_BATCH_SIZE),
        "description": "Elements processed between cooperative yields",
    },
    "BIMTABLES_ECHO_WINDOW": {
        "default": str(defaults.ANTI_ECHO_WINDOW_SECONDS),
        "description": "Seconds after a save during which remote updates are ignored",
    },
    "BIMTABLES_QUEUE_DELAY": {"default": "0", "description": "Seconds between queued saves"},
    "BIMTABLES_HISTORY_SIZE": {
        "default": str(defaults.HISTORY_MAX_ENTRIES),
        "description": "Undo history length",
    },
    "BIMTABLES_INIT_TIMEOUT": {
        "default": str(defaults.INIT_TIMEOUT_SECONDS),
        "description": "Seconds to wait for upstream data",
    },
    "BIMTABLES_INIT_RETRIES": {
        "default": str(defaults.INIT_MAX_RETRIES),
        "description": "Polls before giving up on upstream data",
    },
}

_PROFILES: dict[str, dict[str, str]] = {
    "development": {
        "BIMTABLES_ENV": "development",
        "BIMTABLES_LOG_LEVEL": "DEBUG",
    },
    "production": {
        "BIMTABLES_ENV": "production",
        "BIMTABLES_LOG_LEVEL": "WARNING",
        "BIMTABLES_STORE": "sqlite",
        "BIMTABLES_QUEUE_DELAY": "0.5",
    },
    "testing": {
        "BIMTABLES_ENV": "testing",
        "BIMTABLES_LOG_LEVEL": "DEBUG",
        "BIMTABLES_STORE": "memory",
        "BIMTABLES_DB": ":memory:",
    },
}


class EngineSettings(BaseModel):
    """Typed view of the merged configuration."""

    env: str = "development"
    log_level: str = "INFO"
    store: str = "memory"
    db_path: str = "tables.db"
    sample_size: int = Field(default=defaults.DISCOVERY_SAMPLE_SIZE, ge=1)
    min_frequency: float = Field(default=defaults.DISCOVERY_MIN_FREQUENCY, ge=0.0, le=1.0)
    batch_size: int = Field(default=defaults.DISCOVERY_BATCH_SIZE, ge=1)
    echo_window: float = Field(default=defaults.ANTI_ECHO_WINDOW_SECONDS, ge=0.0)
    queue_delay: float = Field(default=0.0, ge=0.0)
    history_size: int = Field(default=defaults.HISTORY_MAX_ENTRIES, ge=1)
    init_timeout: float = Field(default=defaults.INIT_TIMEOUT_SECONDS, gt=0.0)
    init_retries: int = Field(default=defaults.INIT_MAX_RETRIES, ge=1)


_SETTINGS_KEYS = {
    "BIMTABLES_ENV": "env",
    "BIMTABLES_LOG_LEVEL": "log_level",
    "BIMTABLES_STORE": "store",
    "BIMTABLES_DB": "db_path",
    "BIMTABLES_SAMPLE_SIZE": "sample_size",
    "BIMTABLES_MIN_FREQUENCY": "min_frequency",
    "BIMTABLES_BATCH_SIZE": "batch_size",
    "BIMTABLES_ECHO_WINDOW": "echo_window",
    "BIMTABLES_QUEUE_DELAY": "queue_delay",
    "BIMTABLES_HISTORY_SIZE": "history_size",
    "BIMTABLES_INIT_TIMEOUT": "init_timeout",
    "BIMTABLES_INIT_RETRIES": "init_retries",
}


class ConfigManager:
    """Manage bimtables configuration across environments."""

    def generate_env_template(self, project_path: str | Path) -> Path:
        """Create .env.example with all config keys.

        Returns the path to the generated file.
        """
        root = Path(project_path)
        env_path = root / ".env.example"

        lines = ["# bimtables configuration template", "# Copy to .env and fill in values", ""]
        for key, info in _CONFIG_KEYS.items():
            lines.append(f"# {info['description']}")
            lines.append(f"{key}={info['default']}")
            lines.append("")

        env_path.write_text("\n".join(lines), encoding="utf-8")
        return env_path

    def load_config(self, project_path: str | Path = ".") -> dict[str, str]:
        """Load merged config: defaults -> profile -> config.json -> .env -> env vars.

        Returns a flat dict of configuration values.
        """
        root = Path(project_path)
        config: dict[str, str] = {}

        # 1. Defaults
        for key, info in _CONFIG_KEYS.items():
            config[key] = str(info["default"])

        # 2. Profile overrides
        env_name = os.environ.get("BIMTABLES_ENV", config.get("BIMTABLES_ENV", "development"))
        config.update(_PROFILES.get(env_name, {}))

        # 3. .bimtables/config.json
        config_json = root / ".bimtables" / "config.json"
        if config_json.is_file():
            try:
                data = json.loads(config_json.read_text(encoding="utf-8"))
                for k, v in data.items():
                    config[k] = str(v)
            except (json.JSONDecodeError, OSError):
                logger.debug("Could not read config.json", exc_info=True)

        # 4. .env file
        env_file = root / ".env"
        if env_file.is_file():
            try:
                for line in env_file.read_text(encoding="utf-8").splitlines():
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" in line:
                        k, v = line.split("=", 1)
                        config[k.strip()] = v.strip()
            except OSError:
                logger.debug("Could not read .env", exc_info=True)

        # 5. Environment variables override all
        for key in _CONFIG_KEYS:
            env_val = os.environ.get(key)
            if env_val is not None:
                config[key] = env_val

        return config

    def settings(self, project_path: str | Path = ".") -> EngineSettings:
        """Merged configuration validated into :class:`EngineSettings`."""
        config = self.load_config(project_path)
        values = {
            attr: config[key] for key, attr in _SETTINGS_KEYS.items() if config.get(key, "") != ""
        }
        return EngineSettings.model_validate(values)


def configure_logging(level: str | int | None = None) -> None:
    """Configure the ``bimtables`` logger hierarchy.

    *level* defaults to ``BIMTABLES_LOG_LEVEL`` from the environment.
    """
    if level is None:
        level = os.environ.get("BIMTABLES_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger("bimtables")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        root.addHandler(handler)
