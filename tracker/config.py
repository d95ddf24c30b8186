# Project tracker — configuration
# Override paths and server settings via tracker.yaml or environment.

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path(__file__).parent.parent / "tracker.yaml"


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""
    pass


@dataclass
class TrackerConfig:
    """Runtime configuration for the tracker."""

    # Storage
    db_path: str = "~/.local/share/tracker/tracker.db"
    storage_key: str = "projects"

    # Persistence batching (0 = write on every mutation)
    autosave_delay_ms: int = 0

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    api_secret_env: str = "TRACKER_API_SECRET"

    # Logging
    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ and apply environment overrides."""
        env_db = os.environ.get("TRACKER_DB")
        if env_db:
            self.db_path = env_db
        self.db_path = str(Path(self.db_path).expanduser())

    @property
    def api_secret(self) -> str:
        """Shared secret for mutating API calls. Empty disables the check."""
        return os.environ.get(self.api_secret_env, "").strip()

    @property
    def autosave_delay_secs(self) -> float:
        return max(self.autosave_delay_ms, 0) / 1000

    @classmethod
    def load(cls, path: Optional[str] = None) -> "TrackerConfig":
        """Load config from YAML file, falling back to defaults if absent."""
        if path is None:
            path = os.environ.get("TRACKER_CONFIG")
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping at the top level")
            known = {f.name for f in fields(cls)}
            cfg = cls(**{k: v for k, v in data.items() if k in known})
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg
