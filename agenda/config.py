# agenda: configuration
# Override paths and endpoints via agenda.yaml or environment variables.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

CONFIG_PATH = Path(__file__).parent.parent / "config" / "agenda.yaml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class AgendaConfig:
    """Runtime configuration for the agenda store."""

    # Durable storage (None = in-memory only)
    db_path: Optional[str] = "~/.local/share/agenda/agenda.db"
    key_prefix: str = "agenda_"

    # AI note normalizer (None = disabled)
    suggest_url: Optional[str] = None
    suggest_timeout: float = 15.0
    suggest_api_key_env: str = "AGENDA_SUGGEST_API_KEY"

    log_level: str = "INFO"

    def resolve_paths(self):
        """Apply environment overrides and expand ~ in paths."""
        env_db = os.environ.get("AGENDA_DB")
        if env_db:
            self.db_path = env_db
        env_url = os.environ.get("AGENDA_SUGGEST_URL")
        if env_url:
            self.suggest_url = env_url

        if self.db_path:
            self.db_path = str(Path(self.db_path).expanduser())

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"Unknown log_level '{self.log_level}'. Expected one of {LOG_LEVELS}"
            )

    @property
    def suggest_api_key(self) -> Optional[str]:
        return os.environ.get(self.suggest_api_key_env) or None

    @classmethod
    def load(cls, path: Optional[str] = None) -> "AgendaConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (OSError, yaml.YAMLError, TypeError, AttributeError):
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve_paths()
        return cfg
