"""Engine configuration.

Settings come from an optional YAML file, overridden by `LIFEOS_*`
environment variables (e.g. `LIFEOS_REMOTE_URL`, `LIFEOS_STORAGE_DIR`).
"""

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import Field

from lifeos_sync.models.base import ModelBase

ENV_PREFIX = "LIFEOS_"


class EngineSettings(ModelBase):
    """Configuration for a PersistenceEngine.

    Attributes:
        storage_dir: Directory holding the Tier-1 files and the default
            Tier-2 database.
        database_url: SQLAlchemy URL of the Tier-2 store. Defaults to a
            SQLite file inside storage_dir.
        remote_url: Base URL of the remote document API. Remote sync is
            off when unset.
        remote_enabled: Master switch to force local-only operation.
    """

    storage_dir: Path = Field(default=Path(".lifeos"))
    storage_key: str = "lifeOS_v1"
    backups_key: str = "life_os_backups"
    device_id_key: str = "deviceId"
    local_quota_bytes: int = Field(default=5 * 1024 * 1024, gt=0)

    database_url: Optional[str] = None
    object_document_id: str = "userData"

    remote_url: Optional[str] = None
    remote_token: Optional[str] = None
    remote_enabled: bool = True
    remote_document_id: str = "userData"
    remote_timeout_seconds: float = Field(default=10.0, gt=0)
    remote_poll_seconds: float = Field(default=15.0, gt=0)

    sync_interval_seconds: float = Field(default=30.0, gt=0)
    sync_min_gap_seconds: float = Field(default=25.0, ge=0)
    backup_limit: int = Field(default=10, gt=0)
    backup_dedup_seconds: float = Field(default=300.0, ge=0)

    device_id: Optional[str] = None

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.storage_dir / 'lifeos.sqlite3'}"

    @property
    def remote_configured(self) -> bool:
        return bool(self.remote_enabled and self.remote_url and self.remote_token)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        base: Optional[dict[str, Any]] = None,
    ) -> "EngineSettings":
        """Builds settings from LIFEOS_* variables on top of base values."""
        environ = os.environ if environ is None else environ
        values = dict(base or {})
        for name in cls.model_fields:
            env_name = f"{ENV_PREFIX}{name.upper()}"
            if env_name in environ:
                values[name] = environ[env_name]
        return cls.model_validate(values)


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EngineSettings:
    """Loads settings from an optional YAML file plus the environment.

    Args:
        config_path: YAML file. Falls back to LIFEOS_CONFIG when omitted.
        environ: Environment mapping. Defaults to os.environ.
    """
    environ = os.environ if environ is None else environ
    path = config_path or environ.get(f"{ENV_PREFIX}CONFIG")
    base: dict[str, Any] = {}
    if path:
        with open(path, "r") as f:
            base = yaml.safe_load(f) or {}
        if not isinstance(base, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
    return EngineSettings.from_env(environ=environ, base=base)
