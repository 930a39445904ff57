from pathlib import Path

import pytest
from pydantic import ValidationError

from lifeos_sync.config import EngineSettings, load_settings


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.storage_key == "lifeOS_v1"
        assert settings.backups_key == "life_os_backups"
        assert settings.backup_limit == 10
        assert settings.backup_dedup_seconds == 300
        assert settings.resolved_database_url == f"sqlite:///{Path('.lifeos') / 'lifeos.sqlite3'}"
        assert settings.remote_configured is False

    def test_explicit_database_url(self):
        settings = EngineSettings(database_url="postgresql://db/lifeos")
        assert settings.resolved_database_url == "postgresql://db/lifeos"

    def test_remote_needs_url_token_and_switch(self):
        assert EngineSettings(remote_url="https://sync.example", remote_token="t").remote_configured
        assert not EngineSettings(remote_url="https://sync.example").remote_configured
        assert not EngineSettings(
            remote_url="https://sync.example", remote_token="t", remote_enabled=False
        ).remote_configured

    def test_from_env(self):
        settings = EngineSettings.from_env(
            environ={
                "LIFEOS_STORAGE_DIR": "/var/lib/lifeos",
                "LIFEOS_SYNC_INTERVAL_SECONDS": "10",
                "LIFEOS_REMOTE_ENABLED": "false",
                "UNRELATED": "ignored",
            }
        )
        assert settings.storage_dir == Path("/var/lib/lifeos")
        assert settings.sync_interval_seconds == 10.0
        assert settings.remote_enabled is False

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            EngineSettings(backup_limit=0)
        with pytest.raises(ValidationError):
            EngineSettings(unknown_option=True)


class TestLoadSettings:
    def test_yaml_with_env_overrides(self, tmp_path):
        config = tmp_path / "lifeos.yaml"
        config.write_text("storage_dir: /srv/lifeos\nbackup_limit: 3\n")

        settings = load_settings(config, environ={"LIFEOS_BACKUP_LIMIT": "5"})

        assert settings.storage_dir == Path("/srv/lifeos")
        assert settings.backup_limit == 5

    def test_config_path_from_env(self, tmp_path):
        config = tmp_path / "lifeos.yaml"
        config.write_text("remote_url: https://sync.example\n")

        settings = load_settings(environ={"LIFEOS_CONFIG": str(config)})
        assert settings.remote_url == "https://sync.example"

    def test_empty_yaml(self, tmp_path):
        config = tmp_path / "empty.yaml"
        config.write_text("")
        assert load_settings(config, environ={}).backup_limit == 10

    def test_yaml_must_be_a_mapping(self, tmp_path):
        config = tmp_path / "list.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_settings(config, environ={})

    def test_no_config(self):
        assert load_settings(environ={}) == EngineSettings()
