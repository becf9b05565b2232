from pathlib import Path

import pytest

from procwarden.config import (
    ConfigLoadError,
    ConfigSourceName,
    ConfigValidationError,
    safe_load_config,
)


class TestExplicitPath:
    def test_loads_file_and_applies_overrides(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.toml"
        _ = path.write_text('[supervisor]\nname = "api"\nmax_attempts = 5\n')

        config, error = safe_load_config(
            config_path=path,
            cli_overrides={"supervisor": {"retry_delay": 0.25}},
        )

        assert error is None
        assert config.supervisor.name == "api"
        assert config.supervisor.max_attempts == 5
        assert config.supervisor.retry_delay == 0.25
        assert [source.name for source in config.sources] == [
            ConfigSourceName.CLI,
            ConfigSourceName.PROJECT,
        ]
        assert config.sources[1].path == path

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError, match="Config file not found"):
            _ = safe_load_config(config_path=tmp_path / "missing.toml")

    def test_invalid_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.toml"
        _ = path.write_text("[service]\nport = 0\n")

        with pytest.raises(ConfigValidationError):
            _ = safe_load_config(config_path=path)


class TestDiscoveredConfig:
    def test_success(self, tmp_path: Path) -> None:
        _ = (tmp_path / "procwarden.toml").write_text("[service]\nport = 6380\n")

        config, error = safe_load_config(cwd=tmp_path)

        assert error is None
        assert config.service.port == 6380

    def test_falls_back_to_defaults_with_warning(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _ = (tmp_path / "procwarden.toml").write_text("[service\n")

        config, error = safe_load_config(
            cwd=tmp_path, cli_overrides={"supervisor": {"max_attempts": 2}}
        )

        assert error is not None
        assert config.service.port == 6379
        assert config.supervisor.max_attempts == 2
        assert "Warning: Failed to load config" in capsys.readouterr().err

    def test_strict_mode_reraises(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PROCWARDEN_STRICT_CONFIG", "1")
        _ = (tmp_path / "procwarden.toml").write_text("[service\n")

        with pytest.raises(ConfigLoadError):
            _ = safe_load_config(cwd=tmp_path)
