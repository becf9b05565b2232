# pyright: reportAny=false
from pathlib import Path

import pytest

from procwarden.config import (
    Config,
    ConfigLoadError,
    ConfigSourceName,
    ConfigValidationError,
    LogFormat,
    LogLevel,
    discover_sources,
)
from procwarden.service import DiagnosticsQuery, ShutdownPolicy


class TestDefaults:
    def test_supervisor_defaults(self) -> None:
        config = Config.from_dict({})

        assert config.supervisor.name == "sol_new"
        assert config.supervisor.command == ("cargo", "run")
        assert config.supervisor.log_file == "sol_new_restart.log"
        assert config.supervisor.max_attempts == 100
        assert config.supervisor.retry_delay == 2.0

    def test_service_defaults(self) -> None:
        config = Config.from_dict({})

        assert config.service.name == "Redis"
        assert config.service.port == 6379
        assert config.service.match_token == "redis-server"
        assert config.service.start_command == ("redis-server",)
        assert config.service.config_path == "/etc/redis/redis.conf"

    def test_logging_defaults(self) -> None:
        config = Config.from_dict({})

        assert config.logging.level is LogLevel.INFO
        assert config.logging.format is LogFormat.LINE
        assert config.logging.console is True

    def test_service_log_file_default(self) -> None:
        assert Config.from_dict({}).service.log_file == "redis_control.log"

    def test_from_dict_has_no_sources(self) -> None:
        assert Config.from_dict({}).sources == []


class TestSectionConversions:
    def test_to_policy(self) -> None:
        config = Config.from_dict({"supervisor": {"max_attempts": 3, "retry_delay": 0}})

        policy = config.supervisor.to_policy()

        assert policy.max_attempts == 3
        assert policy.retry_delay == 0

    def test_worker_cwd(self, tmp_path: Path) -> None:
        assert Config.from_dict({}).supervisor.worker_cwd() is None
        config = Config.from_dict({"supervisor": {"cwd": str(tmp_path)}})
        assert config.supervisor.worker_cwd() == tmp_path

    def test_to_target(self) -> None:
        target = Config.from_dict({"service": {"port": 6380}}).service.to_target()

        assert target.display_name == "Redis"
        assert target.listen_port == 6380
        assert target.config_path == Path("/etc/redis/redis.conf")
        assert target.diagnostics == DiagnosticsQuery(
            command=("redis-cli", "-p", "{port}", "info"),
            fields=(
                "redis_version",
                "uptime_in_days",
                "connected_clients",
                "used_memory_human",
                "total_connections_received",
            ),
            timeout_ms=5000,
        )

    def test_to_target_without_optional_parts(self) -> None:
        config = Config.from_dict({"service": {"config_path": "", "info_command": []}})

        target = config.service.to_target()

        assert target.config_path is None
        assert target.diagnostics is None

    def test_negative_kill_settle_uses_poll_interval(self) -> None:
        policy = Config.from_dict({"service": {"poll_interval": 0.5}}).service.to_shutdown_policy()

        assert policy == ShutdownPolicy(poll_interval=0.5, max_polls=5, kill_settle=None)
        assert policy.settle_after_kill == 0.5

    def test_explicit_kill_settle(self) -> None:
        policy = Config.from_dict({"service": {"kill_settle": 2.0}}).service.to_shutdown_policy()
        assert policy.settle_after_kill == 2.0

    def test_lock_directory(self, tmp_path: Path) -> None:
        config = Config.from_dict({"service": {"lock_dir": str(tmp_path)}})
        assert config.service.lock_directory() == tmp_path


class TestValidation:
    @pytest.mark.parametrize(
        "data",
        [
            {"supervisor": {"max_attempts": 0}},
            {"supervisor": {"retry_delay": -1}},
            {"supervisor": {"command": []}},
            {"service": {"port": 70000}},
            {"service": {"max_polls": 0}},
            {"logging": {"level": "loud"}},
        ],
    )
    def test_invalid_values_raise(self, data: dict[str, object]) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            _ = Config.from_dict(data, source="procwarden.toml")

        assert exc_info.value.source == "procwarden.toml"
        assert exc_info.value.errors
        assert "Invalid configuration in procwarden.toml" in str(exc_info.value)

    def test_unknown_keys_are_ignored(self) -> None:
        config = Config.from_dict({"service": {"colour": "red"}, "extra": {}})
        assert config.service.name == "Redis"

    def test_models_are_frozen(self) -> None:
        config = Config.from_dict({})
        with pytest.raises(ValueError, match="frozen"):
            config.service.port = 1  # pyright: ignore[reportAttributeAccessIssue]


class TestFromFile:
    def test_merges_over_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.toml"
        _ = path.write_text(
            '[supervisor]\ncommand = ["./worker", "--fast"]\nmax_attempts = 3\n'
        )

        config = Config.from_file(path)

        assert config.supervisor.command == ("./worker", "--fast")
        assert config.supervisor.max_attempts == 3
        assert config.supervisor.retry_delay == 2.0
        assert [s.path for s in config.sources] == [path]


class TestDiscovery:
    def test_sources_in_precedence_order(self, tmp_path: Path) -> None:
        sources = discover_sources(tmp_path, cli_overrides={"service": {"port": 1}})

        assert [s.name for s in sources] == [
            ConfigSourceName.CLI,
            ConfigSourceName.ENV,
            ConfigSourceName.PROJECT,
            ConfigSourceName.USER,
            ConfigSourceName.DEFAULT,
        ]
        assert sources[2].path == tmp_path / "procwarden.toml"
        assert sources[2].exists is False

    def test_without_env_or_cli(self, tmp_path: Path) -> None:
        sources = discover_sources(tmp_path, include_env=False)
        assert ConfigSourceName.ENV not in [s.name for s in sources]
        assert ConfigSourceName.CLI not in [s.name for s in sources]


class TestLoad:
    def test_defaults_only(self, tmp_path: Path) -> None:
        config = Config.load(cwd=tmp_path)
        assert config.service.port == 6379

    def test_precedence(
        self,
        tmp_path: Path,
        isolated_config: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        isolated_config.parent.mkdir(parents=True)
        _ = isolated_config.write_text(
            '[service]\nname = "Valkey"\nport = 6000\nmax_polls = 2\nsettle_delay = 3.0\n'
        )
        _ = (tmp_path / "procwarden.toml").write_text(
            "[service]\nport = 6001\nmax_polls = 3\nsettle_delay = 4.0\n"
        )
        monkeypatch.setenv("PROCWARDEN_SERVICE__MAX_POLLS", "4")
        monkeypatch.setenv("PROCWARDEN_SERVICE__SETTLE_DELAY", "5.0")

        config = Config.load(
            cwd=tmp_path, cli_overrides={"service": {"settle_delay": 6.0}}
        )

        assert config.service.name == "Valkey"
        assert config.service.port == 6001
        assert config.service.max_polls == 4
        assert config.service.settle_delay == 6.0
        assert config.sources[0].name is ConfigSourceName.CLI

    def test_invalid_project_file_raises(self, tmp_path: Path) -> None:
        _ = (tmp_path / "procwarden.toml").write_text("[service\n")

        with pytest.raises(ConfigLoadError):
            _ = Config.load(cwd=tmp_path)
