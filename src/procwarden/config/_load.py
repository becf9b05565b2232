import os
import sys
from pathlib import Path

from procwarden.exceptions import ConfigError, ConfigLoadError

from ._loader import deep_merge
from ._models import Config, ConfigSource, ConfigSourceName


def safe_load_config(
    *,
    config_path: Path | None = None,
    cwd: Path | None = None,
    cli_overrides: dict[str, object] | None = None,
) -> tuple[Config, str | None]:
    """Load configuration with error handling.

    Handles errors based on the PROCWARDEN_STRICT_CONFIG environment variable:
    - If unset or "0": warn to stderr and fall back to the defaults
    - If "1": re-raise the error

    When config_path is provided, the file must exist (explicit user request)
    and discovery is skipped. CLI overrides still apply on top of it.

    Args:
        config_path: Explicit path to config file (--config flag).
        cwd: Directory searched for ``procwarden.toml``.
        cli_overrides: CLI argument overrides.

    Returns:
        Tuple of (Config, error_message). On success, error_message is None.

    Raises:
        ConfigError: If the explicit config file is missing or invalid, or
            on any error in strict mode.
    """
    strict_mode = os.environ.get("PROCWARDEN_STRICT_CONFIG", "0") == "1"

    if config_path is not None:
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise ConfigLoadError(msg, path=config_path)
        config = Config.from_file(config_path)
        if cli_overrides:
            overridden = Config.from_dict(
                deep_merge(config.model_dump(mode="json"), dict(cli_overrides)),
                source=str(config_path),
            )
            overridden._sources = (  # pyright: ignore[reportPrivateUsage]
                ConfigSource(
                    name=ConfigSourceName.CLI,
                    path=None,
                    exists=True,
                    values=dict(cli_overrides),
                ),
                *config.sources,
            )
            config = overridden
        return config, None

    try:
        config = Config.load(cwd=cwd, cli_overrides=dict(cli_overrides or {}))
    except (ConfigError, OSError) as e:
        error_msg = str(e)
        if strict_mode:
            raise
        print(f"Warning: Failed to load config: {error_msg}", file=sys.stderr)  # noqa: T201
        return Config.from_dict(dict(cli_overrides or {})), error_msg

    return config, None

