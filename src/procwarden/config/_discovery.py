"""Config path discovery utilities.

Configuration files are looked up in two places: the platform-specific
user config directory and ``procwarden.toml`` in the working directory.
"""

from pathlib import Path
from typing import Any

import platformdirs

from ._defaults import DEFAULT_CONFIG
from ._models import ConfigSource, ConfigSourceName

PROJECT_CONFIG_NAME = "procwarden.toml"


def get_user_config_path() -> Path:
    r"""Get platform-specific user config file path.

    - Linux: ``~/.config/procwarden/config.toml``
    - macOS: ``~/Library/Application Support/procwarden/config.toml``
    - Windows: ``%APPDATA%\procwarden\config.toml``

    The path is returned regardless of whether the file exists.
    """
    return platformdirs.user_config_path("procwarden") / "config.toml"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """Get the project config file path in ``cwd`` (default: current directory)."""
    return (cwd or Path.cwd()) / PROJECT_CONFIG_NAME


def _file_exists(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def discover_sources(
    cwd: Path | None = None,
    *,
    include_env: bool = True,
    cli_overrides: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
) -> list[ConfigSource]:
    """Discover all configuration sources.

    Args:
        cwd: Directory searched for the project config file.
        include_env: Include environment variables as a source.
        cli_overrides: CLI argument overrides, highest precedence.

    Returns:
        List of ConfigSource objects in precedence order (highest first).
        File sources that don't exist are still included with exists=False.
    """
    sources: list[ConfigSource] = []

    if cli_overrides:
        sources.append(
            ConfigSource(
                name=ConfigSourceName.CLI,
                path=None,
                exists=True,
                values=cli_overrides,
            )
        )

    if include_env:
        sources.append(
            ConfigSource(
                name=ConfigSourceName.ENV,
                path=None,
                exists=True,  # Actual values parsed during loading phase
                values={},
            )
        )

    project_path = get_project_config_path(cwd)
    sources.append(
        ConfigSource(
            name=ConfigSourceName.PROJECT,
            path=project_path,
            exists=_file_exists(project_path),
            values={},
        )
    )

    user_path = get_user_config_path()
    sources.append(
        ConfigSource(
            name=ConfigSourceName.USER,
            path=user_path,
            exists=_file_exists(user_path),
            values={},
        )
    )

    sources.append(
        ConfigSource(
            name=ConfigSourceName.DEFAULT,
            path=None,
            exists=True,
            values=DEFAULT_CONFIG,
        )
    )

    return sources
