import os
from pathlib import Path

import pytest
from pytest_mock import MockerFixture


@pytest.fixture(autouse=True)
def isolated_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, mocker: MockerFixture
) -> Path:
    """Point the user config file into tmp_path and clear PROCWARDEN_ vars."""
    for key in list(os.environ):
        if key.startswith("PROCWARDEN_"):
            monkeypatch.delenv(key)
    user_config = tmp_path / "user" / "config.toml"
    _ = mocker.patch(
        "procwarden.config._discovery.get_user_config_path", return_value=user_config
    )
    return user_config
