from __future__ import annotations

import os
from pathlib import Path

from hecate import paths
from hecate.settings import Settings


def test_platform_dirs_use_xdg_homes() -> None:
    expected_config = Path(os.environ["XDG_CONFIG_HOME"]) / "hecate"
    expected_state = Path(os.environ["XDG_STATE_HOME"]) / "hecate"
    expected_cache = Path(os.environ["XDG_CACHE_HOME"]) / "hecate"

    assert paths.config_dir() == expected_config
    assert paths.state_dir() == expected_state
    assert paths.cache_dir() == expected_cache
    assert paths.log_dir().is_relative_to(expected_state)
    assert expected_config.is_dir()


def test_permissions_file_lives_in_config_dir() -> None:
    assert paths.permissions_file() == paths.config_dir() / "permissions.json"
    assert Settings().permissions_path == paths.permissions_file()
