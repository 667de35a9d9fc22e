from __future__ import annotations

import os
from pathlib import Path


def xdg_data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))


def xdg_config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def default_db_path() -> Path:
    return xdg_data_home() / "clockr" / "clockr.sqlite3"


def default_config_path() -> Path:
    return xdg_config_home() / "clockr" / "config.json"
