from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path

from clockr.store.paths import default_config_path, default_db_path

ENV_DB = "CLOCKR_DB"
ENV_TZ = "CLOCKR_TZ"
ENV_LOG_LEVEL = "CLOCKR_LOG_LEVEL"


@dataclass(frozen=True)
class ClockrConfig:
    db_path: Path
    # IANA zone name; None means the system local zone.
    timezone: str | None
    log_level: str


def load_config(path: Path | None = None) -> ClockrConfig:
    if path is None:
        path = default_config_path()

    cfg = ClockrConfig(db_path=default_db_path(), timezone=None, log_level="WARNING")

    if path.exists():
        obj = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(obj, dict):
            raise ValueError("config must be a JSON object")

        raw_db = obj.get("db_path")
        raw_tz = obj.get("timezone")
        raw_level = obj.get("log_level")
        for key, value in (("db_path", raw_db), ("timezone", raw_tz), ("log_level", raw_level)):
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string")

        if raw_db:
            cfg = replace(cfg, db_path=Path(raw_db).expanduser())
        if raw_tz:
            cfg = replace(cfg, timezone=raw_tz)
        if raw_level:
            cfg = replace(cfg, log_level=raw_level.upper())

    return _apply_env(cfg)


def _apply_env(cfg: ClockrConfig) -> ClockrConfig:
    db = os.environ.get(ENV_DB)
    tz = os.environ.get(ENV_TZ)
    level = os.environ.get(ENV_LOG_LEVEL)
    if db:
        cfg = replace(cfg, db_path=Path(db).expanduser())
    if tz:
        cfg = replace(cfg, timezone=tz)
    if level:
        cfg = replace(cfg, log_level=level.upper())
    return cfg
