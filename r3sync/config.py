from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path

import yaml


@dataclass(frozen=True)
class Settings:
    # R3 database
    db_connection: str = "db_r3.sqlite"
    create_db: bool = False
    virtual_root: str = "/"

    # Identity mapping
    map_users_file: str | None = None
    blacklist_file: str | None = None
    blacklist_target_case_sensitive: bool = True
    auto_map_file: str = "auto_mapping.txt"

    # Ownership: process|filesystem|static (used with --take-owners)
    owner_source: str = "process"
    owner_static_name: str | None = None

    # Export
    export_dir: str = "./export"
    owner_mapping_file: str = "owner_mapping.txt"

    # Paths / logging
    log_dir: str = "./logs"
    report_dir: str = "./reports"
    log_level: str = "INFO"
    report_items_limit: int = 1000


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


_ENV_PREFIX = "R3SYNC_"

_BOOL_FIELDS = {"create_db", "blacklist_target_case_sensitive"}
_INT_FIELDS = {"report_items_limit"}


def _read_yaml_config(path: Path) -> dict:
    if not path.exists() or not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        return {}
    return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def parseBool(value: str) -> bool:
    vv = value.strip().lower()
    if vv in ("1", "true", "yes", "y"):
        return True
    if vv in ("0", "false", "no", "n"):
        return False
    raise ValueError(f"Invalid boolean value: {value}")


def _coerce(name: str, value):
    if value is None or not isinstance(value, str):
        return value
    if name in _BOOL_FIELDS:
        return parseBool(value)
    if name in _INT_FIELDS:
        return int(value)
    return value


def loadSettings(config_path: str | None, cli_overrides: dict) -> LoadedSettings:
    """
    Назначение:
        Итоговые настройки запуска.

    Алгоритм:
        Priority: CLI > ENV (R3SYNC_<FIELD>) > config (YAML) > defaults.
        Неизвестные ключи конфига игнорируются.

    Ошибки:
        ValueError - некорректное булево/целое значение.
    """
    sources: list[str] = []
    names = [f.name for f in fields(Settings)]
    merged = {name: getattr(Settings(), name) for name in names}

    # 1) config file
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")
        for name in names:
            if name in cfg:
                merged[name] = _coerce(name, cfg[name])

    # 2) env
    env = {name: _env_get(_ENV_PREFIX + name.upper()) for name in names}
    if any(v is not None for v in env.values()):
        sources.append("env")
    for name, value in env.items():
        if value is not None:
            merged[name] = _coerce(name, value)

    # 3) CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")
    for name, value in cli_overrides.items():
        if value is None:
            continue
        merged[name] = _coerce(name, value)

    return LoadedSettings(settings=Settings(**merged), sources_used=sources)
