from __future__ import annotations

import sqlite3
from pathlib import Path

from r3sync.domain.exceptions import ConfigError, PersistenceError

DEFAULT_DB_FILE = "db_r3.sqlite"

_SQLITE_HEADER = b"SQLite format 3\x00"
_DATA_SOURCE_KEYS = ("data source", "datasource", "filename")


def looksLikeConnectionString(value: str | None) -> bool:
    return bool(value and value.strip()) and "=" in value


def parseConnectionString(value: str) -> dict[str, str]:
    """
    Назначение:
        Разбор строки подключения 'Key=Value;Key2=Value2' (ключи в нижнем регистре).
    """
    parts: dict[str, str] = {}
    for chunk in value.split(";"):
        if "=" not in chunk:
            continue
        key, val = chunk.split("=", 1)
        parts[key.strip().lower()] = val.strip()
    return parts


def _dataSourceOf(connectionString: str) -> str:
    parts = parseConnectionString(connectionString)
    for key in _DATA_SOURCE_KEYS:
        if parts.get(key):
            return parts[key]
    raise ConfigError(
        "Unsupported connection string: only SQLite 'Data Source=<file>' is supported"
    )


def _isSqliteFile(path: Path) -> bool:
    with path.open("rb") as f:
        return f.read(len(_SQLITE_HEADER)) == _SQLITE_HEADER


def resolveDbPath(dbConnection: str) -> str:
    """
    Назначение:
        Определяет путь к SQLite-файлу R3 по значению --db-connection.

    Алгоритм:
        - значение с '=' -> строка подключения, берётся Data Source
        - существующий файл SQLite -> сам файл
        - существующий текстовый файл со строкой подключения -> её Data Source
        - иначе значение трактуется как путь к (будущему) SQLite-файлу
    """
    value = (dbConnection or DEFAULT_DB_FILE).strip()
    if looksLikeConnectionString(value):
        return _dataSourceOf(value)

    p = Path(value)
    if p.is_file() and p.stat().st_size > 0 and not _isSqliteFile(p):
        content = p.read_text(encoding="utf-8").strip()
        if looksLikeConnectionString(content):
            return _dataSourceOf(content)
    return value


def openR3Db(dbPath: str, createIfMissing: bool) -> sqlite3.Connection:
    """
    Назначение:
        Открывает SQLite БД R3. Без createIfMissing отсутствующий файл - фатальная ошибка.
    """
    if dbPath != ":memory:":
        p = Path(dbPath)
        if not p.exists():
            if not createIfMissing:
                raise PersistenceError("open", f"Database not found: {dbPath} (use --create-db)")
            p.parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = sqlite3.connect(dbPath, timeout=5.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA busy_timeout = 5000")
    except sqlite3.Error as exc:
        raise PersistenceError("open", str(exc)) from exc
    return conn
