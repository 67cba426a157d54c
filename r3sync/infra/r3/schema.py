from __future__ import annotations

from r3sync.infra.r3.sqlite_engine import SqliteEngine

SCHEMA_VERSION = 1

_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        displayname TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS folders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT UNIQUE NOT NULL,
        owner_id INTEGER,
        created_utc TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        path TEXT NOT NULL,
        content BLOB,
        owner_id INTEGER,
        created_utc TEXT,
        UNIQUE(path, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS permissions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        object_type TEXT,
        object_id INTEGER,
        rights TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_files_path ON files(path)",
    "CREATE INDEX IF NOT EXISTS idx_permissions_object ON permissions(object_type, object_id)",
)


def ensure_r3_schema(engine: SqliteEngine) -> int:
    """
    Назначение:
        Создаёт таблицы users/folders/files/permissions и фиксирует schema_version.
    """
    with engine.transaction():
        for ddl in _TABLES:
            engine.execute(ddl)
        current = _get_schema_version(engine)
        if current is None or current < SCHEMA_VERSION:
            _set_schema_version(engine, SCHEMA_VERSION)
            return SCHEMA_VERSION
        return current


def _get_schema_version(engine: SqliteEngine) -> int | None:
    value = engine.fetchvalue("SELECT value FROM meta WHERE key='schema_version'")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _set_schema_version(engine: SqliteEngine, version: int) -> None:
    engine.execute(
        """
        INSERT INTO meta(key, value)
        VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        ("schema_version", str(version)),
    )
