from __future__ import annotations

from pathlib import Path

import pytest

from r3sync.domain.exceptions import PersistenceError
from r3sync.infra.r3.db import looksLikeConnectionString, openR3Db, parseConnectionString, resolveDbPath


def test_parse_connection_string():
    parsed = parseConnectionString("Data Source=r3.db; Password=secret")

    assert parsed["data source"] == "r3.db"
    assert looksLikeConnectionString("Data Source=r3.db")
    assert not looksLikeConnectionString("r3.db")


def test_resolve_plain_path_and_connection_string():
    assert resolveDbPath("db/r3.sqlite") == "db/r3.sqlite"
    assert resolveDbPath("Data Source=db/r3.sqlite;Version=3") == "db/r3.sqlite"


def test_resolve_text_file_with_connection_string(tmp_path: Path):
    conn_file = tmp_path / "conn.txt"
    conn_file.write_text("Data Source=/srv/r3/db.sqlite\n", encoding="utf-8")

    assert resolveDbPath(str(conn_file)) == "/srv/r3/db.sqlite"


def test_resolve_existing_sqlite_file(tmp_path: Path):
    db_path = tmp_path / "r3.sqlite"
    openR3Db(str(db_path), createIfMissing=True).close()

    assert resolveDbPath(str(db_path)) == str(db_path)


def test_open_missing_db_without_create_fails(tmp_path: Path):
    with pytest.raises(PersistenceError):
        openR3Db(str(tmp_path / "missing.sqlite"), createIfMissing=False)


def test_open_creates_parent_dirs(tmp_path: Path):
    db_path = tmp_path / "nested" / "r3.sqlite"
    conn = openR3Db(str(db_path), createIfMissing=True)
    conn.close()

    assert db_path.exists()


def test_non_sqlite_connection_string_is_config_error():
    from r3sync.domain.exceptions import ConfigError

    with pytest.raises(ConfigError):
        resolveDbPath("Server=db.local;Database=r3;User Id=sa")
