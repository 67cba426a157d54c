from __future__ import annotations

import functools
import sqlite3
from datetime import datetime, timezone

from r3sync.domain.exceptions import PersistenceError
from r3sync.domain.models import (
    FolderRecord,
    IdentityEntry,
    ObjectKind,
    PermissionRecord,
    VirtualFileRecord,
)
from r3sync.domain.ports.r3_repository import R3RepositoryProtocol
from r3sync.infra.r3.sqlite_engine import SqliteEngine


def _persistence(operation: str):
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except sqlite3.Error as exc:
                raise PersistenceError(operation, str(exc)) from exc

        return wrapper

    return decorator


def _to_identity(row: sqlite3.Row) -> IdentityEntry:
    return IdentityEntry(id=int(row["id"]), username=row["username"], display_name=row["displayname"] or "")


def _parse_utc(value: str | None) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SqliteR3Repository(R3RepositoryProtocol):
    """
    Назначение/ответственность:
        SQLite реализация хранилища R3.

    Инварианты/гарантии:
        - (path, name) файла уникальны; повторное сохранение перезаписывает содержимое.
        - Права только добавляются: повторный перенос даёт дубликаты строк.
        - Каждый публичный метод - одна транзакция; sqlite3.Error -> PersistenceError.
    """

    def __init__(self, engine: SqliteEngine):
        self.engine = engine

    @_persistence("resolve_or_create_identity")
    def resolve_or_create_identity(self, name: str, display_name: str) -> int:
        with self.engine.transaction():
            existing = self.engine.fetchvalue("SELECT id FROM users WHERE username = ?", (name,))
            if existing is not None:
                return int(existing)
            return self.engine.insert(
                "INSERT INTO users(username, displayname) VALUES (?, ?)",
                (name, display_name),
            )

    def create_identity(self, name: str, display_name: str) -> int:
        return self.resolve_or_create_identity(name, display_name)

    @_persistence("identity_by_name")
    def identity_by_name(self, name: str) -> IdentityEntry | None:
        row = self.engine.fetchone("SELECT id, username, displayname FROM users WHERE username = ?", (name,))
        return _to_identity(row) if row else None

    @_persistence("identity_by_id")
    def identity_by_id(self, identity_id: int) -> IdentityEntry | None:
        row = self.engine.fetchone("SELECT id, username, displayname FROM users WHERE id = ?", (identity_id,))
        return _to_identity(row) if row else None

    @_persistence("all_identities")
    def all_identities(self) -> list[IdentityEntry]:
        rows = self.engine.fetchall("SELECT id, username, displayname FROM users ORDER BY id")
        return [_to_identity(row) for row in rows]

    @_persistence("delete_identity_by_name")
    def delete_identity_by_name(self, name: str) -> bool:
        with self.engine.transaction():
            cur = self.engine.execute("DELETE FROM users WHERE username = ?", (name,))
            return cur.rowcount > 0

    @_persistence("ensure_folder")
    def ensure_folder(self, record: FolderRecord) -> int:
        with self.engine.transaction():
            existing = self.engine.fetchvalue("SELECT id FROM folders WHERE path = ?", (record.virtual_path,))
            if existing is not None:
                record.id = int(existing)
                return record.id
            record.id = self.engine.insert(
                "INSERT INTO folders(path, owner_id, created_utc) VALUES (?, ?, ?)",
                (record.virtual_path, record.owner_id, record.created_utc.isoformat()),
            )
            return record.id

    @_persistence("save_file")
    def save_file(self, record: VirtualFileRecord) -> int:
        with self.engine.transaction():
            self.engine.execute(
                """
                INSERT INTO files(name, path, content, owner_id, created_utc)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(path, name) DO UPDATE SET
                    content=excluded.content,
                    owner_id=excluded.owner_id,
                    created_utc=excluded.created_utc
                """,
                (
                    record.name,
                    record.virtual_path,
                    sqlite3.Binary(record.content),
                    record.owner_id,
                    record.created_utc.isoformat(),
                ),
            )
            file_id = self.engine.fetchvalue(
                "SELECT id FROM files WHERE path = ? AND name = ?",
                (record.virtual_path, record.name),
            )
        record.id = int(file_id)
        return record.id

    @_persistence("files_under")
    def files_under(self, virtual_path: str, recursive: bool) -> list[VirtualFileRecord]:
        columns = "id, name, path, content, owner_id, created_utc"
        if recursive:
            prefix = virtual_path.rstrip("/")
            rows = self.engine.fetchall(
                f"SELECT {columns} FROM files WHERE substr(path, 1, ?) = ? ORDER BY path, name",
                (len(prefix), prefix),
            )
        else:
            rows = self.engine.fetchall(
                f"SELECT {columns} FROM files WHERE path = ? ORDER BY name",
                (virtual_path,),
            )
        return [
            VirtualFileRecord(
                id=int(row["id"]),
                name=row["name"],
                virtual_path=row["path"],
                content=bytes(row["content"] or b""),
                owner_id=int(row["owner_id"] or 0),
                created_utc=_parse_utc(row["created_utc"]),
            )
            for row in rows
        ]

    @_persistence("add_permission")
    def add_permission(self, record: PermissionRecord) -> int:
        with self.engine.transaction():
            record.id = self.engine.insert(
                "INSERT INTO permissions(user_id, object_type, object_id, rights) VALUES (?, ?, ?, ?)",
                (record.user_id, record.object_kind.value, record.object_id, record.rights),
            )
        return record.id

    @_persistence("permissions_for")
    def permissions_for(self, kind: ObjectKind, object_id: int) -> list[PermissionRecord]:
        rows = self.engine.fetchall(
            "SELECT id, user_id, object_type, object_id, rights FROM permissions "
            "WHERE object_type = ? AND object_id = ? ORDER BY id",
            (kind.value, object_id),
        )
        return [
            PermissionRecord(
                id=int(row["id"]),
                user_id=int(row["user_id"]),
                object_kind=ObjectKind(row["object_type"]),
                object_id=int(row["object_id"]),
                rights=row["rights"] or "",
            )
            for row in rows
        ]

    @_persistence("counts")
    def counts(self) -> dict[str, int]:
        return {
            table: int(self.engine.fetchvalue(f"SELECT COUNT(*) FROM {table}"))
            for table in ("users", "folders", "files", "permissions")
        }
