from __future__ import annotations

from typing import Protocol

from r3sync.domain.models import (
    FolderRecord,
    IdentityEntry,
    ObjectKind,
    PermissionRecord,
    VirtualFileRecord,
)


class R3RepositoryProtocol(Protocol):
    """
    Назначение/ответственность:
        Хранилище виртуальной ФС R3: пользователи, папки, файлы, права.
    Взаимодействия:
        Каждый вызов транзакционен; сбои поднимаются как PersistenceError.
    """

    def resolve_or_create_identity(self, name: str, display_name: str) -> int: ...

    def create_identity(self, name: str, display_name: str) -> int: ...

    def identity_by_name(self, name: str) -> IdentityEntry | None: ...

    def identity_by_id(self, identity_id: int) -> IdentityEntry | None: ...

    def all_identities(self) -> list[IdentityEntry]: ...

    def delete_identity_by_name(self, name: str) -> bool: ...

    def ensure_folder(self, record: FolderRecord) -> int: ...

    def save_file(self, record: VirtualFileRecord) -> int: ...

    def files_under(self, virtual_path: str, recursive: bool) -> list[VirtualFileRecord]: ...

    def add_permission(self, record: PermissionRecord) -> int: ...

    def permissions_for(self, kind: ObjectKind, object_id: int) -> list[PermissionRecord]: ...

    def counts(self) -> dict[str, int]: ...
