from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from r3sync.domain.error_codes import SkipCode


class ObjectKind(str, Enum):
    FILE = "file"
    FOLDER = "folder"


@dataclass(frozen=True)
class IdentityEntry:
    """
    Назначение:
        Пользователь целевой системы R3 (строка таблицы users).
    """

    id: int
    username: str
    display_name: str = ""


@dataclass
class VirtualFileRecord:
    """
    Назначение:
        Файл в виртуальной ФС R3.

    Поля:
        name: имя файла с расширением
        virtual_path: каталог в R3 ('/'-разделители), без имени файла
        content: бинарное содержимое
        owner_id: id пользователя-владельца
        created_utc: момент импорта (UTC)
        id: первичный ключ (None до сохранения)
    """

    name: str
    virtual_path: str
    content: bytes
    owner_id: int
    created_utc: datetime
    id: int | None = None


@dataclass
class FolderRecord:
    virtual_path: str
    owner_id: int
    created_utc: datetime
    id: int | None = None


@dataclass
class PermissionRecord:
    """
    Назначение:
        Право пользователя R3 на объект (файл или папку).
        rights - непрозрачная строка, переносится как есть.
    """

    user_id: int
    object_kind: ObjectKind
    object_id: int
    rights: str
    id: int | None = None


@dataclass(frozen=True)
class AclRule:
    """
    Одно правило доступа локального пути: имя учётной записи + права текстом.
    """

    identity_name: str
    rights: str


@dataclass(frozen=True)
class SkippedEntry:
    """
    Назначение:
        Пропущенный best-effort шаг (чтение ACL, перенос права, sidecar).
        Сохраняет видимость для оператора, не прерывая обход.
    """

    path: str
    code: SkipCode
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "code": self.code.value, "reason": self.reason}


@dataclass
class OperationResult:
    """
    Назначение:
        Общая часть результатов движков: список пропусков.
    """

    skipped: list[SkippedEntry] = field(default_factory=list)

    def skip(self, path: str, code: SkipCode, reason: str) -> SkippedEntry:
        entry = SkippedEntry(path=str(path), code=code, reason=reason)
        self.skipped.append(entry)
        return entry


@dataclass
class ImportResult(OperationResult):
    files_imported: int = 0
    folders_imported: int = 0
    permissions_created: int = 0
    identities_created: int = 0
    file_ids: list[int] = field(default_factory=list)


@dataclass
class ExportResult(OperationResult):
    files_exported: int = 0
    owner_mappings_written: int = 0
    written_paths: list[str] = field(default_factory=list)


@dataclass
class UserManageResult(OperationResult):
    created: int = 0
    deleted: int = 0
    missing: int = 0
