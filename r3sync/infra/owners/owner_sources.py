from __future__ import annotations

import getpass
import os

from r3sync.domain.exceptions import ConfigError
from r3sync.domain.ports.owner_source import OwnerSourceProtocol
from r3sync.infra.acl.posix_scanner import user_name_for

OWNER_SOURCES = ("process", "filesystem", "static")


class ProcessOwnerSource(OwnerSourceProtocol):
    """
    Владелец - учётная запись, от имени которой запущен процесс.
    """

    name = "process"

    def owner_for(self, path: str) -> str:
        return getpass.getuser()


class FilesystemOwnerSource(OwnerSourceProtocol):
    """
    Назначение/ответственность:
        Владелец файла по данным ФС (st_uid). Если прочитать не удалось,
        учётная запись процесса.
    """

    name = "filesystem"

    def __init__(self, fallback: OwnerSourceProtocol | None = None) -> None:
        self.fallback = fallback or ProcessOwnerSource()

    def owner_for(self, path: str) -> str:
        try:
            return user_name_for(os.stat(path).st_uid)
        except (OSError, ImportError):
            return self.fallback.owner_for(path)


class StaticOwnerSource(OwnerSourceProtocol):
    name = "static"

    def __init__(self, owner_name: str) -> None:
        self.owner_name = owner_name

    def owner_for(self, path: str) -> str:
        return self.owner_name


def buildOwnerSource(kind: str | None, staticName: str | None = None) -> OwnerSourceProtocol:
    """
    Назначение:
        Выбор стратегии владельца по настройке owner_source.

    Ошибки:
        ConfigError - неизвестная стратегия или static без owner_static_name.
    """
    value = (kind or "process").strip().lower()
    if value == "process":
        return ProcessOwnerSource()
    if value == "filesystem":
        return FilesystemOwnerSource()
    if value == "static":
        if not staticName:
            raise ConfigError("owner_source=static requires owner_static_name")
        return StaticOwnerSource(staticName)
    raise ConfigError(f"Unsupported owner source: {kind} (expected {'|'.join(OWNER_SOURCES)})")
