from __future__ import annotations

from dataclasses import dataclass


class R3SyncError(Exception):
    """
    Назначение:
        Базовая ошибка приложения r3sync.
    """


class ConfigError(R3SyncError):
    """
    Ошибка параметров/настроек (CLI выходит с кодом 2).
    """


@dataclass
class PersistenceError(R3SyncError):
    """
    Назначение:
        Фатальная ошибка хранилища R3 (соединение, SQL).
    Инварианты/гарантии:
        - operation содержит имя метода репозитория, где произошёл сбой.
    """

    operation: str
    message: str

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.operation}: {self.message}"


@dataclass
class AclReadError(R3SyncError):
    """
    Назначение:
        Сигнал о том, что права конкретного пути прочитать не удалось.
        Никогда не прерывает обход целиком: вызывающая сторона ловит его
        на уровне одного пути.
    """

    path: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"{self.path}: {self.reason}")


__all__ = ["R3SyncError", "ConfigError", "PersistenceError", "AclReadError"]
