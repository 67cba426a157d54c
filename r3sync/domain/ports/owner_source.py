from __future__ import annotations

from typing import Protocol


class OwnerSourceProtocol(Protocol):
    """
    Назначение/ответственность:
        Определяет имя владельца импортируемого файла.
    """

    name: str

    def owner_for(self, path: str) -> str: ...
