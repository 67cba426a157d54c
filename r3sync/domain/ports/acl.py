from __future__ import annotations

from typing import Protocol

from r3sync.domain.models import AclRule


class AclScannerProtocol(Protocol):
    """
    Назначение/ответственность:
        Чтение правил доступа локального пути.
    """

    def rules_for(self, path: str) -> list[AclRule]:
        """
        Контракт:
            Вход: путь к файлу или каталогу.
            Выход: правила (имя учётной записи + права текстом).
            Ошибки: AclReadError, если права пути прочитать нельзя.
        """
        ...
