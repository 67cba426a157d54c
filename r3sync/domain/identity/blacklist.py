from __future__ import annotations

from typing import Iterable

from r3sync.domain.identity.names import fold


class Blacklist:
    """
    Назначение/ответственность:
        Имена учётных записей, исключаемые из переноса прав и из массового
        управления пользователями.

    Инварианты/гарантии:
        - Локальные имена сравниваются без учёта регистра.
        - Имена R3 сравниваются точно, если target_case_sensitive=True (поведение по умолчанию).
    """

    def __init__(self, names: Iterable[str] = (), target_case_sensitive: bool = True) -> None:
        self.names = [n.strip() for n in names if n and n.strip()]
        self.target_case_sensitive = target_case_sensitive
        self._exact = set(self.names)
        self._folded = {fold(n) for n in self.names}

    @classmethod
    def parse(cls, text: str, target_case_sensitive: bool = True) -> "Blacklist":
        return cls(text.splitlines(), target_case_sensitive=target_case_sensitive)

    def contains_local(self, name: str) -> bool:
        return fold(name.strip()) in self._folded

    def contains_target(self, name: str) -> bool:
        if self.target_case_sensitive:
            return name.strip() in self._exact
        return fold(name.strip()) in self._folded

    def __len__(self) -> int:
        return len(self.names)
