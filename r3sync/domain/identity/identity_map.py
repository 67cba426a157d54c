from __future__ import annotations

from typing import Iterable, Iterator

from r3sync.domain.identity.names import fold


class IdentityMap:
    """
    Назначение/ответственность:
        Соответствие "локальная учётная запись -> пользователь R3".

    Инварианты/гарантии:
        - Ключи уникальны без учёта регистра; при повторе побеждает последнее значение,
          но сохраняется написание и позиция первого появления ключа.
        - Пустая строка в target означает "не сопоставлено".
        - Обратный поиск детерминирован: первый по порядку вставки (порядок строк файла).
    """

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._entries: dict[str, tuple[str, str]] = {}
        for local, target in pairs:
            self.set(local, target)

    def set(self, local: str, target: str) -> None:
        key = fold(local)
        existing = self._entries.get(key)
        spelled = existing[0] if existing else local
        self._entries[key] = (spelled, target)

    def lookup_target(self, local: str) -> str | None:
        entry = self._entries.get(fold(local))
        return entry[1] if entry else None

    def lookup_local_for(self, target: str) -> str | None:
        wanted = fold(target)
        for local, mapped in self._entries.values():
            if fold(mapped) == wanted:
                return local
        return None

    def duplicate_targets(self) -> dict[str, list[str]]:
        """
        Назначение:
            Цели, на которые ссылаются несколько локальных имён.
            Для таких целей lookup_local_for вернёт первое по порядку.
        """
        seen: dict[str, list[str]] = {}
        for local, target in self._entries.values():
            if not target:
                continue
            seen.setdefault(fold(target), []).append(local)
        return {k: v for k, v in seen.items() if len(v) > 1}

    def items(self) -> list[tuple[str, str]]:
        return list(self._entries.values())

    def __contains__(self, local: object) -> bool:
        return isinstance(local, str) and fold(local) in self._entries

    def __iter__(self) -> Iterator[str]:
        return (local for local, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IdentityMap):
            return NotImplemented
        mine = {k: v[1] for k, v in self._entries.items()}
        theirs = {k: v[1] for k, v in other._entries.items()}
        return mine == theirs

    def __repr__(self) -> str:
        return f"IdentityMap({self.items()!r})"

    @classmethod
    def load(cls, text: str) -> "IdentityMap":
        """
        Назначение:
            Разбор текстового формата 'local=target' (по паре в строке).

        Алгоритм:
            - пустые строки и строки, начинающиеся с '#', пропускаются
            - строка делится по первому '=', обе части обрезаются
            - строка без '=' игнорируется
        """
        mapping = cls()
        for line in text.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if "=" not in stripped:
                continue
            local, target = stripped.split("=", 1)
            local = local.strip()
            if not local:
                continue
            mapping.set(local, target.strip())
        return mapping

    def save(self) -> str:
        """
        Сериализация: строки 'local=target', отсортированные по local без учёта регистра.
        """
        lines = [f"{local}={target}" for local, target in sorted(self.items(), key=lambda kv: fold(kv[0]))]
        return "".join(line + "\n" for line in lines)
