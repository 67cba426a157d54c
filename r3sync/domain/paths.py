from __future__ import annotations

import re
from pathlib import Path

VIRTUAL_SEPARATOR = "/"

_LOCAL_SEPARATORS = re.compile(r"[\\/]+")


def base_name(local_path: str) -> str:
    """
    Назначение:
        Имя последнего сегмента локального пути независимо от ОС:
        'C:\\data\\proj' -> 'proj', '/srv/data/proj/' -> 'proj'.
    """
    parts = _split_local(local_path)
    return parts[-1] if parts else ""


def _split_local(local_path: str) -> list[str]:
    return [p for p in _LOCAL_SEPARATORS.split(str(local_path)) if p]


class PathTranslator:
    """
    Назначение/ответственность:
        Перевод локальных путей в виртуальные пути R3 и обратно (для экспорта).

    Инварианты/гарантии:
        - Виртуальный разделитель всегда '/'.
        - '..' не нормализуется, корень не экранируется: структура плоско
          укладывается под тот корень, от которого запущен импорт.
    """

    def for_file(self, virtual_root: str) -> str:
        return virtual_root

    def for_directory(self, local_dir: str, virtual_root: str) -> str:
        return self.child(virtual_root, base_name(local_dir))

    def child(self, parent_virtual: str, name: str) -> str:
        return parent_virtual.rstrip(VIRTUAL_SEPARATOR) + VIRTUAL_SEPARATOR + name

    def translate(self, local_root: str, local_entry: str, virtual_root: str, root_is_file: bool = False) -> str:
        """
        Назначение:
            Виртуальный каталог для local_entry (каталог внутри local_root или сам local_root).

        Алгоритм:
            - импорт одиночного файла -> virtual_root без изменений
            - каталог -> virtual_root + '/' + базовое имя local_root
            - каждый вложенный сегмент дописывается через child()
        """
        if root_is_file:
            return self.for_file(virtual_root)

        root_parts = _split_local(local_root)
        entry_parts = _split_local(local_entry)
        if entry_parts[: len(root_parts)] != root_parts:
            raise ValueError(f"{local_entry} is not inside {local_root}")

        virtual = self.for_directory(local_root, virtual_root)
        for part in entry_parts[len(root_parts):]:
            virtual = self.child(virtual, part)
        return virtual

    def to_local_dir(self, local_target_dir: str | Path, exported_path: str, record_path: str) -> Path:
        """
        Назначение:
            Локальный каталог для файла R3 при экспорте.

        Алгоритм:
            - путь записи берётся относительно экспортируемого пути
            - запись вне поддерева (совпала только по строковому префиксу,
              '/project' при экспорте '/proj') кладётся по полному пути
            - '/' заменяется на разделитель ОС через Path
        """
        prefix = exported_path.rstrip(VIRTUAL_SEPARATOR)
        if record_path.rstrip(VIRTUAL_SEPARATOR) == prefix:
            relative = ""
        elif record_path.startswith(prefix + VIRTUAL_SEPARATOR):
            relative = record_path[len(prefix) + 1:]
        else:
            relative = record_path.lstrip(VIRTUAL_SEPARATOR)
        segments = [s for s in relative.split(VIRTUAL_SEPARATOR) if s]
        return Path(local_target_dir, *segments)
