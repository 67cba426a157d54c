from __future__ import annotations

from pathlib import Path

from r3sync.domain.identity.blacklist import Blacklist
from r3sync.domain.identity.identity_map import IdentityMap


def readIdentityMapFile(path: str | Path) -> IdentityMap:
    """
    Назначение:
        Читает файл соответствий 'local=target' (UTF-8).
        Отсутствующий файл даёт пустое соответствие.
    """
    p = Path(path)
    if not p.is_file():
        return IdentityMap()
    return IdentityMap.load(p.read_text(encoding="utf-8"))


def writeIdentityMapFile(mapping: IdentityMap, path: str | Path) -> str:
    """
    Назначение:
        Перезаписывает файл соответствий, строки отсортированы по local.
    """
    p = Path(path)
    if p.parent != Path(""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(mapping.save(), encoding="utf-8")
    return str(p)


def readBlacklistFile(path: str | Path, targetCaseSensitive: bool = True) -> Blacklist:
    p = Path(path)
    if not p.is_file():
        return Blacklist(target_case_sensitive=targetCaseSensitive)
    return Blacklist.parse(p.read_text(encoding="utf-8"), target_case_sensitive=targetCaseSensitive)


def appendOwnerMappingLine(path: str | Path, targetIdentity: str, localIdentity: str | None) -> None:
    """
    Назначение:
        Дописывает строку 'target=local' в sidecar-файл экспорта (local может быть пустым).
    """
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{targetIdentity}={localIdentity or ''}\n")
