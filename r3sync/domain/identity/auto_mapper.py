from __future__ import annotations

import os
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from r3sync.domain.error_codes import SkipCode
from r3sync.domain.exceptions import AclReadError
from r3sync.domain.identity.identity_map import IdentityMap
from r3sync.domain.identity.names import bare_account_name, fold
from r3sync.domain.models import IdentityEntry, OperationResult
from r3sync.domain.ports.acl import AclScannerProtocol


@dataclass
class AutoMapResult(OperationResult):
    mapping: IdentityMap = field(default_factory=IdentityMap)
    directories_scanned: int = 0
    paths_scanned: int = 0


def resolve_target(local_name: str, catalog: Iterable[IdentityEntry]) -> str:
    """
    Назначение:
        Подбор пользователя R3 для локального имени.

    Алгоритм:
        1) точное совпадение без учёта регистра -> local_name как есть
        2) первый по порядку каталога, чьё имя равно, начинается с или содержит local_name
        3) иначе '' (не сопоставлено, человек дозаполнит файл)
    """
    wanted = fold(local_name)
    names = [entry.username for entry in catalog]
    if any(fold(name) == wanted for name in names):
        return local_name
    for name in names:
        folded = fold(name)
        if folded == wanted or folded.startswith(wanted) or wanted in folded:
            return name
    return ""


class AutoMapper:
    """
    Назначение/ответственность:
        Строит IdentityMap по учётным записям, найденным в ACL поддерева,
        сопоставляя их с каталогом пользователей R3.
    Взаимодействия:
        Права читаются через AclScannerProtocol; ошибки отдельных путей
        не прерывают обход и попадают в result.skipped.
    """

    def __init__(self, acl_scanner: AclScannerProtocol) -> None:
        self.acl_scanner = acl_scanner

    def auto_map(self, search_path: str, recursive: bool, catalog: Iterable[IdentityEntry]) -> AutoMapResult:
        result = AutoMapResult()
        local_names = self.collect_local_identities(search_path, recursive, result)
        catalog = list(catalog)
        for local_name in local_names:
            result.mapping.set(local_name, resolve_target(local_name, catalog))
        return result

    def collect_local_identities(self, search_path: str, recursive: bool, result: AutoMapResult) -> list[str]:
        found: dict[str, str] = {}
        if not os.path.isdir(search_path):
            return []

        queue: deque[str] = deque([search_path])
        while queue:
            directory = queue.popleft()
            result.directories_scanned += 1
            self._collect_from(directory, found, result)

            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as exc:
                result.skip(directory, SkipCode.SCAN_FAILED, str(exc))
                continue

            subdirs: list[str] = []
            for entry in entries:
                try:
                    if entry.is_file():
                        self._collect_from(entry.path, found, result)
                    elif entry.is_dir(follow_symlinks=False):
                        subdirs.append(entry.path)
                except OSError as exc:
                    result.skip(entry.path, SkipCode.SCAN_FAILED, str(exc))
            if recursive:
                queue.extend(subdirs)

        return list(found.values())

    def _collect_from(self, path: str, found: dict[str, str], result: AutoMapResult) -> None:
        result.paths_scanned += 1
        try:
            rules = self.acl_scanner.rules_for(path)
        except (AclReadError, OSError) as exc:
            result.skip(path, SkipCode.ACL_READ_FAILED, str(exc))
            return
        for rule in rules:
            name = bare_account_name(rule.identity_name)
            if name:
                found.setdefault(fold(name), name)
