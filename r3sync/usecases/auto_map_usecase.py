from __future__ import annotations

import logging

from r3sync.domain.identity.auto_mapper import AutoMapper, AutoMapResult
from r3sync.domain.ports.acl import AclScannerProtocol
from r3sync.domain.ports.r3_repository import R3RepositoryProtocol
from r3sync.infra.artifacts.mapping_files import writeIdentityMapFile
from r3sync.infra.logging.setup import logEvent


class AutoMapUseCase:
    """
    Назначение/ответственность:
        Генерация файла соответствий по ACL поддерева и каталогу пользователей R3.
        Файл предназначен для ручной проверки перед использованием в import/export.
    """

    def __init__(
        self,
        repo: R3RepositoryProtocol,
        acl_scanner: AclScannerProtocol,
        logger: logging.Logger,
        run_id: str,
    ) -> None:
        self.repo = repo
        self.mapper = AutoMapper(acl_scanner)
        self.logger = logger
        self.run_id = run_id

    def run(self, search_path: str, recursive: bool, out_file: str) -> tuple[AutoMapResult, str]:
        catalog = self.repo.all_identities()
        result = self.mapper.auto_map(search_path, recursive, catalog)
        for entry in result.skipped:
            logEvent(self.logger, logging.WARNING, self.run_id, "acl", f"Skipped {entry.path}: {entry.reason}")

        unresolved = [local for local, target in result.mapping.items() if not target]
        written = writeIdentityMapFile(result.mapping, out_file)
        logEvent(
            self.logger,
            logging.INFO,
            self.run_id,
            "automap",
            f"auto-map done path={search_path} identities={len(result.mapping)} "
            f"unresolved={len(unresolved)} catalog={len(catalog)} out={written}",
        )
        return result, written
