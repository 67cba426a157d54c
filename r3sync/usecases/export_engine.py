from __future__ import annotations

import logging
from pathlib import Path

from r3sync.domain.error_codes import SkipCode
from r3sync.domain.exceptions import R3SyncError
from r3sync.domain.identity.identity_map import IdentityMap
from r3sync.domain.models import ExportResult, VirtualFileRecord
from r3sync.domain.paths import VIRTUAL_SEPARATOR, PathTranslator
from r3sync.domain.ports.r3_repository import R3RepositoryProtocol
from r3sync.infra.artifacts.mapping_files import appendOwnerMappingLine
from r3sync.infra.logging.setup import logEvent

DEFAULT_OWNER_MAPPING_FILE = "owner_mapping.txt"


class ExportEngine:
    """
    Назначение/ответственность:
        Выгрузка файлов поддерева R3 в локальный каталог.

    Инварианты/гарантии:
        - Транзакции между файлами нет: уже записанные файлы остаются при сбое следующего.
        - Повторный запуск перезаписывает файлы (идемпотентно для неизменного содержимого).
        - Sidecar владельцев пишется после файла; его сбой - только пропуск.
        - Если выгружаемый файл совпадает с sidecar по пути, sidecar не пишется.
    """

    def __init__(
        self,
        repo: R3RepositoryProtocol,
        logger: logging.Logger,
        run_id: str,
        translator: PathTranslator | None = None,
        owner_mapping_file: str = DEFAULT_OWNER_MAPPING_FILE,
    ) -> None:
        self.repo = repo
        self.logger = logger
        self.run_id = run_id
        self.translator = translator or PathTranslator()
        self.owner_mapping_file = owner_mapping_file

    def export_path(
        self,
        virtual_path: str,
        local_target_dir: str,
        recursive: bool,
        identity_map: IdentityMap,
        create_missing_users: bool,
        emit_owner_mapping: bool,
    ) -> ExportResult:
        # create_missing_users: export never creates R3 users
        _ = create_missing_users
        self._log(logging.INFO, "export", f"Export R3:{virtual_path} -> {local_target_dir}")
        result = ExportResult()
        target_dir = Path(local_target_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        sidecar = target_dir / self.owner_mapping_file

        query_path = virtual_path.rstrip(VIRTUAL_SEPARATOR) or VIRTUAL_SEPARATOR
        # non-recursive lookup is an exact path match, '/docs/' stays '/docs/'
        records = self.repo.files_under(query_path if recursive else virtual_path, recursive)
        placed = [
            (record, self.translator.to_local_dir(target_dir, query_path, record.virtual_path) / record.name)
            for record in records
        ]

        if emit_owner_mapping and any(out_path == sidecar for _record, out_path in placed):
            result.skip(str(sidecar), SkipCode.OWNER_MAPPING_FAILED, "sidecar name collides with an exported file")
            self._log(logging.WARNING, "export", f"Owner mapping disabled: {sidecar} is an exported file")
            emit_owner_mapping = False

        for record, out_path in placed:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(record.content)
            result.files_exported += 1
            result.written_paths.append(str(out_path))
            self._log(logging.INFO, "export", f"Exported: {out_path}")

            if emit_owner_mapping:
                self._emit_owner_mapping(record, identity_map, sidecar, result)

        return result

    def _emit_owner_mapping(
        self,
        record: VirtualFileRecord,
        identity_map: IdentityMap,
        sidecar: Path,
        result: ExportResult,
    ) -> None:
        try:
            owner = self.repo.identity_by_id(record.owner_id)
            if owner is None:
                result.skip(record.name, SkipCode.IDENTITY_NOT_FOUND, f"owner id {record.owner_id}")
                return
            local = identity_map.lookup_local_for(owner.username)
            appendOwnerMappingLine(sidecar, owner.username, local)
            result.owner_mappings_written += 1
        except (R3SyncError, OSError) as exc:
            result.skip(record.name, SkipCode.OWNER_MAPPING_FAILED, str(exc))
            self._log(logging.WARNING, "export", f"Owner mapping skipped for {record.name}: {exc}")

    def _log(self, level: int, component: str, message: str) -> None:
        logEvent(self.logger, level, self.run_id, component, message)
