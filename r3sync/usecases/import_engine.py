from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from r3sync.common.time import getUtcNow
from r3sync.domain.error_codes import SkipCode
from r3sync.domain.exceptions import AclReadError, R3SyncError
from r3sync.domain.identity.blacklist import Blacklist
from r3sync.domain.identity.identity_map import IdentityMap
from r3sync.domain.identity.names import bare_account_name
from r3sync.domain.models import (
    AclRule,
    FolderRecord,
    ImportResult,
    ObjectKind,
    PermissionRecord,
    VirtualFileRecord,
)
from r3sync.domain.paths import PathTranslator
from r3sync.domain.ports.acl import AclScannerProtocol
from r3sync.domain.ports.owner_source import OwnerSourceProtocol
from r3sync.domain.ports.r3_repository import R3RepositoryProtocol
from r3sync.infra.logging.setup import logEvent


@dataclass(frozen=True)
class ImportOptions:
    recursive: bool
    take_owners: bool
    virtual_root: str
    identity_map: IdentityMap
    create_missing_users: bool
    propagate_permissions: bool
    blacklist: Blacklist


class ImportEngine:
    """
    Назначение/ответственность:
        Импорт локальных файлов и каталогов в виртуальную ФС R3
        с (опциональным) переносом прав по соответствию учётных записей.

    Взаимодействия:
        - repo: хранилище R3 (сбои фатальны)
        - acl_scanner: права локальных путей (сбои - пропуск правила/пути)
        - owner_source: владелец при take_owners; иначе process_owner

    Инварианты/гарантии:
        - Каталог: сначала прямые файлы, затем (recursive) подкаталоги в глубину.
        - Ошибка чтения содержимого файла прерывает вызов целиком.
        - Перенос прав никогда не отменяет уже выполненный импорт содержимого.
    """

    def __init__(
        self,
        repo: R3RepositoryProtocol,
        acl_scanner: AclScannerProtocol,
        owner_source: OwnerSourceProtocol,
        process_owner: OwnerSourceProtocol,
        logger: logging.Logger,
        run_id: str,
        translator: PathTranslator | None = None,
    ) -> None:
        self.repo = repo
        self.acl_scanner = acl_scanner
        self.owner_source = owner_source
        self.process_owner = process_owner
        self.logger = logger
        self.run_id = run_id
        self.translator = translator or PathTranslator()

    def import_paths(
        self,
        paths: Iterable[str],
        recursive: bool,
        take_owners: bool,
        virtual_root: str,
        identity_map: IdentityMap,
        create_missing_users: bool,
        propagate_permissions: bool,
        blacklist: Blacklist,
    ) -> ImportResult:
        options = ImportOptions(
            recursive=recursive,
            take_owners=take_owners,
            virtual_root=virtual_root,
            identity_map=identity_map,
            create_missing_users=create_missing_users,
            propagate_permissions=propagate_permissions,
            blacklist=blacklist,
        )
        result = ImportResult()
        for path in paths:
            if os.path.isfile(path):
                virtual_path = self.translator.translate(path, path, virtual_root, root_is_file=True)
                self._import_file(path, virtual_path, options, result)
            elif os.path.isdir(path):
                local_root = os.path.abspath(path)
                self._import_directory(local_root, local_root, options, result)
            else:
                result.skip(path, SkipCode.PATH_NOT_FOUND, "path not found")
                self._log(logging.WARNING, "import", f"Path not found: {path}")
        return result

    def _import_directory(self, local_root: str, local_dir: str, options: ImportOptions, result: ImportResult) -> None:
        virtual_path = self.translator.translate(local_root, local_dir, options.virtual_root)
        self._log(logging.INFO, "import", f"Import folder: {local_dir} -> {virtual_path}")
        owner_id = self._resolve_owner(local_dir, options)
        folder_id = self.repo.ensure_folder(
            FolderRecord(virtual_path=virtual_path, owner_id=owner_id, created_utc=getUtcNow())
        )
        result.folders_imported += 1
        if options.propagate_permissions:
            self._propagate(local_dir, ObjectKind.FOLDER, folder_id, options, result)

        with os.scandir(local_dir) as it:
            entries = sorted(it, key=lambda e: e.name)
        files = [e for e in entries if e.is_file()]
        subdirs = [e for e in entries if e.is_dir(follow_symlinks=False)]

        for entry in files:
            self._import_file(entry.path, virtual_path, options, result)
        if options.recursive:
            for entry in subdirs:
                self._import_directory(local_root, entry.path, options, result)

    def _import_file(self, local_file: str, virtual_path: str, options: ImportOptions, result: ImportResult) -> None:
        self._log(logging.DEBUG, "import", f"Read file: {local_file}")
        content = Path(local_file).read_bytes()
        name = Path(local_file).name

        record = VirtualFileRecord(
            name=name,
            virtual_path=virtual_path,
            content=content,
            owner_id=self._resolve_owner(local_file, options),
            created_utc=getUtcNow(),
        )
        file_id = self.repo.save_file(record)
        result.files_imported += 1
        result.file_ids.append(file_id)
        self._log(logging.INFO, "import", f"Imported: {name} ({file_id}) in {virtual_path}")

        if options.propagate_permissions:
            self._propagate(local_file, ObjectKind.FILE, file_id, options, result)

    def _resolve_owner(self, local_path: str, options: ImportOptions) -> int:
        source = self.owner_source if options.take_owners else self.process_owner
        owner_name = source.owner_for(local_path)
        return self.repo.resolve_or_create_identity(owner_name, owner_name)

    def _propagate(
        self,
        local_path: str,
        kind: ObjectKind,
        object_id: int,
        options: ImportOptions,
        result: ImportResult,
    ) -> None:
        try:
            rules = self.acl_scanner.rules_for(local_path)
        except (AclReadError, OSError) as exc:
            result.skip(local_path, SkipCode.ACL_READ_FAILED, str(exc))
            self._log(logging.WARNING, "acl", f"ACL read failed: {local_path}: {exc}")
            return

        for rule in rules:
            try:
                self._apply_rule(local_path, rule, kind, object_id, options, result)
            except (R3SyncError, OSError, ValueError) as exc:
                result.skip(local_path, SkipCode.PERMISSION_FAILED, f"{rule.identity_name}: {exc}")
                self._log(logging.WARNING, "acl", f"Permission skipped for {rule.identity_name} on {local_path}: {exc}")

    def _apply_rule(
        self,
        local_path: str,
        rule: AclRule,
        kind: ObjectKind,
        object_id: int,
        options: ImportOptions,
        result: ImportResult,
    ) -> None:
        account = bare_account_name(rule.identity_name)
        if not account:
            return
        if options.blacklist.contains_local(account):
            result.skip(local_path, SkipCode.BLACKLISTED, account)
            return

        target = options.identity_map.lookup_target(account)
        if not target:
            result.skip(local_path, SkipCode.UNMAPPED, account)
            return
        if options.blacklist.contains_target(target):
            result.skip(local_path, SkipCode.BLACKLISTED, target)
            return

        entry = self.repo.identity_by_name(target)
        if entry is not None:
            user_id = entry.id
        elif options.create_missing_users:
            user_id = self.repo.create_identity(target, target)
            result.identities_created += 1
            self._log(logging.INFO, "users", f"Created R3 user: {target}")
        else:
            result.skip(local_path, SkipCode.TARGET_MISSING, target)
            return

        self.repo.add_permission(
            PermissionRecord(user_id=user_id, object_kind=kind, object_id=object_id, rights=rule.rights)
        )
        result.permissions_created += 1
        self._log(logging.DEBUG, "acl", f"Permission {kind.value}:{object_id} {target}={rule.rights}")

    def _log(self, level: int, component: str, message: str) -> None:
        logEvent(self.logger, level, self.run_id, component, message)
