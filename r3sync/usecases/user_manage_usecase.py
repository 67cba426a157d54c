from __future__ import annotations

import logging
from enum import Enum

from r3sync.domain.error_codes import SkipCode
from r3sync.domain.identity.blacklist import Blacklist
from r3sync.domain.identity.identity_map import IdentityMap
from r3sync.domain.models import UserManageResult
from r3sync.domain.ports.r3_repository import R3RepositoryProtocol
from r3sync.infra.logging.setup import logEvent


class UserManageAction(str, Enum):
    """
    Назначение:
        Селектор массовой операции над пользователями R3 по файлу соответствий.
        first - левая часть пары (локальное имя), second - правая (имя R3).
    """

    ADD_FIRST = "add-first"
    ADD_SECOND = "add-second"
    ADD_BOTH = "add-both"
    DELETE_FIRST = "delete-first"
    DELETE_SECOND = "delete-second"
    DELETE_BOTH = "delete-both"

    @classmethod
    def parse(cls, value: str) -> "UserManageAction":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            allowed = "|".join(a.value for a in cls)
            raise ValueError(f"Unsupported user-manage action: {value} (expected {allowed})") from None

    @property
    def is_add(self) -> bool:
        return self.value.startswith("add-")

    @property
    def touches_first(self) -> bool:
        return self.value.endswith(("-first", "-both"))

    @property
    def touches_second(self) -> bool:
        return self.value.endswith(("-second", "-both"))


class UserManageUseCase:
    """
    Назначение/ответственность:
        Массовое создание/удаление пользователей R3 по парам файла соответствий.
        Пары, где любая сторона в чёрном списке, пропускаются целиком.
    """

    def __init__(self, repo: R3RepositoryProtocol, logger: logging.Logger, run_id: str) -> None:
        self.repo = repo
        self.logger = logger
        self.run_id = run_id

    def run(self, mapping: IdentityMap, action: UserManageAction, blacklist: Blacklist) -> UserManageResult:
        result = UserManageResult()
        for local, target in mapping.items():
            if blacklist.contains_local(local) or (target and blacklist.contains_target(target)):
                result.skip(f"{local}={target}", SkipCode.BLACKLISTED, "pair is blacklisted")
                continue

            names: list[str] = []
            if action.touches_first:
                names.append(local)
            if action.touches_second and target:
                names.append(target)

            for name in names:
                if action.is_add:
                    if self.repo.identity_by_name(name) is not None:
                        self._log(logging.DEBUG, f"User exists: {name}")
                        continue
                    self.repo.create_identity(name, name)
                    result.created += 1
                    self._log(logging.INFO, f"User created: {name}")
                elif self.repo.delete_identity_by_name(name):
                    result.deleted += 1
                    self._log(logging.INFO, f"User deleted: {name}")
                else:
                    result.missing += 1
                    self._log(logging.DEBUG, f"User not found: {name}")
        return result

    def _log(self, level: int, message: str) -> None:
        logEvent(self.logger, level, self.run_id, "users", message)
