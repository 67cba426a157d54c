from __future__ import annotations

import logging

import pytest

from r3sync.domain.error_codes import SkipCode
from r3sync.domain.identity.blacklist import Blacklist
from r3sync.domain.identity.identity_map import IdentityMap
from r3sync.infra.r3.db import openR3Db
from r3sync.infra.r3.repository import SqliteR3Repository
from r3sync.infra.r3.schema import ensure_r3_schema
from r3sync.infra.r3.sqlite_engine import SqliteEngine
from r3sync.usecases.user_manage_usecase import UserManageAction, UserManageUseCase

MAPPING = IdentityMap.load("alice=r3_alice\nbob=r3_bob\nroot=r3_root\n")


def _build_repo() -> SqliteR3Repository:
    engine = SqliteEngine(openR3Db(":memory:", createIfMissing=False))
    ensure_r3_schema(engine)
    return SqliteR3Repository(engine)


def _usecase(repo) -> UserManageUseCase:
    return UserManageUseCase(repo, logging.getLogger("test.users"), "run-1")


def _names(repo) -> list[str]:
    return sorted(e.username for e in repo.all_identities())


def test_parse_action():
    assert UserManageAction.parse(" Add-Both ") is UserManageAction.ADD_BOTH
    with pytest.raises(ValueError):
        UserManageAction.parse("purge")


def test_add_second_creates_target_users_once():
    repo = _build_repo()
    repo.create_identity("r3_bob", "r3_bob")

    result = _usecase(repo).run(MAPPING, UserManageAction.ADD_SECOND, Blacklist(["root"]))

    assert _names(repo) == ["r3_alice", "r3_bob"]
    assert result.created == 1
    assert [s.code for s in result.skipped] == [SkipCode.BLACKLISTED]


def test_add_both_and_delete_first():
    repo = _build_repo()
    usecase = _usecase(repo)

    usecase.run(MAPPING, UserManageAction.ADD_BOTH, Blacklist())
    assert len(repo.all_identities()) == 6

    result = usecase.run(MAPPING, UserManageAction.DELETE_FIRST, Blacklist())
    assert result.deleted == 3
    assert _names(repo) == ["r3_alice", "r3_bob", "r3_root"]


def test_delete_missing_is_counted():
    repo = _build_repo()

    result = _usecase(repo).run(IdentityMap.load("ghost=r3_ghost\n"), UserManageAction.DELETE_BOTH, Blacklist())

    assert result.deleted == 0
    assert result.missing == 2
