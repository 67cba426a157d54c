from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from r3sync.domain.error_codes import SkipCode
from r3sync.domain.exceptions import AclReadError
from r3sync.domain.identity.blacklist import Blacklist
from r3sync.domain.identity.identity_map import IdentityMap
from r3sync.domain.models import AclRule, ObjectKind
from r3sync.domain.paths import PathTranslator
from r3sync.infra.owners.owner_sources import StaticOwnerSource
from r3sync.infra.r3.db import openR3Db
from r3sync.infra.r3.repository import SqliteR3Repository
from r3sync.infra.r3.schema import ensure_r3_schema
from r3sync.infra.r3.sqlite_engine import SqliteEngine
from r3sync.usecases.import_engine import ImportEngine


@dataclass
class FakeAclScanner:
    rules: dict[str, list[AclRule]] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)

    def rules_for(self, path: str) -> list[AclRule]:
        name = Path(path).name
        if name in self.failing:
            raise AclReadError(path=path, reason="denied")
        return self.rules.get(name, [])


def _build_repo() -> SqliteR3Repository:
    engine = SqliteEngine(openR3Db(":memory:", createIfMissing=False))
    ensure_r3_schema(engine)
    return SqliteR3Repository(engine)


def _engine(repo, scanner=None, owner="svc_import") -> ImportEngine:
    return ImportEngine(
        repo=repo,
        acl_scanner=scanner or FakeAclScanner(),
        owner_source=StaticOwnerSource("file_owner"),
        process_owner=StaticOwnerSource(owner),
        logger=logging.getLogger("test.import"),
        run_id="run-1",
    )


def _import(engine, paths, **overrides):
    kwargs = dict(
        recursive=False,
        take_owners=False,
        virtual_root="/",
        identity_map=IdentityMap(),
        create_missing_users=False,
        propagate_permissions=False,
        blacklist=Blacklist(),
    )
    kwargs.update(overrides)
    return engine.import_paths([str(p) for p in paths], **kwargs)


def test_single_file_import_keeps_virtual_root(tmp_path: Path):
    report = tmp_path / "report.txt"
    report.write_bytes(b"hello")
    repo = _build_repo()

    result = _import(_engine(repo), [report], virtual_root="/docs")

    records = repo.files_under("/docs", recursive=False)
    assert result.files_imported == 1
    assert [(r.virtual_path, r.name, r.content) for r in records] == [("/docs", "report.txt", b"hello")]
    assert repo.identity_by_id(records[0].owner_id).username == "svc_import"


def test_directory_import_recursive(tmp_path: Path):
    proj = tmp_path / "proj"
    (proj / "sub").mkdir(parents=True)
    (proj / "a.txt").write_text("a", encoding="utf-8")
    (proj / "sub" / "b.txt").write_text("b", encoding="utf-8")
    repo = _build_repo()

    result = _import(_engine(repo), [proj], recursive=True)

    assert result.files_imported == 2
    assert result.folders_imported == 2
    assert [r.name for r in repo.files_under("/proj", recursive=False)] == ["a.txt"]
    assert [r.name for r in repo.files_under("/proj/sub", recursive=False)] == ["b.txt"]


def test_directory_import_non_recursive_skips_subdirs(tmp_path: Path):
    proj = tmp_path / "proj"
    (proj / "sub").mkdir(parents=True)
    (proj / "a.txt").write_text("a", encoding="utf-8")
    (proj / "sub" / "b.txt").write_text("b", encoding="utf-8")
    repo = _build_repo()

    result = _import(_engine(repo), [proj])

    assert result.files_imported == 1
    assert repo.files_under("/proj/sub", recursive=False) == []


def test_missing_path_is_skipped(tmp_path: Path):
    present = tmp_path / "a.txt"
    present.write_text("a", encoding="utf-8")
    repo = _build_repo()

    result = _import(_engine(repo), [tmp_path / "missing.txt", present])

    assert result.files_imported == 1
    assert [(s.code, Path(s.path).name) for s in result.skipped] == [(SkipCode.PATH_NOT_FOUND, "missing.txt")]


def test_take_owners_uses_owner_source(tmp_path: Path):
    f = tmp_path / "a.txt"
    f.write_text("a", encoding="utf-8")
    repo = _build_repo()

    _import(_engine(repo), [f], take_owners=True)

    record = repo.files_under("/", recursive=False)[0]
    assert repo.identity_by_id(record.owner_id).username == "file_owner"


def test_permissions_follow_identity_map(tmp_path: Path):
    f = tmp_path / "a.txt"
    f.write_text("a", encoding="utf-8")
    repo = _build_repo()
    repo.create_identity("r3_alice", "r3_alice")
    scanner = FakeAclScanner(
        rules={
            "a.txt": [
                AclRule("CORP\\alice", "rw-"),
                AclRule("CORP\\bob", "r--"),
                AclRule("nobody", "r--"),
                AclRule("SYSTEM", "rwx"),
            ]
        }
    )

    result = _import(
        _engine(repo, scanner),
        [f],
        propagate_permissions=True,
        identity_map=IdentityMap.load("alice=r3_alice\nbob=r3_bob\nsystem=r3_system\n"),
        blacklist=Blacklist(["system"]),
    )

    file_id = result.file_ids[0]
    perms = repo.permissions_for(ObjectKind.FILE, file_id)
    alice = repo.identity_by_name("r3_alice")
    assert [(p.user_id, p.rights) for p in perms] == [(alice.id, "rw-")]
    assert result.permissions_created == 1
    assert [s.code for s in result.skipped] == [SkipCode.TARGET_MISSING, SkipCode.UNMAPPED, SkipCode.BLACKLISTED]
    assert repo.identity_by_name("r3_system") is None


def test_create_missing_users(tmp_path: Path):
    f = tmp_path / "a.txt"
    f.write_text("a", encoding="utf-8")
    repo = _build_repo()
    scanner = FakeAclScanner(rules={"a.txt": [AclRule("bob", "r--")]})

    result = _import(
        _engine(repo, scanner),
        [f],
        propagate_permissions=True,
        identity_map=IdentityMap.load("bob=r3_bob\n"),
        create_missing_users=True,
    )

    assert result.identities_created == 1
    assert result.permissions_created == 1
    assert repo.identity_by_name("r3_bob") is not None


def test_acl_failure_does_not_undo_import(tmp_path: Path):
    f = tmp_path / "locked.txt"
    f.write_text("secret", encoding="utf-8")
    repo = _build_repo()

    result = _import(
        _engine(repo, FakeAclScanner(failing={"locked.txt"})),
        [f],
        propagate_permissions=True,
    )

    assert result.files_imported == 1
    assert [s.code for s in result.skipped] == [SkipCode.ACL_READ_FAILED]
    assert repo.counts()["permissions"] == 0


def test_folder_permissions_propagated(tmp_path: Path):
    proj = tmp_path / "proj"
    proj.mkdir()
    repo = _build_repo()
    repo.create_identity("r3_alice", "r3_alice")
    scanner = FakeAclScanner(rules={"proj": [AclRule("alice", "rwx")]})

    _import(
        _engine(repo, scanner),
        [proj],
        propagate_permissions=True,
        identity_map=IdentityMap.load("alice=r3_alice\n"),
    )

    folder_id = repo.engine.fetchvalue("SELECT id FROM folders WHERE path = ?", ("/proj",))
    assert [p.rights for p in repo.permissions_for(ObjectKind.FOLDER, folder_id)] == ["rwx"]


class RecordingTranslator(PathTranslator):
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str, bool]] = []

    def translate(self, local_root, local_entry, virtual_root, root_is_file=False):
        self.calls.append((local_root, local_entry, virtual_root, root_is_file))
        return super().translate(local_root, local_entry, virtual_root, root_is_file)


def test_engine_maps_paths_through_translator(tmp_path: Path):
    proj = tmp_path / "proj"
    (proj / "sub").mkdir(parents=True)
    (proj / "sub" / "b.txt").write_text("b", encoding="utf-8")
    single = tmp_path / "single.txt"
    single.write_text("s", encoding="utf-8")
    repo = _build_repo()
    translator = RecordingTranslator()
    engine = ImportEngine(
        repo=repo,
        acl_scanner=FakeAclScanner(),
        owner_source=StaticOwnerSource("file_owner"),
        process_owner=StaticOwnerSource("svc_import"),
        logger=logging.getLogger("test.import"),
        run_id="run-1",
        translator=translator,
    )

    _import(engine, [proj, single], recursive=True, virtual_root="/archive/")

    assert translator.calls == [
        (str(proj), str(proj), "/archive/", False),
        (str(proj), str(proj / "sub"), "/archive/", False),
        (str(single), str(single), "/archive/", True),
    ]
    assert [r.name for r in repo.files_under("/archive/proj/sub", recursive=False)] == ["b.txt"]
    assert [r.name for r in repo.files_under("/archive/", recursive=False)] == ["single.txt"]


def test_relative_directory_uses_its_real_name(tmp_path: Path, monkeypatch):
    proj = tmp_path / "proj"
    proj.mkdir()
    (proj / "a.txt").write_text("a", encoding="utf-8")
    monkeypatch.chdir(proj)
    repo = _build_repo()

    _import(_engine(repo), ["."])

    assert [r.name for r in repo.files_under("/proj", recursive=False)] == ["a.txt"]
