from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from r3sync.domain.error_codes import SkipCode
from r3sync.domain.exceptions import AclReadError
from r3sync.domain.identity.auto_mapper import AutoMapper, resolve_target
from r3sync.domain.models import AclRule, IdentityEntry


@dataclass
class FakeAclScanner:
    rules: dict[str, list[AclRule]] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)

    def rules_for(self, path: str) -> list[AclRule]:
        name = Path(path).name
        if name in self.failing:
            raise AclReadError(path=path, reason="access denied")
        return self.rules.get(name, [])


def _catalog(*names: str) -> list[IdentityEntry]:
    return [IdentityEntry(id=i + 1, username=n) for i, n in enumerate(names)]


def test_exact_match_wins_over_substring_candidates():
    catalog = _catalog("alice.smith", "ALICE")

    assert resolve_target("alice", catalog) == "alice"


def test_fallback_takes_first_catalog_entry_in_order():
    catalog = _catalog("bob.jones", "bobby")

    assert resolve_target("bob", catalog) == "bob.jones"


def test_unresolved_name_maps_to_empty():
    assert resolve_target("mallory", _catalog("alice", "bob")) == ""


def test_auto_map_collects_acl_identities(tmp_path: Path):
    root = tmp_path / "share"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("a", encoding="utf-8")
    (root / "sub" / "b.txt").write_text("b", encoding="utf-8")

    scanner = FakeAclScanner(
        rules={
            "share": [AclRule("CORP\\alice", "rwx")],
            "a.txt": [AclRule("CORP\\bob", "r--"), AclRule("alice", "rw-")],
            "b.txt": [AclRule("carol", "r--")],
        }
    )
    catalog = _catalog("alice", "bob.builder")

    flat = AutoMapper(scanner).auto_map(str(root), recursive=False, catalog=catalog)
    assert flat.mapping.items() == [("alice", "alice"), ("bob", "bob.builder")]

    deep = AutoMapper(scanner).auto_map(str(root), recursive=True, catalog=catalog)
    assert deep.mapping.lookup_target("carol") == ""
    assert len(deep.mapping) == 3
    assert deep.skipped == []


def test_acl_failure_is_skipped_not_raised(tmp_path: Path):
    root = tmp_path / "share"
    root.mkdir()
    (root / "locked.txt").write_text("x", encoding="utf-8")
    (root / "open.txt").write_text("y", encoding="utf-8")

    scanner = FakeAclScanner(
        rules={"open.txt": [AclRule("dave", "r--")]},
        failing={"locked.txt"},
    )
    result = AutoMapper(scanner).auto_map(str(root), recursive=True, catalog=[])

    assert result.mapping.lookup_target("dave") == ""
    assert [s.code for s in result.skipped] == [SkipCode.ACL_READ_FAILED]
    assert result.skipped[0].path.endswith("locked.txt")


def test_missing_search_path_gives_empty_map(tmp_path: Path):
    result = AutoMapper(FakeAclScanner()).auto_map(str(tmp_path / "nope"), recursive=True, catalog=[])

    assert len(result.mapping) == 0
