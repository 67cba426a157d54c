from __future__ import annotations

import os

from r3sync.domain.exceptions import AclReadError
from r3sync.domain.models import AclRule
from r3sync.domain.ports.acl import AclScannerProtocol


def mode_rights(mode: int, shift: int) -> str:
    """
    Назначение:
        Права одного класса (owner/group) из st_mode в виде 'rwx'/'r-x'.
    """
    bits = (mode >> shift) & 0o7
    return "".join(flag if bits & mask else "-" for flag, mask in (("r", 4), ("w", 2), ("x", 1)))


def user_name_for(uid: int) -> str:
    import pwd

    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def group_name_for(gid: int) -> str:
    import grp

    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


class PosixAclScanner(AclScannerProtocol):
    """
    Назначение/ответственность:
        Источник правил доступа для POSIX: владелец и группа пути с их битами прав.
        Это не полноценные ACL, права переносятся как непрозрачная строка.
    """

    def __init__(self, include_group: bool = True) -> None:
        self.include_group = include_group

    def rules_for(self, path: str) -> list[AclRule]:
        try:
            st = os.stat(path)
            rules = [AclRule(identity_name=user_name_for(st.st_uid), rights=mode_rights(st.st_mode, 6))]
            if self.include_group:
                rules.append(AclRule(identity_name=group_name_for(st.st_gid), rights=mode_rights(st.st_mode, 3)))
        except (OSError, ImportError) as exc:
            raise AclReadError(path=str(path), reason=str(exc)) from exc
        return rules


__all__ = ["PosixAclScanner", "mode_rights"]
