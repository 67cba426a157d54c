from __future__ import annotations

from enum import Enum


class SkipCode(str, Enum):
    """
    Назначение:
        Таксономия причин, по которым best-effort шаг был пропущен.
        Попадает в OperationResult.skipped и в items отчёта.
    """

    PATH_NOT_FOUND = "PATH_NOT_FOUND"
    ACL_READ_FAILED = "ACL_READ_FAILED"
    SCAN_FAILED = "SCAN_FAILED"
    BLACKLISTED = "BLACKLISTED"
    UNMAPPED = "UNMAPPED"
    TARGET_MISSING = "TARGET_MISSING"
    PERMISSION_FAILED = "PERMISSION_FAILED"
    OWNER_MAPPING_FAILED = "OWNER_MAPPING_FAILED"
    IDENTITY_NOT_FOUND = "IDENTITY_NOT_FOUND"
