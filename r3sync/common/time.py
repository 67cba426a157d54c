from __future__ import annotations

from datetime import datetime, timezone


def getNowIso() -> str:
    """
    Назначение:
        Текущее локальное время в ISO 8601 с timezone (для meta отчёта).
    """
    return datetime.now().astimezone().isoformat()


def getUtcNow() -> datetime:
    """
    Назначение:
        Момент создания записи в R3 (всегда UTC).
    """
    return datetime.now(timezone.utc)


def getDurationMs(startMonotonic: float, endMonotonic: float) -> int:
    return int((endMonotonic - startMonotonic) * 1000)
