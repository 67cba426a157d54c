from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from r3sync.domain.models import OperationResult


@dataclass
class ReportMeta:
    """
    Назначение:
        Метаданные отчёта запуска команды.

    Поля:
        run_id: str
        command: str
        started_at: str
        finished_at: str | None
        duration_ms: int | None
        db_path: str | None
        log_file: str | None
        report_dir: str | None
        config_sources: list[str]
        items_truncated: bool
            True, если items обрезаны по items_limit.
    """

    run_id: str
    command: str
    started_at: str
    finished_at: str | None = None
    duration_ms: int | None = None
    db_path: str | None = None
    log_file: str | None = None
    report_dir: str | None = None
    config_sources: list[str] = field(default_factory=list)
    items_limit: int = 1000
    items_truncated: bool = False


@dataclass
class ReportSummary:
    files_imported: int = 0
    folders_imported: int = 0
    files_exported: int = 0
    permissions_created: int = 0
    identities_created: int = 0
    identities_deleted: int = 0
    skipped: int = 0
    warnings: int = 0


@dataclass
class Report:
    """
    Назначение:
        Корневой объект отчёта: meta + summary + items (пропуски и события).
    """

    meta: ReportMeta
    summary: ReportSummary
    items: list[dict[str, Any]] = field(default_factory=list)

    def add_item(self, item: dict[str, Any]) -> None:
        if len(self.items) >= self.meta.items_limit:
            self.meta.items_truncated = True
            return
        self.items.append(item)

    def add_skipped(self, result: OperationResult, stage: str) -> None:
        self.summary.skipped += len(result.skipped)
        for entry in result.skipped:
            self.add_item({"stage": stage, "status": "skipped", **entry.to_dict()})
