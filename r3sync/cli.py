from __future__ import annotations

import logging
import sqlite3
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer

from r3sync.common.run_id import generate_run_id
from r3sync.common.sanitize import maskConnectionString, truncateText
from r3sync.common.time import getDurationMs
from r3sync.config import Settings, loadSettings
from r3sync.domain.error_codes import SkipCode
from r3sync.domain.exceptions import ConfigError, PersistenceError
from r3sync.domain.identity.blacklist import Blacklist
from r3sync.domain.identity.identity_map import IdentityMap
from r3sync.domain.reporting.models import Report
from r3sync.infra.acl.posix_scanner import PosixAclScanner
from r3sync.infra.artifacts.mapping_files import readBlacklistFile, readIdentityMapFile
from r3sync.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson
from r3sync.infra.logging.setup import (
    StdStreamToLogger,
    TeeStream,
    closeCommandLogger,
    createCommandLogger,
    logEvent,
    mapLogLevel,
)
from r3sync.infra.owners.owner_sources import ProcessOwnerSource, buildOwnerSource
from r3sync.infra.r3.db import openR3Db, resolveDbPath
from r3sync.infra.r3.repository import SqliteR3Repository
from r3sync.infra.r3.schema import ensure_r3_schema
from r3sync.infra.r3.sqlite_engine import SqliteEngine
from r3sync.usecases.auto_map_usecase import AutoMapUseCase
from r3sync.usecases.export_engine import ExportEngine
from r3sync.usecases.import_engine import ImportEngine
from r3sync.usecases.user_manage_usecase import UserManageAction, UserManageUseCase

app = typer.Typer(no_args_is_help=True, add_completion=False)

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_FATAL = 3


def ensureDir(path: str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Печатает безопасную сводку параметров запуска (пароль строки подключения маскируется).
    """
    typer.echo(
        f"run_id={runId} command={command} "
        f"db={maskConnectionString(settings.db_connection)} target_root={settings.virtual_root} "
        f"sources={sources} log_level={settings.log_level}"
    )


@contextmanager
def openRepository(settings: Settings, report: Report) -> Iterator[SqliteR3Repository]:
    """
    Назначение:
        Открывает БД R3 по --db-connection, создаёт схему и отдаёт репозиторий.
        Соединение закрывается при выходе из блока.
    """
    dbPath = resolveDbPath(settings.db_connection)
    report.meta.db_path = dbPath
    conn = openR3Db(dbPath, createIfMissing=settings.create_db)
    engine = SqliteEngine(conn)
    try:
        ensure_r3_schema(engine)
        yield SqliteR3Repository(engine)
    finally:
        engine.close()


def loadIdentityInputs(settings: Settings, logger: logging.Logger, runId: str, report: Report) -> tuple[IdentityMap, Blacklist]:
    """
    Назначение:
        Загружает файл соответствий и чёрный список из настроек.
        Отсутствующий файл даёт пустой набор с предупреждением.
    """
    mapping = IdentityMap()
    if settings.map_users_file:
        if not Path(settings.map_users_file).is_file():
            _warn(logger, runId, report, f"map-users-file not found: {settings.map_users_file}")
        mapping = readIdentityMapFile(settings.map_users_file)
        for target, locals_ in mapping.duplicate_targets().items():
            _warn(
                logger,
                runId,
                report,
                f"R3 user '{target}' is mapped from several local accounts {locals_}; first wins",
            )

    blacklist = Blacklist(target_case_sensitive=settings.blacklist_target_case_sensitive)
    if settings.blacklist_file:
        if not Path(settings.blacklist_file).is_file():
            _warn(logger, runId, report, f"blacklist file not found: {settings.blacklist_file}")
        blacklist = readBlacklistFile(settings.blacklist_file, settings.blacklist_target_case_sensitive)

    logEvent(
        logger,
        logging.INFO,
        runId,
        "mapping",
        f"identity map entries={len(mapping)} blacklist entries={len(blacklist)}",
    )
    return mapping, blacklist


def _warn(logger: logging.Logger, runId: str, report: Report, message: str) -> None:
    logEvent(logger, logging.WARNING, runId, "mapping", message)
    typer.echo(f"WARN: {message}", err=True)
    report.summary.warnings += 1
    report.add_item({"stage": "config", "status": "warning", "message": message})


def parseExportTarget(value: str, exportDir: str) -> tuple[str, str]:
    """
    Назначение:
        Разбор аргумента экспорта: '<r3path>=<localDir>' или '<r3path>'
        (тогда выгрузка в <exportDir>/<r3path>).
    """
    if "=" in value:
        virtualPath, localDir = value.split("=", 1)
        if not virtualPath.strip() or not localDir.strip():
            raise ConfigError(f"Invalid export target: {value}")
        return virtualPath.strip(), localDir.strip()
    virtualPath = value.strip()
    if not virtualPath:
        raise ConfigError("Invalid export target: empty R3 path")
    return virtualPath, str(Path(exportDir, *[s for s in virtualPath.split("/") if s]))


def parseAutoMapTarget(value: str, defaultOutFile: str) -> tuple[str, str]:
    if "=" in value:
        searchPath, outFile = value.split("=", 1)
        return searchPath, outFile or defaultOutFile
    return value, defaultOutFile


def runWithReport(ctx: typer.Context, commandName: str, runner) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер + файл лога
        - создаёт report.json skeleton
        - перенаправляет stdout/stderr в лог (tee)
        - переводит ошибки в коды выхода (2 - параметры, 3 - фатальный сбой I/O/БД)
        - гарантирует запись отчёта в finally
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    sources = ctx.obj["sources"]

    startMonotonic = time.monotonic()

    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )

    report = createEmptyReport(runId=runId, command=commandName, configSources=sources)
    report.meta.items_limit = settings.report_items_limit

    originalStdout = sys.stdout
    originalStderr = sys.stderr
    sys.stdout = TeeStream(originalStdout, StdStreamToLogger(logger, logging.INFO, runId, "stdout"))
    sys.stderr = TeeStream(originalStderr, StdStreamToLogger(logger, logging.ERROR, runId, "stderr"))

    exitCode: int | None = None

    try:
        logEvent(logger, logging.INFO, runId, "core", "Command started")
        printRunHeader(runId, commandName, settings, sources)
        try:
            exitCode = runner(logger, report)
        except (ConfigError, ValueError) as exc:
            logEvent(logger, logging.ERROR, runId, "config", f"{commandName} rejected: {exc}")
            typer.echo(f"ERROR: {exc}", err=True)
            exitCode = EXIT_USAGE
        except (PersistenceError, sqlite3.Error, OSError) as exc:
            logEvent(logger, logging.ERROR, runId, "core", f"{commandName} failed: {exc}")
            report.add_item({"stage": commandName, "status": "failed", "message": truncateText(str(exc))})
            typer.echo(f"ERROR: {commandName} failed: {exc}", err=True)
            exitCode = EXIT_FATAL
    finally:
        durationMs = getDurationMs(startMonotonic, time.monotonic())
        finalizeReport(
            report=report,
            durationMs=durationMs,
            logFile=logFilePath,
            dbPath=report.meta.db_path,
            reportDir=settings.report_dir,
        )
        reportPath = writeReportJson(report, settings.report_dir, f"report_{commandName}_{runId}")
        logEvent(logger, logging.INFO, runId, "report", f"Report written: {reportPath}")

        sys.stdout = originalStdout
        sys.stderr = originalStderr
        closeCommandLogger(logger)

        if exitCode is not None:
            raise typer.Exit(code=exitCode)


def runImportCommand(
    ctx: typer.Context,
    paths: list[str],
    recursive: bool,
    takeOwners: bool,
    applyPermissions: bool,
    createUsersIfMissing: bool,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, report: Report) -> int:
        ownerSource = buildOwnerSource(settings.owner_source, settings.owner_static_name)
        mapping, blacklist = loadIdentityInputs(settings, logger, runId, report)
        with openRepository(settings, report) as repo:
            engine = ImportEngine(
                repo=repo,
                acl_scanner=PosixAclScanner(),
                owner_source=ownerSource,
                process_owner=ProcessOwnerSource(),
                logger=logger,
                run_id=runId,
            )
            result = engine.import_paths(
                paths,
                recursive=recursive,
                take_owners=takeOwners,
                virtual_root=settings.virtual_root,
                identity_map=mapping,
                create_missing_users=createUsersIfMissing,
                propagate_permissions=applyPermissions,
                blacklist=blacklist,
            )

        report.summary.files_imported = result.files_imported
        report.summary.folders_imported = result.folders_imported
        report.summary.permissions_created = result.permissions_created
        report.summary.identities_created = result.identities_created
        report.add_skipped(result, "import")
        for entry in result.skipped:
            if entry.code == SkipCode.PATH_NOT_FOUND:
                typer.echo(f"WARN: path not found: {entry.path}", err=True)
        typer.echo(
            f"imported files={result.files_imported} folders={result.folders_imported} "
            f"permissions={result.permissions_created} skipped={len(result.skipped)}"
        )
        return EXIT_OK

    runWithReport(ctx=ctx, commandName="import", runner=execute)


def runExportCommand(
    ctx: typer.Context,
    items: list[str],
    recursive: bool,
    applyPermissions: bool,
    createUsersIfMissing: bool,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, report: Report) -> int:
        targets = [parseExportTarget(item, settings.export_dir) for item in items]
        mapping, _blacklist = loadIdentityInputs(settings, logger, runId, report)
        with openRepository(settings, report) as repo:
            engine = ExportEngine(
                repo=repo,
                logger=logger,
                run_id=runId,
                owner_mapping_file=settings.owner_mapping_file,
            )
            for virtualPath, localDir in targets:
                result = engine.export_path(
                    virtualPath,
                    localDir,
                    recursive=recursive,
                    identity_map=mapping,
                    create_missing_users=createUsersIfMissing,
                    emit_owner_mapping=applyPermissions,
                )
                report.summary.files_exported += result.files_exported
                report.add_skipped(result, "export")
                typer.echo(
                    f"exported {virtualPath} -> {localDir} files={result.files_exported} "
                    f"owner_mappings={result.owner_mappings_written} skipped={len(result.skipped)}"
                )
        return EXIT_OK

    runWithReport(ctx=ctx, commandName="export", runner=execute)


def runAutoMapCommand(ctx: typer.Context, target: str, recursive: bool) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, report: Report) -> int:
        searchPath, outFile = parseAutoMapTarget(target, settings.auto_map_file)
        if not Path(searchPath).is_dir():
            raise ConfigError(f"auto-map search path is not a directory: {searchPath}")
        with openRepository(settings, report) as repo:
            usecase = AutoMapUseCase(repo, PosixAclScanner(), logger, runId)
            result, written = usecase.run(searchPath, recursive, outFile)

        report.add_skipped(result, "auto-map")
        unresolved = sum(1 for _local, mapped in result.mapping.items() if not mapped)
        report.add_item(
            {
                "stage": "auto-map",
                "status": "written",
                "path": written,
                "identities": len(result.mapping),
                "unresolved": unresolved,
            }
        )
        typer.echo(f"auto-mapping written: {written} identities={len(result.mapping)} unresolved={unresolved}")
        return EXIT_OK

    runWithReport(ctx=ctx, commandName="auto-map", runner=execute)


def runUsersCommand(ctx: typer.Context, mappingFile: str, action: str) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, report: Report) -> int:
        selected = UserManageAction.parse(action)
        if not Path(mappingFile).is_file():
            raise ConfigError(f"user-manage file not found: {mappingFile}")
        mapping = readIdentityMapFile(mappingFile)
        _unused, blacklist = loadIdentityInputs(settings, logger, runId, report)
        with openRepository(settings, report) as repo:
            result = UserManageUseCase(repo, logger, runId).run(mapping, selected, blacklist)

        report.summary.identities_created = result.created
        report.summary.identities_deleted = result.deleted
        report.add_skipped(result, "users")
        typer.echo(
            f"users action={selected.value} created={result.created} deleted={result.deleted} "
            f"not_found={result.missing} skipped={len(result.skipped)}"
        )
        return EXIT_OK

    runWithReport(ctx=ctx, commandName="users", runner=execute)


def runStatusCommand(ctx: typer.Context) -> None:
    settings: Settings = ctx.obj["settings"]

    def execute(logger, report: Report) -> int:
        with openRepository(settings, report) as repo:
            counts = repo.counts()
        report.add_item({"stage": "status", "status": "ok", **counts})
        typer.echo(" ".join(f"{name}={value}" for name, value in counts.items()))
        return EXIT_OK

    runWithReport(ctx=ctx, commandName="status", runner=execute)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    reportDir: str | None = typer.Option(None, "--report-dir", help="Directory for reports."),
    dbConnection: str | None = typer.Option(
        None, "--db-connection", help="SQLite file, 'Data Source=<file>' string or file containing it"
    ),
    createDb: bool | None = typer.Option(None, "--create-db/--no-create-db", help="Create the R3 database if missing"),
    targetRoot: str | None = typer.Option(None, "--target-root", help="R3 folder to import into (default '/')"),
    mapUsersFile: str | None = typer.Option(None, "--map-users-file", help="Identity mapping file (local=r3 per line)"),
    blacklistFile: str | None = typer.Option(None, "--blacklist", help="File with identity names to skip"),
    ownerSource: str | None = typer.Option(
        None, "--owner-source", help="Owner strategy for --take-owners: process|filesystem|static"
    ),
    ownerName: str | None = typer.Option(None, "--owner-name", help="Owner name for --owner-source static"),
    exportDir: str | None = typer.Option(None, "--export-dir", help="Default export directory for bare R3 paths"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - создаёт каталоги log/report
        - сохраняет всё в ctx.obj для подкоманд
    """
    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "log_level": logLevel,
        "log_dir": logDir,
        "report_dir": reportDir,
        "db_connection": dbConnection,
        "create_db": createDb,
        "virtual_root": targetRoot,
        "map_users_file": mapUsersFile,
        "blacklist_file": blacklistFile,
        "owner_source": ownerSource,
        "owner_static_name": ownerName,
        "export_dir": exportDir,
    }
    try:
        loaded = loadSettings(config_path=config, cli_overrides=cliOverrides)
        mapLogLevel(loaded.settings.log_level)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=EXIT_USAGE)

    ensureDir(loaded.settings.log_dir)
    ensureDir(loaded.settings.report_dir)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
    }


@app.command("import")
def importCommand(
    ctx: typer.Context,
    paths: list[str] = typer.Argument(..., help="Local files or directories to import"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Recurse into subdirectories"),
    takeOwners: bool = typer.Option(False, "--take-owners", help="Take owners via the configured owner source"),
    applyPermissions: bool = typer.Option(False, "--apply-permissions", help="Propagate ACL-derived permissions"),
    createUsersIfMissing: bool = typer.Option(
        False, "--create-users-if-missing", help="Create mapped R3 users that do not exist yet"
    ),
):
    runImportCommand(ctx, paths, recursive, takeOwners, applyPermissions, createUsersIfMissing)


@app.command("export")
def exportCommand(
    ctx: typer.Context,
    items: list[str] = typer.Argument(..., help="<r3path>=<localDir> or <r3path> (-> <export-dir>/<r3path>)"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Export R3 subpaths too"),
    applyPermissions: bool = typer.Option(
        False, "--apply-permissions", help="Write owner mapping sidecar (target=local) per file"
    ),
    createUsersIfMissing: bool = typer.Option(False, "--create-users-if-missing", help="Accepted for symmetry"),
):
    runExportCommand(ctx, items, recursive, applyPermissions, createUsersIfMissing)


@app.command("auto-map")
def autoMapCommand(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="<searchPath>[=<outFile>]"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Scan subdirectories too"),
):
    runAutoMapCommand(ctx, target, recursive)


@app.command("users")
def usersCommand(
    ctx: typer.Context,
    mappingFile: str = typer.Argument(..., help="Mapping file with local=r3 pairs"),
    action: str = typer.Option(
        ..., "--action", help="add-first|add-second|add-both|delete-first|delete-second|delete-both"
    ),
):
    runUsersCommand(ctx, mappingFile, action)


@app.command("status")
def statusCommand(ctx: typer.Context):
    runStatusCommand(ctx)
