from __future__ import annotations

import logging
from pathlib import Path


class EnsureFieldsFilter(logging.Filter):
    """
    Назначение:
        Подставляет runId/component по умолчанию в записи без extra
        (сторонние библиотеки, logging.warning и т.п.), иначе форматтер падает KeyError.
    """

    def __init__(self, runId: str, defaultComponent: str = "core"):
        super().__init__()
        self.defaults = {"runId": runId, "component": defaultComponent}

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in self.defaults.items():
            if not hasattr(record, name):
                setattr(record, name, value)
        return True


class StdStreamToLogger:
    """
    Назначение:
        Приёмник для TeeStream: копит текст и пишет в лог команды
        по одной записи на каждую непустую строку. Хвост без '\\n' уходит в лог на flush().
    """

    def __init__(self, logger: logging.Logger, level: int, runId: str, component: str):
        self.logger = logger
        self.level = level
        self.runId = runId
        self.component = component
        self._pending = ""

    def write(self, s: str) -> int:
        if not s:
            return 0
        *lines, self._pending = (self._pending + s).split("\n")
        for line in lines:
            self._emit(line)
        return len(s)

    def flush(self) -> None:
        pending, self._pending = self._pending, ""
        self._emit(pending)

    def _emit(self, line: str) -> None:
        if line.strip():
            logEvent(self.logger, self.level, self.runId, self.component, line.rstrip())


class TeeStream:
    """
    Пишет в исходный поток (sys.stdout/sys.stderr) и во все приёмники; возвращает результат исходного.
    """

    def __init__(self, primary, *sinks):
        self.primary = primary
        self.sinks = sinks

    def write(self, s: str) -> int:
        written = self.primary.write(s)
        for sink in self.sinks:
            sink.write(s)
        return written

    def flush(self) -> None:
        self.primary.flush()
        for sink in self.sinks:
            sink.flush()


_LEVELS = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def mapLogLevel(levelName: str) -> int:
    """
    Назначение:
        Строковый уровень (ERROR|WARN|INFO|DEBUG) -> logging level.

    Ошибки:
        ValueError для неизвестного уровня.
    """
    value = (levelName or "").strip().upper()
    if value not in _LEVELS:
        raise ValueError(f"Unsupported log level: {levelName}")
    return _LEVELS[value]


def createCommandLogger(commandName: str, logDir: str, runId: str, logLevel: str) -> tuple[logging.Logger, str]:
    """
    Назначение:
        Создаёт логгер конкретной команды (import/export/auto-map/users/status)
        с файлом <logDir>/<command>_<runId>.log.

    Выходные данные:
        (logger, logFilePath)
    """
    Path(logDir).mkdir(parents=True, exist_ok=True)
    logFilePath = str(Path(logDir) / f"{commandName}_{runId}.log")

    logger = logging.getLogger(f"r3sync.{commandName}.{runId}")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    level = mapLogLevel(logLevel)
    logger.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s runId=%(runId)s comp=%(component)s msg=%(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    fileHandler = logging.FileHandler(logFilePath, encoding="utf-8")
    fileHandler.setLevel(level)
    fileHandler.setFormatter(formatter)
    fileHandler.addFilter(EnsureFieldsFilter(runId=runId))
    logger.addHandler(fileHandler)

    return logger, logFilePath


def closeCommandLogger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def logEvent(logger: logging.Logger, level: int, runId: str, component: str, message: str) -> None:
    """
    Унифицированная запись событий с runId/component.
    """
    logger.log(level, message, extra={"runId": runId, "component": component})
