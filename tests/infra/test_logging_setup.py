from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from r3sync.infra.logging.setup import (
    StdStreamToLogger,
    TeeStream,
    closeCommandLogger,
    createCommandLogger,
    logEvent,
    mapLogLevel,
)


def test_map_log_level():
    assert mapLogLevel("warn") == logging.WARNING
    assert mapLogLevel(" Debug ") == logging.DEBUG
    with pytest.raises(ValueError):
        mapLogLevel("LOUD")


def test_tee_copies_lines_into_command_log(tmp_path: Path):
    logger, logFile = createCommandLogger("import", str(tmp_path), "run-7", "INFO")
    console = io.StringIO()
    tee = TeeStream(console, StdStreamToLogger(logger, logging.INFO, "run-7", "stdout"))

    tee.write("first line\nsecond ")
    tee.write("part\n\n")
    tee.write("tail without newline")
    tee.flush()
    logger.info("plain record without extra")
    logEvent(logger, logging.DEBUG, "run-7", "core", "below level")
    closeCommandLogger(logger)

    assert console.getvalue() == "first line\nsecond part\n\ntail without newline"
    lines = Path(logFile).read_text(encoding="utf-8").splitlines()
    assert Path(logFile).name == "import_run-7.log"
    assert [line.split("msg=", 1)[1] for line in lines] == [
        "first line",
        "second part",
        "tail without newline",
        "plain record without extra",
    ]
    assert all("runId=run-7" in line for line in lines)
    assert "comp=stdout" in lines[0]
    assert "comp=core" in lines[-1]
