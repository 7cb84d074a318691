"""
Synchronous invocation of external command-line tools.

Commands are run from an argument vector, never through a shell, so
identifiers and queries need no quoting. Piped input is passed as
in-memory stdin.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Sequence

from ..core.errors import FetchFailure
from ..core.types import ProcessResult
from ..utils.logging import get_logger, log_event, truncate_text


def run_command(
    args: Sequence[str],
    timeout: float | None = None,
    input_text: str | None = None,
    logger: logging.Logger | None = None,
) -> ProcessResult:
    """Run a command to completion and capture its output.

    Args:
        args: Program and arguments
        timeout: Seconds to wait before killing the process, None waits forever
        input_text: Text written to the process's stdin
        logger: Logger for failure events (package logger when None)

    Returns:
        ProcessResult with captured stdout/stderr

    Raises:
        FetchFailure: If the program cannot be started, times out, or exits
            with a non-zero status
    """
    logger = logger or get_logger()
    argv = [str(arg) for arg in args]
    try:
        completed = subprocess.run(
            argv,
            input=input_text,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        log_event(logger, "Command not found", level=logging.ERROR, event="command_missing", command=argv[0])
        raise FetchFailure(f"Command not found: {argv[0]}", details={"command": argv[0]}) from exc
    except subprocess.TimeoutExpired as exc:
        log_event(
            logger,
            "Command timed out",
            level=logging.ERROR,
            event="command_timeout",
            command=argv[0],
            timeout=timeout,
        )
        raise FetchFailure(
            f"Command timed out after {timeout}s: {argv[0]}", details={"command": argv[0]}
        ) from exc
    except OSError as exc:
        log_event(
            logger,
            "Command failed to start",
            level=logging.ERROR,
            event="command_oserror",
            command=argv[0],
            error=str(exc),
        )
        raise FetchFailure(
            f"Command failed to start: {argv[0]}: {exc}", details={"command": argv[0]}
        ) from exc

    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        log_event(
            logger,
            "Command exited with non-zero status",
            level=logging.ERROR,
            event="command_failed",
            command=argv[0],
            returncode=completed.returncode,
            stderr=truncate_text(stderr, 1000),
        )
        raise FetchFailure(
            f"Command exited with status {completed.returncode}: {argv[0]}",
            returncode=completed.returncode,
            stderr=stderr,
        )

    return ProcessResult(
        args=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
