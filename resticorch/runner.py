# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restic Orchestrator Process Runner - Streaming subprocess execution.

Launches the engine as a child process and pumps its stdout and stderr
line by line into a bounded queue. A single consumer drains the queue and
hands each line to the caller's handler, so the handler is never invoked
concurrently and the whole output is never held in memory.

The child is always reaped before run_process() returns or raises,
including on cancellation, deadline expiry and handler failure.
"""

import asyncio
import inspect
import os
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Deque, Dict, List, Sequence, Tuple

import structlog
from ulid import ULID

from resticorch.errors import explain_deadline_exceeded, explain_missing_executable
from resticorch.exceptions import (
    CallerCancelledError,
    EngineError,
    OperationCancelledError,
    ProcessStartError,
    RepositoryLockedError,
)

logger = structlog.get_logger()

# Bounded queue between the stream readers and the consumer
LINE_QUEUE_SIZE = 256

# StreamReader line limit; restic status lines can list many current files
STREAM_LIMIT = 4 * 1024 * 1024

# Number of stderr lines kept for error reports
STDERR_TAIL_LINES = 50

# Seconds between SIGTERM and SIGKILL when stopping the engine
TERMINATE_GRACE_SECONDS = 5.0

# stderr fragments restic prints when another process holds the lock
LOCK_MARKERS = (
    "repository is already locked",
    "unable to create lock",
)


class OutputStream(str, Enum):
    """Which pipe a line arrived on."""

    STDOUT = "stdout"
    STDERR = "stderr"


LineHandler = Callable[[OutputStream, str], Awaitable[None] | None]


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a finished engine process."""

    invocation_id: str  # ULID
    command: List[str]
    exit_code: int
    duration_seconds: float
    stderr_tail: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def build_command(binary: str, subcommand: str, global_flags: Sequence[str], args: Sequence[str]) -> List[str]:
    """
    Assemble an engine argument vector.

    Order: executable, subcommand, global flags, operation flags and
    positional arguments.
    """
    return [binary, subcommand, *global_flags, *args]


async def _pump(
    reader: asyncio.StreamReader,
    stream: OutputStream,
    queue: "asyncio.Queue[Tuple[OutputStream, str] | None]",
) -> None:
    """Read lines from one pipe into the queue, then post an end marker."""
    try:
        while True:
            try:
                raw = await reader.readline()
            except ValueError:
                # The reader dropped a line longer than STREAM_LIMIT
                logger.warning("engine_line_too_long", stream=stream.value, limit=STREAM_LIMIT)
                continue
            if not raw:
                break
            await queue.put((stream, raw.decode("utf-8", errors="replace").rstrip("\r\n")))
    except OSError as e:
        logger.warning("engine_stream_error", stream=stream.value, error=str(e))
    # Not in a finally: a cancelled reader must not block on a full queue
    await queue.put(None)


async def _dispatch(
    queue: "asyncio.Queue[Tuple[OutputStream, str] | None]",
    producers: int,
    on_line: LineHandler | None,
    stderr_tail: Deque[str],
) -> None:
    """Deliver queued lines one at a time until every producer finished."""
    remaining = producers
    while remaining:
        item = await queue.get()
        if item is None:
            remaining -= 1
            continue
        stream, line = item
        if stream is OutputStream.STDERR and line:
            stderr_tail.append(line)
        if on_line is not None:
            result = on_line(stream, line)
            if inspect.isawaitable(result):
                await result


async def _reap(proc: asyncio.subprocess.Process, readers: List["asyncio.Task[None]"]) -> None:
    """Stop the child if it is still running and wait for it and the readers."""
    if proc.returncode is None:
        try:
            proc.terminate()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(proc.wait(), TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("engine_kill", pid=proc.pid)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

    for task in readers:
        if not task.done():
            task.cancel()
    await asyncio.gather(*readers, return_exceptions=True)


async def run_process(
    command: Sequence[str],
    *,
    env: Dict[str, str] | None = None,
    cwd: Path | str | None = None,
    on_line: LineHandler | None = None,
    timeout: float | None = None,
    operation: str = "",
) -> ProcessResult:
    """
    Run the engine and stream its output to on_line.

    Lines are delivered in arrival order per stream through a single
    consumer; a handler returning an awaitable is awaited before the next
    line is delivered. A non-zero exit is reported in the result, not
    raised; use raise_for_status() to classify it.

    Args:
        command: Executable followed by its arguments
        env: Variables added to the current process environment
        cwd: Working directory for the child
        on_line: Handler called as on_line(stream, line)
        timeout: Seconds before the child is terminated
        operation: Short name used in logs and error messages

    Returns:
        ProcessResult with exit code and stderr tail

    Raises:
        ProcessStartError: If the executable cannot be launched
        OperationCancelledError: If the deadline expired
        CallerCancelledError: If the calling task was cancelled (an
            OperationCancelledError that is also an asyncio.CancelledError)
    """
    argv = [str(part) for part in command]
    operation = operation or (argv[1] if len(argv) > 1 else argv[0])
    invocation_id = str(ULID())
    log = logger.bind(invocation_id=invocation_id, operation=operation)
    child_env: Dict[str, Any] = {**os.environ, **(env or {})}

    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=child_env,
            cwd=str(cwd) if cwd is not None else None,
            limit=STREAM_LIMIT,
        )
    except OSError as e:
        log.error("engine_start_failed", command=argv, error=str(e))
        raise ProcessStartError(
            explain_missing_executable(argv[0]),
            details={"command": argv, "error": str(e)},
        ) from e

    log.debug("engine_started", command=argv, pid=proc.pid)

    queue: "asyncio.Queue[Tuple[OutputStream, str] | None]" = asyncio.Queue(LINE_QUEUE_SIZE)
    readers = [
        asyncio.create_task(_pump(proc.stdout, OutputStream.STDOUT, queue)),
        asyncio.create_task(_pump(proc.stderr, OutputStream.STDERR, queue)),
    ]
    stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)

    try:
        async with asyncio.timeout(timeout):
            await _dispatch(queue, len(readers), on_line, stderr_tail)
            exit_code = await proc.wait()
    except TimeoutError as e:
        log.warning("engine_deadline_exceeded", timeout=timeout)
        raise OperationCancelledError(
            explain_deadline_exceeded(operation, timeout or 0),
            details={"command": argv, "invocation_id": invocation_id},
        ) from e
    except asyncio.CancelledError as e:
        log.warning("engine_cancelled")
        # Still a CancelledError, so the task ends cancelled
        raise CallerCancelledError(
            f"restic {operation} was cancelled by the caller",
            details={"command": argv, "invocation_id": invocation_id},
        ) from e
    finally:
        await _reap(proc, readers)

    duration = time.monotonic() - start
    log.debug("engine_exited", exit_code=exit_code, duration=duration)

    return ProcessResult(
        invocation_id=invocation_id,
        command=argv,
        exit_code=exit_code,
        duration_seconds=duration,
        stderr_tail=list(stderr_tail),
    )


def is_lock_contention(lines: Sequence[str]) -> bool:
    """Return True if stderr shows the repository is locked by another process."""
    text = "\n".join(lines).lower()
    return any(marker in text for marker in LOCK_MARKERS)


def raise_for_status(result: ProcessResult) -> None:
    """
    Raise an EngineError if the engine exited with a non-zero status.

    Raises:
        RepositoryLockedError: If the failure was lock contention
        EngineError: For any other non-zero exit
    """
    if result.ok:
        return

    operation = result.command[1] if len(result.command) > 1 else result.command[0]
    details = {
        "exit_code": result.exit_code,
        "stderr": result.stderr_tail,
        "invocation_id": result.invocation_id,
    }
    last_line = result.stderr_tail[-1] if result.stderr_tail else "no diagnostic output"

    if is_lock_contention(result.stderr_tail):
        raise RepositoryLockedError(f"restic {operation}: repository is locked", details=details)

    raise EngineError(
        f"restic {operation} failed with exit code {result.exit_code}: {last_line}",
        details=details,
    )
