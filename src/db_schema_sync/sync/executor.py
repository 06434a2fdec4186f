"""Bounded execution of external VCS client programs.

``ProcessExecutor.run()`` launches a program, waits for it on a fixed
polling interval and kills it once the deadline passes.  The result is
always a ``CommandResult``; callers branch on its ``outcome`` rather than
catching exceptions.

On POSIX the program runs in its own session, so a kill also reaches the
helpers it started (``ssh``, credential helpers) that would otherwise keep
the output pipes open.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import Sequence

from .models import CommandOutcome, CommandResult

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.1
MINIMUM_TIMEOUT_SECONDS = 10
HEARTBEAT_INTERVAL_SECONDS = 15
DRAIN_TIMEOUT_SECONDS = 5

_POSIX = os.name != "nt"


class ProcessExecutor:
    """Run external programs with a wall-clock deadline.

    Args:
        poll_interval: Seconds between completion checks.
        minimum_timeout: Floor applied to every caller-supplied timeout.
        heartbeat_interval: Seconds between "still waiting" log lines.
        drain_timeout: Seconds to keep reading output after the program
            exits or is killed.
    """

    def __init__(
        self,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        minimum_timeout: float = MINIMUM_TIMEOUT_SECONDS,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        drain_timeout: float = DRAIN_TIMEOUT_SECONDS,
    ) -> None:
        self.poll_interval = poll_interval
        self.minimum_timeout = minimum_timeout
        self.heartbeat_interval = heartbeat_interval
        self.drain_timeout = drain_timeout

    def run(
        self,
        executable: str | Path,
        arguments: Sequence[str],
        working_directory: str | Path,
        timeout_seconds: float,
    ) -> CommandResult:
        """Run *executable* with *arguments* in *working_directory*.

        Args:
            executable: Program to launch.
            arguments: Command-line arguments (no shell interpretation).
            working_directory: Directory the program runs in.
            timeout_seconds: Deadline; raised to ``minimum_timeout`` if lower.

        Returns:
            A ``CommandResult`` whose outcome is ``COMPLETED``,
            ``TIMED_OUT_KILLED`` or ``LAUNCH_FAILED``.
        """
        timeout = max(float(timeout_seconds), self.minimum_timeout)
        program = Path(executable).name
        command = [str(executable), *arguments]

        logger.debug(
            "Running %s in %s (timeout %.0fs)",
            " ".join(command),
            working_directory,
            timeout,
        )

        start = time.monotonic()
        try:
            process = subprocess.Popen(
                command,
                cwd=str(working_directory),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=_POSIX,
            )
        except (OSError, ValueError) as exc:
            logger.error("Unable to start %s: %s", executable, exc)
            return CommandResult(
                stderr=str(exc),
                outcome=CommandOutcome.LAUNCH_FAILED,
                elapsed_seconds=time.monotonic() - start,
            )

        last_heartbeat = start
        exited_at: float | None = None
        while True:
            try:
                stdout, stderr = process.communicate(
                    timeout=self.poll_interval
                )
                break
            except subprocess.TimeoutExpired as exc:
                pending = exc

            now = time.monotonic()
            elapsed = now - start

            if exited_at is None and process.poll() is not None:
                exited_at = now

            if exited_at is not None and now - exited_at > self.drain_timeout:
                # The program is done but something it started still holds
                # the output pipes.
                logger.warning(
                    "%s exited but its output is still open; "
                    "stopping leftover processes",
                    program,
                )
                _kill_process_tree(process)
                stdout, stderr = self._drain(process, pending)
                break

            if elapsed > timeout:
                logger.error(
                    "Program execution has surpassed %.0f seconds; aborting %s",
                    timeout,
                    executable,
                )
                _kill_process_tree(process)
                stdout, stderr = self._drain(process, pending)
                process.wait()
                return CommandResult(
                    stdout=stdout,
                    stderr=stderr,
                    outcome=CommandOutcome.TIMED_OUT_KILLED,
                    elapsed_seconds=time.monotonic() - start,
                )

            if now - last_heartbeat >= self.heartbeat_interval:
                last_heartbeat = now
                logger.info(
                    "Waiting for %s, %.0f seconds elapsed", program, elapsed
                )

        return CommandResult(
            stdout=stdout or "",
            stderr=stderr or "",
            outcome=CommandOutcome.COMPLETED,
            return_code=process.wait(),
            elapsed_seconds=time.monotonic() - start,
        )

    def _drain(
        self, process: subprocess.Popen, pending: subprocess.TimeoutExpired
    ) -> tuple[str, str]:
        """Collect remaining output, giving up after ``drain_timeout``.

        When the pipes stay open past the drain window, the output captured
        so far is kept and the pipes are closed.
        """
        try:
            stdout, stderr = process.communicate(timeout=self.drain_timeout)
            return stdout or "", stderr or ""
        except subprocess.TimeoutExpired as exc:
            pending = exc

        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()
        return _decode(pending.stdout), _decode(pending.stderr)


def _kill_process_tree(process: subprocess.Popen) -> None:
    """Kill *process* and, on POSIX, every process in its session."""
    if not _POSIX:
        process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        # Group already empty.
        return


def _decode(data: bytes | str | None) -> str:
    """Partial output from ``TimeoutExpired`` arrives as raw bytes."""
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
