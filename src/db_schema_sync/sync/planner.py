"""Stage, commit, and push synchronized schema files.

``CommitPlanner.plan()`` runs the per-repository steps for one database:

1. Resolve the client executable (once per kind per planner).
2. ``add`` every new file.
3. ``status`` the working tree and count modified tracked files.
4. Warn when files were copied but nothing shows up as modified.
5. Commit (or report the would-be commit message in a dry run) and push.

Failures never escape ``plan()``: each one is logged and turned into a
``RepoUpdateResult`` with ``success=False``.  A failed step aborts only
the remaining steps for that repository kind.
"""

from __future__ import annotations

import logging
import shutil
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Sequence

from ..errors import (
    CommandFailedError,
    RepoNotFoundError,
    ToolNotFoundError,
    format_error,
)
from .executor import ProcessExecutor
from .models import CommandOutcome, CommandResult, RepoKind, RepoUpdateResult
from .progress import ProgressReporter
from .status import count_modified, get_status_parser

if TYPE_CHECKING:
    from ..config_schema import ReposConfig, RepoToolConfig

logger = logging.getLogger(__name__)

COMMIT_MESSAGE_SUFFIX = " auto-commit"


def build_commit_message(day: date, suffix: str = "") -> str:
    """Build ``YYYY-MM-DD auto-commit[ suffix]``.

    Examples:
        >>> build_commit_message(date(2024, 1, 15))
        '2024-01-15 auto-commit'
        >>> build_commit_message(date(2024, 1, 15), "DMS5")
        '2024-01-15 auto-commit DMS5'
    """
    message = day.strftime("%Y-%m-%d") + COMMIT_MESSAGE_SUFFIX
    if suffix and suffix.strip():
        message += suffix if suffix.startswith(" ") else " " + suffix
    return message


def _plural(count: int, one: str, several: str) -> str:
    return one if count == 1 else several


class CommitPlanner:
    """Drive one VCS client through add/status/commit/push.

    Args:
        repos: The VCS client table (defaults to the built-in one).
        executor: Runs the client program.
        commit_enabled: Default for ``plan(commit_enabled=...)``.
        clock: Returns today's local date, used in commit messages.
        progress: Receives progress notifications.
    """

    def __init__(
        self,
        repos: ReposConfig | None = None,
        executor: ProcessExecutor | None = None,
        commit_enabled: bool = False,
        clock: Callable[[], date] = date.today,
        progress: ProgressReporter | None = None,
    ) -> None:
        if repos is None:
            from ..config_schema import ReposConfig, default_repo_tools

            repos = ReposConfig(**default_repo_tools())
        self.repos = repos
        self.executor = executor or ProcessExecutor()
        self.commit_enabled = commit_enabled
        self.clock = clock
        self.progress = progress or ProgressReporter()
        self._resolved: dict[RepoKind, Path | None] = {}

    # ------------------------------------------------------------------
    # Tool resolution
    # ------------------------------------------------------------------

    def resolve_tool(self, kind: RepoKind) -> Path:
        """Return the client executable for *kind*.

        The lookup happens once per kind; later calls reuse the cached
        answer, including a negative one.

        Raises:
            ToolNotFoundError: The executable does not exist.
        """
        tool = self.repos.for_kind(kind)
        if kind not in self._resolved:
            self._resolved[kind] = _locate_executable(tool.executable)
            if self._resolved[kind] is not None:
                logger.debug(
                    "Using %s at %s", kind.display_name, self._resolved[kind]
                )
        resolved = self._resolved[kind]
        if resolved is None:
            raise ToolNotFoundError(kind, tool.executable, tool.install_hint)
        return resolved

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def plan(
        self,
        kind: RepoKind,
        target_directory: Path,
        copy_count: int,
        new_file_paths: Sequence[Path],
        commit_enabled: bool | None = None,
        commit_message_suffix: str = "",
    ) -> RepoUpdateResult:
        """Bring the *kind* working tree at *target_directory* up to date.

        Args:
            kind: Which VCS to drive.
            target_directory: Working tree the files were copied into.
            copy_count: Number of files copied into the tree.
            new_file_paths: Files that did not exist before the copy.
            commit_enabled: Commit and push; ``None`` uses the planner default.
            commit_message_suffix: Appended to the commit message.

        Returns:
            A ``RepoUpdateResult``; ``success`` is False on any failure.
        """
        kind = RepoKind(kind)
        if commit_enabled is None:
            commit_enabled = self.commit_enabled

        try:
            return self._plan(
                kind,
                self.repos.for_kind(kind),
                Path(target_directory),
                copy_count,
                list(new_file_paths),
                commit_enabled,
                commit_message_suffix,
            )
        except ToolNotFoundError as exc:
            logger.error(
                format_error("tool_not_found", str(exc), exc.install_hint)
            )
            return RepoUpdateResult(kind=kind, success=False, error=str(exc))
        except RepoNotFoundError as exc:
            logger.error(format_error("repo_not_found", str(exc)))
            return RepoUpdateResult(kind=kind, success=False, error=str(exc))
        except CommandFailedError as exc:
            logger.error(format_error("command_failed", str(exc)))
            return RepoUpdateResult(kind=kind, success=False, error=str(exc))
        except Exception as exc:
            logger.exception(
                "Error updating %s for %s", kind.display_name, target_directory
            )
            return RepoUpdateResult(kind=kind, success=False, error=str(exc))

    def _plan(
        self,
        kind: RepoKind,
        tool: RepoToolConfig,
        target: Path,
        copy_count: int,
        new_file_paths: list[Path],
        commit_enabled: bool,
        suffix: str,
    ) -> RepoUpdateResult:
        executable = self.resolve_tool(kind)
        name = kind.display_name

        # Step 2: schedule new files for addition
        if new_file_paths:
            count = len(new_file_paths)
            self.progress.update(
                f"Adding {count} new {_plural(count, 'file', 'files')} "
                f"for tracking by {name}"
            )
            for new_file in new_file_paths:
                new_file = Path(new_file)
                self._run_step(
                    kind,
                    tool,
                    executable,
                    "add",
                    tool.add_args,
                    new_file.parent,
                    tool.add_timeout,
                    path=new_file,
                    target=target,
                )

        # Step 3: count modified tracked files
        self.progress.update(
            f"Looking for modified files tracked by {name} at {target}"
        )
        status = self.executor.run(
            executable,
            _render(tool.status_args, target=target),
            target,
            tool.status_timeout,
        )
        entries = get_status_parser(kind).parse(status.output, target)
        self._raise_on_failure(kind, tool, "status", status)
        modified_count = count_modified(entries)

        # Step 4: advisory consistency check
        if copy_count > 0 and modified_count == 0:
            logger.warning(
                "Copied %d %s yet %s reports no modified files; "
                "this may indicate a problem",
                copy_count,
                _plural(copy_count, "file", "files"),
                name,
            )

        if modified_count == 0 and not new_file_paths:
            return RepoUpdateResult(
                kind=kind,
                success=True,
                dry_run=not commit_enabled,
            )

        if modified_count > 0:
            self.progress.update(
                f"Found {modified_count} modified "
                f"{_plural(modified_count, 'file', 'files')}"
            )

        message = build_commit_message(self.clock(), suffix)

        # Step 5: dry run reports the message only
        if not commit_enabled:
            logger.info(
                "Use --commit to commit changes with commit message: %s",
                message,
            )
            return RepoUpdateResult(
                kind=kind,
                success=True,
                modified_count=modified_count,
                new_file_count=len(new_file_paths),
                commit_message=message,
                dry_run=True,
            )

        self.progress.update(f"Committing changes to {name}: {message}")
        self._run_step(
            kind,
            tool,
            executable,
            "commit",
            tool.commit_args,
            target,
            tool.commit_timeout,
            target=target,
            message=message,
        )

        pushed: list[str] = []
        for push_args in tool.push_commands:
            label = " ".join(push_args)
            try:
                self._run_step(
                    kind,
                    tool,
                    executable,
                    label,
                    push_args,
                    target,
                    tool.push_timeout,
                    target=target,
                )
            except CommandFailedError as exc:
                logger.error(format_error("push_failed", str(exc)))
                return RepoUpdateResult(
                    kind=kind,
                    success=False,
                    modified_count=modified_count,
                    new_file_count=len(new_file_paths),
                    commit_message=message,
                    committed=True,
                    pushed_remotes=pushed,
                    error=str(exc),
                )
            pushed.append(label)

        return RepoUpdateResult(
            kind=kind,
            success=True,
            modified_count=modified_count,
            new_file_count=len(new_file_paths),
            commit_message=message,
            committed=True,
            pushed_remotes=pushed,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run_step(
        self,
        kind: RepoKind,
        tool: RepoToolConfig,
        executable: Path,
        command: str,
        args_template: list[str],
        working_directory: Path,
        timeout: int,
        **values: object,
    ) -> CommandResult:
        result = self.executor.run(
            executable,
            _render(args_template, **values),
            working_directory,
            timeout,
        )
        self._raise_on_failure(kind, tool, command, result)
        return result

    @staticmethod
    def _raise_on_failure(
        kind: RepoKind,
        tool: RepoToolConfig,
        command: str,
        result: CommandResult,
    ) -> None:
        reason = command_failure_reason(tool, result)
        if reason is not None:
            raise CommandFailedError(kind, command, reason)


def command_failure_reason(
    tool: RepoToolConfig, result: CommandResult
) -> str | None:
    """Return why *result* counts as a failure, or ``None`` if it succeeded.

    A command fails when it could not start, was killed at its deadline,
    exited non-zero, or printed one of the tool's failure markers on
    stderr.
    """
    if result.outcome == CommandOutcome.LAUNCH_FAILED:
        return f"could not start: {result.stderr.strip()}"
    if result.outcome == CommandOutcome.TIMED_OUT_KILLED:
        return f"timed out after {result.elapsed_seconds:.0f} seconds"

    stderr = result.stderr
    for line in stderr.splitlines():
        if any(line.startswith(p) for p in tool.failure_line_prefixes):
            return line.strip()
    for marker in tool.failure_substrings:
        if marker in stderr:
            return stderr.strip()

    if result.return_code:
        detail = stderr.strip() or result.stdout.strip()
        return f"exit code {result.return_code}: {detail}"
    return None


def _render(template: Sequence[str], **values: object) -> list[str]:
    rendered = {key: str(value) for key, value in values.items()}
    return [arg.format(**rendered) for arg in template]


def _locate_executable(executable: str) -> Path | None:
    path = Path(executable)
    if path.is_file():
        return path
    if path.name == executable:
        found = shutil.which(executable)
        if found:
            return Path(found)
    return None
