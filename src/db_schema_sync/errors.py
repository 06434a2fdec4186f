"""Error taxonomy for schema synchronization.

Every public operation catches these at its boundary, logs a message built
by ``format_error()`` and returns a failure result instead of raising.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from .sync.models import RepoKind


class SchemaSyncError(Exception):
    """Base class for all schema sync failures."""


class ConfigurationError(SchemaSyncError):
    """Missing or inconsistent directories, empty inputs, bad settings."""


class ReadError(SchemaSyncError):
    """A file could not be read while comparing it."""


class RepoNotFoundError(SchemaSyncError):
    """The target directory is not tracked by the expected VCS."""

    def __init__(self, kind: RepoKind, directory: Path | str) -> None:
        self.kind = kind
        self.directory = directory
        super().__init__(
            f"Directory is not tracked by {kind.display_name}: {directory}"
        )


class ToolNotFoundError(SchemaSyncError):
    """The VCS client executable is not installed where expected."""

    def __init__(
        self, kind: RepoKind, executable: str, install_hint: str = ""
    ) -> None:
        self.kind = kind
        self.executable = executable
        self.install_hint = install_hint
        super().__init__(
            f"{kind.display_name} executable not found at {executable}"
        )


class CommandFailedError(SchemaSyncError):
    """A VCS command failed, timed out, or reported a failure marker."""

    def __init__(self, kind: RepoKind, command: str, reason: str) -> None:
        self.kind = kind
        self.command = command
        self.reason = reason
        super().__init__(
            f"{kind.display_name} {command} failed: {reason}"
        )


def format_error(
    error_type: str, message: str, corrective_action: str = ""
) -> str:
    """Build a log message with an optional corrective action.

    Examples:
        >>> format_error("tool_not_found", "git missing", "Install Git")
        'Error (tool_not_found): git missing\\n\\nAction: Install Git'
    """
    text = f"Error ({error_type}): {message}"
    if corrective_action:
        text += f"\n\nAction: {corrective_action}"
    return text
