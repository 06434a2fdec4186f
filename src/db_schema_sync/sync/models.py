"""Pydantic models for the schema sync pipeline.

Defines the core data contracts used across all sync modules:

- ``DifferenceOutcome``: Result of comparing a source file with its target.
- ``RepoKind``: The supported version control systems.
- ``CommandOutcome`` / ``CommandResult``: Outcome of one external command.
- ``ChangeKind`` / ``StatusEntry``: One parsed VCS status line.
- ``SyncTask``: Source and target directory for one database.
- ``RepoUpdateResult``: Outcome of the add/status/commit/push steps.
- ``SyncResult``: Outcome of syncing one database.
- ``SyncReport``: Aggregate results for a full sync run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel


class DifferenceOutcome(str, Enum):
    """Why a source file needs (or does not need) copying."""

    UNCHANGED = "unchanged"
    NEW_FILE = "new_file"
    CHANGED = "changed"


class RepoKind(str, Enum):
    """Supported version control systems, in the order they are updated."""

    SVN = "svn"
    HG = "hg"
    GIT = "git"

    @property
    def display_name(self) -> str:
        return {"svn": "SVN", "hg": "Hg", "git": "Git"}[self.value]


class CommandOutcome(str, Enum):
    """How an external command ended."""

    COMPLETED = "completed"
    TIMED_OUT_KILLED = "timed_out_killed"
    LAUNCH_FAILED = "launch_failed"


class CommandResult(BaseModel):
    """Captured result of one external program run.

    Attributes:
        stdout: Captured standard output.
        stderr: Captured standard error.
        outcome: Completed, killed after the deadline, or never started.
        return_code: Exit code, ``None`` unless the process completed.
        elapsed_seconds: Wall-clock time spent waiting.
    """

    stdout: str = ""
    stderr: str = ""
    outcome: CommandOutcome
    return_code: int | None = None
    elapsed_seconds: float = 0.0

    model_config = {"frozen": True}

    @property
    def output(self) -> str:
        """Standard output followed by standard error."""
        if self.stdout and self.stderr and not self.stdout.endswith("\n"):
            return self.stdout + "\n" + self.stderr
        return self.stdout + self.stderr

    @property
    def completed(self) -> bool:
        return self.outcome == CommandOutcome.COMPLETED


class ChangeKind(str, Enum):
    """Normalized change reported by a status line."""

    MODIFIED = "modified"
    ADDED = "added"
    RENAMED = "renamed"
    PROPERTY_MODIFIED = "property_modified"
    UNTRACKED = "untracked"
    DELETED = "deleted"
    MISSING = "missing"
    OTHER = "other"


_MODIFIED_KINDS = frozenset(
    {
        ChangeKind.MODIFIED,
        ChangeKind.ADDED,
        ChangeKind.RENAMED,
        ChangeKind.PROPERTY_MODIFIED,
    }
)


class StatusEntry(BaseModel):
    """One file reported by a VCS status command.

    Attributes:
        path: Path as printed by the VCS client.
        change: Normalized change kind.
        raw: The status line it was parsed from.
    """

    path: str
    change: ChangeKind
    raw: str = ""

    model_config = {"frozen": True}

    @property
    def counts_as_modified(self) -> bool:
        """True for tracked files that a commit would include."""
        return self.change in _MODIFIED_KINDS


class SyncTask(BaseModel):
    """Source and resolved target directory for one database."""

    database_name: str
    source_directory: Path
    target_directory: Path

    model_config = {"frozen": True}


class RepoUpdateResult(BaseModel):
    """Outcome of updating one repository for one database.

    Attributes:
        kind: The VCS that was driven.
        success: False when any step failed or the tool was missing.
        modified_count: Tracked files reported as modified/added/renamed.
        new_file_count: Files scheduled for addition before the status check.
        commit_message: Message used (or that would be used) for the commit.
        committed: True when the commit command ran successfully.
        pushed_remotes: Push commands that succeeded, in order.
        dry_run: True when committing was disabled.
        error: Error message if a step failed.
    """

    kind: RepoKind
    success: bool
    modified_count: int = 0
    new_file_count: int = 0
    commit_message: str | None = None
    committed: bool = False
    pushed_remotes: list[str] = []
    dry_run: bool = False
    error: str | None = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of synchronizing one database's schema files.

    Attributes:
        database_name: Database whose files were synchronized.
        source_directory: Schema output directory (``None`` if unknown).
        target_directory: Working tree the files were copied into.
        files_processed: Source files compared (excluded files not counted).
        files_copied: Files copied because they were new or changed.
        new_file_paths: Target paths of files absent before the copy.
        excluded_files: Source file names skipped by artifact prefix.
        failed_files: Source file names that could not be copied.
        repo_updates: One result per enabled VCS kind.
        success: Whether the database was synchronized.
        error: Error message if the database could not be synchronized.
    """

    database_name: str
    source_directory: Path | None = None
    target_directory: Path | None = None
    files_processed: int = 0
    files_copied: int = 0
    new_file_paths: list[Path] = []
    excluded_files: list[str] = []
    failed_files: list[str] = []
    repo_updates: list[RepoUpdateResult] = []
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def modified_tracked_count(self) -> int:
        """Largest modified count reported by any repository."""
        return max((r.modified_count for r in self.repo_updates), default=0)


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        destination: Root directory files were synchronized into.
        results: One result per database attempted.
        success: False when a fatal configuration error aborted the run.
        error: The fatal error message, if any.
        started_at: ISO 8601 timestamp when sync started.
        completed_at: ISO 8601 timestamp when sync completed.
    """

    destination: Path
    results: list[SyncResult] = []
    success: bool = True
    error: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def files_copied(self) -> int:
        return sum(r.files_copied for r in self.results)

    @property
    def failed(self) -> list[SyncResult]:
        """Databases that could not be synchronized."""
        return [r for r in self.results if not r.success]

    @property
    def repo_failures(self) -> list[RepoUpdateResult]:
        return [
            u for r in self.results for u in r.repo_updates if not u.success
        ]

    def summary(self) -> str:
        """Format a short human-readable summary of the sync run.

        Returns:
            Multi-line summary string with counts.
        """
        new_files = sum(len(r.new_file_paths) for r in self.results)
        lines = [
            f"Sync report for '{self.destination}'"
            + ("" if self.success else " (FAILED)"),
            f"  Databases:      {len(self.results)}",
            f"  Files copied:   {self.files_copied}",
            f"  New files:      {new_files}",
            f"  Failed DBs:     {len(self.failed)}",
            f"  Repo failures:  {len(self.repo_failures)}",
        ]
        return "\n".join(lines)
