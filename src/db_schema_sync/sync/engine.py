"""Core sync engine that copies exported schema files into working trees.

The ``SyncOrchestrator`` ties together the comparator and the commit
planner into a complete sync run.  For each database it:

1. Resolves the target directory under the destination root.
2. Validates the source and target directories.
3. Compares every source file with its copy, skipping artifact files.
4. Copies new and changed files, remembering which ones are new.
5. Runs the commit planner once per enabled VCS kind.
6. Builds and returns a ``SyncReport``.

Error handling is per-file for compares and copies: a single file failure
does not abort the pass.  A missing source directory, or a source equal
to its target, aborts the whole run; databases already synchronized keep
their results.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Mapping

from ..errors import ConfigurationError, format_error
from ..file_handler import copy_file, list_files
from .comparator import FileComparator
from .models import (
    DifferenceOutcome,
    SyncReport,
    SyncResult,
    SyncTask,
)
from .planner import CommitPlanner
from .progress import ProgressReporter

if TYPE_CHECKING:
    from ..config_schema import SyncConfig

logger = logging.getLogger(__name__)


def resolve_target_directory(
    destination_root: Path,
    database_name: str,
    database_count: int,
    directory_per_database: bool,
) -> Path:
    """Return where *database_name*'s files are synchronized to.

    Databases get their own subdirectory when more than one is being
    synchronized or when the per-database policy is set.
    """
    if database_count > 1 or directory_per_database:
        return destination_root / database_name
    return destination_root


class SyncOrchestrator:
    """Synchronize one or more databases' schema files.

    Args:
        config: Sync settings (defaults to ``SyncConfig()``).
        planner: Commit planner; built from *config* when omitted.
        comparator: File comparator.
        progress: Receives progress notifications.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        planner: CommitPlanner | None = None,
        comparator: FileComparator | None = None,
        progress: ProgressReporter | None = None,
    ) -> None:
        if config is None:
            from ..config_schema import SyncConfig

            config = SyncConfig()
        self.config = config
        self.progress = progress or ProgressReporter()
        self.planner = planner or CommitPlanner(
            commit_enabled=config.commit, progress=self.progress
        )
        self.comparator = comparator or FileComparator()
        self._exclude_prefixes = tuple(
            prefix.lower() for prefix in config.exclude_prefixes
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def plan_tasks(
        self,
        output_directories: Mapping[str, Path | str | None],
        destination_root: Path | str,
    ) -> list[SyncTask]:
        """Build one ``SyncTask`` per database with a known output directory."""
        root = Path(destination_root)
        count = len(output_directories)
        return [
            SyncTask(
                database_name=name,
                source_directory=Path(source),
                target_directory=resolve_target_directory(
                    root,
                    name,
                    count,
                    self.config.create_directory_for_each_db,
                ),
            )
            for name, source in output_directories.items()
            if source
        ]

    def synchronize(
        self,
        output_directories: Mapping[str, Path | str | None],
        destination_root: Path | str,
    ) -> SyncReport:
        """Synchronize every database's schema output into *destination_root*.

        Args:
            output_directories: Database name to schema output directory.
                Databases mapped to ``None`` or ``""`` are reported and skipped.
            destination_root: Root of the version-controlled working trees.

        Returns:
            A ``SyncReport``; ``success`` is False when the run was aborted.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        start = time.monotonic()
        results: list[SyncResult] = []

        def _report(success: bool = True, error: str | None = None) -> SyncReport:
            return SyncReport(
                destination=Path(destination_root or "."),
                results=results,
                success=success,
                error=error,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc).isoformat(),
            )

        if not destination_root or not str(destination_root).strip():
            error = "Sync directory must be defined"
            logger.error(format_error("configuration", error))
            return _report(False, error)

        if not output_directories:
            error = "No databases to synchronize"
            logger.error(format_error("configuration", error))
            return _report(False, error)

        self.progress.reset(f"Synchronizing with {destination_root}")

        include_name = len(output_directories) > 1
        tasks = {
            task.database_name: task
            for task in self.plan_tasks(output_directories, destination_root)
        }

        for index, database_name in enumerate(output_directories):
            task = tasks.get(database_name)
            if task is None:
                error = (
                    f"Schema output directory was not reported for "
                    f"{database_name}; unable to synchronize"
                )
                logger.error(error)
                results.append(
                    SyncResult(
                        database_name=database_name,
                        success=False,
                        error=error,
                    )
                )
                continue

            self.progress.update(
                f"Synchronizing database {database_name}",
                index / len(output_directories) * 100,
            )

            try:
                result = self.sync_database(
                    task, database_name if include_name else ""
                )
            except ConfigurationError as exc:
                logger.error(format_error("configuration", str(exc)))
                results.append(
                    SyncResult(
                        database_name=database_name,
                        source_directory=task.source_directory,
                        target_directory=task.target_directory,
                        success=False,
                        error=str(exc),
                    )
                )
                return _report(False, str(exc))
            except Exception as exc:
                logger.exception("Error synchronizing %s", database_name)
                results.append(
                    SyncResult(
                        database_name=database_name,
                        source_directory=task.source_directory,
                        target_directory=task.target_directory,
                        success=False,
                        error=str(exc),
                    )
                )
                return _report(False, str(exc))

            results.append(result)

        if self.config.show_stats:
            logger.info(
                "Synchronized schema files in %.1f seconds",
                time.monotonic() - start,
            )

        return _report()

    # ------------------------------------------------------------------
    # Per-database sync
    # ------------------------------------------------------------------

    def sync_database(
        self, task: SyncTask, commit_message_suffix: str = ""
    ) -> SyncResult:
        """Copy one database's changed files and update its repositories.

        Raises:
            ConfigurationError: The source directory is missing or is the
                same directory as the target.
        """
        source = task.source_directory
        target = task.target_directory

        if not source.is_dir():
            raise ConfigurationError(
                f"Source directory not found; cannot synchronize: {source}"
            )

        if source.resolve() == target.resolve():
            raise ConfigurationError(
                "Sync directory is identical to the schema output "
                f"directory; cannot synchronize: {source}"
            )

        if not target.exists():
            logger.info(
                "Creating target directory for synchronization: %s", target
            )
            target.mkdir(parents=True, exist_ok=True)

        source_files = list_files(source)
        files_processed = 0
        files_copied = 0
        new_file_paths: list[Path] = []
        excluded: list[str] = []
        failed: list[str] = []

        for index, source_file in enumerate(source_files):
            if self.is_excluded(source_file.name):
                logger.info(
                    "Skipping %s object %s",
                    task.database_name,
                    source_file.name,
                )
                excluded.append(source_file.name)
                continue

            files_processed += 1
            target_file = target / source_file.name
            differs, reason = self._compare(source_file, target_file)
            if not differs:
                continue

            percent = index / len(source_files) * 100
            if reason == DifferenceOutcome.NEW_FILE:
                self.progress.update_subtask(
                    f"  Copying new file {source_file.name}", percent
                )
            else:
                self.progress.update_subtask(
                    f"  Copying changed file {source_file.name}", percent
                )

            try:
                copy_file(source_file, target_file)
            except OSError as exc:
                logger.error(
                    "Error copying %s to %s: %s", source_file, target_file, exc
                )
                failed.append(source_file.name)
                continue

            files_copied += 1
            if reason == DifferenceOutcome.NEW_FILE:
                new_file_paths.append(target_file)

        repo_updates = [
            self.planner.plan(
                kind,
                target,
                files_copied,
                new_file_paths,
                commit_message_suffix=commit_message_suffix,
            )
            for kind in self.config.enabled_repos
        ]

        return SyncResult(
            database_name=task.database_name,
            source_directory=source,
            target_directory=target,
            files_processed=files_processed,
            files_copied=files_copied,
            new_file_paths=new_file_paths,
            excluded_files=excluded,
            failed_files=failed,
            repo_updates=repo_updates,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def is_excluded(self, file_name: str) -> bool:
        """True for generated or temporary artifacts that are never synced."""
        return file_name.lower().startswith(self._exclude_prefixes)

    def _compare(
        self, source_file: Path, target_file: Path
    ) -> tuple[bool, DifferenceOutcome]:
        try:
            return self.comparator.compare(source_file, target_file)
        except Exception as exc:
            logger.error(
                "Error comparing %s: %s; treating as changed",
                source_file.name,
                exc,
            )
            if target_file.exists():
                return True, DifferenceOutcome.CHANGED
            return True, DifferenceOutcome.NEW_FILE
