"""Schema file synchronization pipeline.

Public API for copying exported schema files into version-controlled
working trees and committing the genuine changes.

Modules:

- ``engine``     -- ``SyncOrchestrator``: orchestrates a full sync run.
- ``comparator`` -- ``FileComparator``: content-aware file differencing.
- ``executor``   -- ``ProcessExecutor``: bounded external process runs.
- ``status``     -- Per-VCS status output parsers.
- ``planner``    -- ``CommitPlanner``: add/status/commit/push per VCS.
- ``progress``   -- ``ProgressReporter``: synchronous progress callbacks.
- ``models``     -- Core data contracts.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from db_schema_sync.config_schema import SyncConfig
    from db_schema_sync.sync import SyncOrchestrator, format_sync_report

    config = SyncConfig(git=True, commit=False)
    orchestrator = SyncOrchestrator(config)

    report = orchestrator.synchronize(
        {"DMS5": Path("exports/DBSchema__DMS5")},
        Path("repos/schema"),
    )
    print(format_sync_report(report))
"""

from .comparator import FileComparator
from .engine import SyncOrchestrator, resolve_target_directory
from .executor import ProcessExecutor
from .models import (
    ChangeKind,
    CommandOutcome,
    CommandResult,
    DifferenceOutcome,
    RepoKind,
    RepoUpdateResult,
    StatusEntry,
    SyncReport,
    SyncResult,
    SyncTask,
)
from .planner import CommitPlanner, build_commit_message
from .progress import ProgressReporter
from .reporter import format_sync_report, report_to_json
from .status import count_modified, get_status_parser

__all__ = [
    "ChangeKind",
    "CommandOutcome",
    "CommandResult",
    "CommitPlanner",
    "DifferenceOutcome",
    "FileComparator",
    "ProcessExecutor",
    "ProgressReporter",
    "RepoKind",
    "RepoUpdateResult",
    "StatusEntry",
    "SyncOrchestrator",
    "SyncReport",
    "SyncResult",
    "SyncTask",
    "build_commit_message",
    "count_modified",
    "format_sync_report",
    "get_status_parser",
    "report_to_json",
    "resolve_target_directory",
]
