"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-sync summary.
- ``format_repo_update`` -- one line describing a repository update.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import RepoUpdateResult, SyncReport

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_repo_update(update: RepoUpdateResult) -> str:
    """Describe one repository update on a single line."""
    name = update.kind.display_name
    if not update.success:
        return f"{name}: FAILED - {update.error}"
    if update.commit_message is None:
        return f"{name}: no changes"
    if update.dry_run:
        return (
            f"{name}: {update.modified_count} modified, "
            f"{update.new_file_count} new; would commit "
            f"'{update.commit_message}'"
        )
    text = f"{name}: committed '{update.commit_message}'"
    if update.pushed_remotes:
        text += " (" + ", ".join(update.pushed_remotes) + ")"
    return text


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Per-database sections list copied files and repository outcomes.
    Excluded artifacts are summarised by count only.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report for '{report.destination}'"
    if not report.success:
        header += " (FAILED)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    new_files = sum(len(r.new_file_paths) for r in report.results)
    lines.append(
        f"Synchronized {len(report.results)} databases: "
        f"{report.files_copied} files copied, {new_files} new, "
        f"{len(report.failed)} failed"
    )
    lines.append("")

    for result in report.results:
        lines.append(f"{result.database_name}:")
        if not result.success:
            lines.append(f"  Error: {result.error}")
            lines.append("")
            continue

        lines.append(f"  Target: {result.target_directory}")
        lines.append(
            f"  Compared {result.files_processed}, "
            f"copied {result.files_copied}"
        )
        if result.new_file_paths:
            lines.append("  New files:")
            for path in result.new_file_paths:
                lines.append(f"    {path.name}")
        if result.failed_files:
            lines.append("  Copy errors:")
            for name in result.failed_files:
                lines.append(f"    {name}")
        if result.excluded_files:
            lines.append(f"  Skipped: {len(result.excluded_files)} files")
        for update in result.repo_updates:
            lines.append(f"  {format_repo_update(update)}")
        lines.append("")

    if report.error:
        lines.append(f"Aborted: {report.error}")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict[str, Any]:
    """Convert a report into a JSON-serialisable dict.

    Args:
        report: The sync report.

    Returns:
        Dict with ``destination``, ``success``, ``summary`` and
        per-database ``results``.
    """
    return {
        "destination": str(report.destination),
        "success": report.success,
        "error": report.error,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "summary": {
            "databases": len(report.results),
            "files_copied": report.files_copied,
            "failed": len(report.failed),
            "repo_failures": len(report.repo_failures),
        },
        "results": [r.model_dump(mode="json") for r in report.results],
    }
