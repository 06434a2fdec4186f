"""Tests for the core sync engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from db_schema_sync.config_schema import SyncConfig
from db_schema_sync.sync.engine import SyncOrchestrator, resolve_target_directory
from db_schema_sync.sync.models import RepoKind, RepoUpdateResult, SyncTask
from db_schema_sync.sync.planner import CommitPlanner
from db_schema_sync.sync.progress import ProgressReporter

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_config(**overrides: Any) -> SyncConfig:
    return SyncConfig(**overrides)


def _fake_planner() -> MagicMock:
    planner = MagicMock(spec=CommitPlanner)
    planner.plan.side_effect = lambda kind, *args, **kwargs: RepoUpdateResult(
        kind=kind, success=True
    )
    return planner


def _export(tmp_path: Path, name: str, files: dict[str, str]) -> Path:
    directory = tmp_path / "export" / f"DBSchema__{name}"
    directory.mkdir(parents=True, exist_ok=True)
    for file_name, content in files.items():
        (directory / file_name).write_text(content, encoding="utf-8")
    return directory


def _setup(tmp_path: Path, **config_overrides: Any):
    planner = _fake_planner()
    orchestrator = SyncOrchestrator(
        _make_config(**config_overrides), planner=planner
    )
    return orchestrator, planner


# ---------------------------------------------------------------------------
# resolve_target_directory()
# ---------------------------------------------------------------------------


class TestResolveTargetDirectory:
    def test_single_database_flat(self, tmp_path):
        assert resolve_target_directory(tmp_path, "DMS5", 1, False) == tmp_path

    def test_single_database_with_policy(self, tmp_path):
        assert (
            resolve_target_directory(tmp_path, "DMS5", 1, True)
            == tmp_path / "DMS5"
        )

    def test_multiple_databases_always_nested(self, tmp_path):
        assert (
            resolve_target_directory(tmp_path, "DMS5", 2, False)
            == tmp_path / "DMS5"
        )


# ---------------------------------------------------------------------------
# plan_tasks()
# ---------------------------------------------------------------------------


class TestPlanTasks:
    def test_tasks_for_known_directories(self, tmp_path):
        orchestrator, _ = _setup(tmp_path)

        tasks = orchestrator.plan_tasks(
            {"DMS5": tmp_path / "a", "MTS": None, "Ontology": tmp_path / "c"},
            tmp_path / "repo",
        )

        assert tasks == [
            SyncTask(
                database_name="DMS5",
                source_directory=tmp_path / "a",
                target_directory=tmp_path / "repo" / "DMS5",
            ),
            SyncTask(
                database_name="Ontology",
                source_directory=tmp_path / "c",
                target_directory=tmp_path / "repo" / "Ontology",
            ),
        ]


# ---------------------------------------------------------------------------
# Copying
# ---------------------------------------------------------------------------


class TestCopying:
    """New and changed files are copied; unchanged ones are left alone."""

    def test_new_files_copied_and_recorded(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n", "T_B.sql": "b\n"})
        orchestrator, _ = _setup(tmp_path, create_directory_for_each_db=False)
        repo = tmp_path / "repo"

        report = orchestrator.synchronize({"DMS5": source}, repo)

        assert report.success is True
        result = report.results[0]
        assert result.files_copied == 2
        assert result.files_processed == 2
        assert result.new_file_paths == [repo / "T_A.sql", repo / "T_B.sql"]
        assert (repo / "T_A.sql").read_text() == "a\n"

    def test_changed_file_copied_but_not_new(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "new\n", "T_B.sql": "b\n"})
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "T_A.sql").write_text("old content\n")
        (repo / "T_B.sql").write_text("b\n")
        orchestrator, _ = _setup(tmp_path, create_directory_for_each_db=False)

        report = orchestrator.synchronize({"DMS5": source}, repo)

        result = report.results[0]
        assert result.files_copied == 1
        assert result.new_file_paths == []
        assert (repo / "T_A.sql").read_text() == "new\n"

    def test_unchanged_files_not_copied(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "T_A.sql").write_text("a\n")
        orchestrator, _ = _setup(tmp_path, create_directory_for_each_db=False)

        report = orchestrator.synchronize({"DMS5": source}, repo)

        assert report.results[0].files_copied == 0

    def test_target_directory_created(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        orchestrator, _ = _setup(tmp_path)
        repo = tmp_path / "repo"

        orchestrator.synchronize({"DMS5": source}, repo)

        assert (repo / "DMS5" / "T_A.sql").exists()

    def test_copy_failure_logged_and_pass_continues(self, tmp_path, caplog):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n", "T_B.sql": "b\n"})
        orchestrator, _ = _setup(tmp_path, create_directory_for_each_db=False)
        repo = tmp_path / "repo"

        from db_schema_sync.file_handler import copy_file as real_copy

        def flaky_copy(src, dst):
            if src.name == "T_A.sql":
                raise PermissionError("locked")
            return real_copy(src, dst)

        with patch("db_schema_sync.sync.engine.copy_file", side_effect=flaky_copy):
            report = orchestrator.synchronize({"DMS5": source}, repo)

        result = report.results[0]
        assert result.failed_files == ["T_A.sql"]
        assert result.files_copied == 1
        assert result.new_file_paths == [repo / "T_B.sql"]
        assert "locked" in caplog.text

    def test_compare_error_treated_as_needing_copy(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "T_A.sql").write_text("a\n")
        comparator = MagicMock()
        comparator.compare.side_effect = RuntimeError("boom")
        orchestrator = SyncOrchestrator(
            _make_config(create_directory_for_each_db=False),
            planner=_fake_planner(),
            comparator=comparator,
        )

        report = orchestrator.synchronize({"DMS5": source}, repo)

        assert report.results[0].files_copied == 1
        assert report.results[0].new_file_paths == []


# ---------------------------------------------------------------------------
# Exclusions
# ---------------------------------------------------------------------------


class TestExclusions:
    """Artifact files never reach the comparator."""

    def test_artifact_prefixes_skipped(self, tmp_path):
        source = _export(
            tmp_path,
            "DMS5",
            {
                "x_Old.sql": "x\n",
                "t_tmp_Work.sql": "t\n",
                "T_CandidateModsSeqWork_1.sql": "c\n",
                "T_CandidateSeqWork_2.sql": "c\n",
                "T_Users.sql": "u\n",
            },
        )
        comparator = MagicMock(wraps=SyncOrchestrator().comparator)
        orchestrator = SyncOrchestrator(
            _make_config(create_directory_for_each_db=False),
            planner=_fake_planner(),
            comparator=comparator,
        )
        repo = tmp_path / "repo"

        report = orchestrator.synchronize({"DMS5": source}, repo)

        result = report.results[0]
        assert result.files_processed == 1
        assert sorted(result.excluded_files) == sorted(
            [
                "x_Old.sql",
                "t_tmp_Work.sql",
                "T_CandidateModsSeqWork_1.sql",
                "T_CandidateSeqWork_2.sql",
            ]
        )
        assert [c.args[0].name for c in comparator.compare.call_args_list] == [
            "T_Users.sql"
        ]
        assert sorted(p.name for p in repo.iterdir()) == ["T_Users.sql"]

    @pytest.mark.parametrize(
        "name,excluded",
        [
            ("X_Upper.sql", True),
            ("T_TMP_Upper.sql", True),
            ("T_Users.sql", False),
            ("tx_Users.sql", False),
        ],
    )
    def test_is_excluded_case_insensitive(self, name, excluded):
        assert SyncOrchestrator().is_excluded(name) is excluded

    def test_custom_prefixes(self):
        orchestrator = SyncOrchestrator(_make_config(exclude_prefixes=["zz_"]))
        assert orchestrator.is_excluded("zz_scratch.sql")
        assert not orchestrator.is_excluded("x_Old.sql")


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class TestConfigurationErrors:
    def test_missing_source_fails_without_copying(self, tmp_path):
        orchestrator, planner = _setup(tmp_path, git=True)
        repo = tmp_path / "repo"

        report = orchestrator.synchronize({"DMS5": tmp_path / "missing"}, repo)

        assert report.success is False
        assert report.files_copied == 0
        assert "Source directory not found" in report.error
        planner.plan.assert_not_called()

    def test_source_equal_to_target_fails(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        orchestrator, _ = _setup(tmp_path, create_directory_for_each_db=False)

        report = orchestrator.synchronize({"DMS5": source}, source)

        assert report.success is False
        assert "identical" in report.error

    def test_earlier_results_kept_after_abort(self, tmp_path):
        first = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        orchestrator, _ = _setup(tmp_path)
        repo = tmp_path / "repo"

        report = orchestrator.synchronize(
            {"DMS5": first, "MTS": tmp_path / "missing", "Other": first},
            repo,
        )

        assert report.success is False
        assert [r.database_name for r in report.results] == ["DMS5", "MTS"]
        assert report.results[0].success is True
        assert report.results[0].files_copied == 1
        assert report.results[1].success is False

    def test_empty_destination(self, tmp_path):
        orchestrator, _ = _setup(tmp_path)
        report = orchestrator.synchronize({"DMS5": tmp_path}, "")

        assert report.success is False
        assert "Sync directory" in report.error

    def test_no_databases(self, tmp_path):
        orchestrator, _ = _setup(tmp_path)
        report = orchestrator.synchronize({}, tmp_path)

        assert report.success is False

    def test_unreported_directory_skipped(self, tmp_path, caplog):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        orchestrator, _ = _setup(tmp_path)

        report = orchestrator.synchronize(
            {"MTS": None, "DMS5": source}, tmp_path / "repo"
        )

        assert report.success is True
        assert report.results[0].database_name == "MTS"
        assert report.results[0].success is False
        assert report.results[1].files_copied == 1
        assert "was not reported for MTS" in caplog.text


# ---------------------------------------------------------------------------
# Repository updates
# ---------------------------------------------------------------------------


class TestRepositoryUpdates:
    """The planner runs once per enabled kind, in SVN, Hg, Git order."""

    def test_planner_called_per_enabled_kind(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        orchestrator, planner = _setup(
            tmp_path, svn=True, git=True, create_directory_for_each_db=False
        )
        repo = tmp_path / "repo"

        report = orchestrator.synchronize({"DMS5": source}, repo)

        kinds = [c.args[0] for c in planner.plan.call_args_list]
        assert kinds == [RepoKind.SVN, RepoKind.GIT]
        first = planner.plan.call_args_list[0]
        assert first.args[1:] == (repo, 1, [repo / "T_A.sql"])
        assert first.kwargs == {"commit_message_suffix": ""}
        assert [u.kind for u in report.results[0].repo_updates] == [
            RepoKind.SVN,
            RepoKind.GIT,
        ]

    def test_no_kinds_enabled(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        orchestrator, planner = _setup(tmp_path)

        orchestrator.synchronize({"DMS5": source}, tmp_path / "repo")

        planner.plan.assert_not_called()

    def test_database_name_suffix_with_several_databases(self, tmp_path):
        dms = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        mts = _export(tmp_path, "MTS", {"T_B.sql": "b\n"})
        orchestrator, planner = _setup(tmp_path, git=True)

        orchestrator.synchronize({"DMS5": dms, "MTS": mts}, tmp_path / "repo")

        suffixes = [
            c.kwargs["commit_message_suffix"]
            for c in planner.plan.call_args_list
        ]
        assert suffixes == ["DMS5", "MTS"]

    def test_repo_failure_does_not_abort_run(self, tmp_path):
        dms = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        mts = _export(tmp_path, "MTS", {"T_B.sql": "b\n"})
        orchestrator, planner = _setup(tmp_path, git=True)
        planner.plan.side_effect = lambda kind, *a, **kw: RepoUpdateResult(
            kind=kind, success=False, error="push failed"
        )

        report = orchestrator.synchronize(
            {"DMS5": dms, "MTS": mts}, tmp_path / "repo"
        )

        assert report.success is True
        assert len(report.results) == 2
        assert len(report.repo_failures) == 2


# ---------------------------------------------------------------------------
# Progress and stats
# ---------------------------------------------------------------------------


class TestProgress:
    def test_copy_events_reported(self, tmp_path):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        repo = tmp_path / "repo"
        repo.mkdir()
        (repo / "T_B.sql").write_text("old\n")
        (source / "T_B.sql").write_text("new content\n")
        events: list[str] = []
        progress = ProgressReporter(
            subtask_callback=lambda description, percent: events.append(
                description
            )
        )
        orchestrator = SyncOrchestrator(
            _make_config(create_directory_for_each_db=False),
            planner=_fake_planner(),
            progress=progress,
        )

        orchestrator.synchronize({"DMS5": source}, repo)

        assert events == [
            "  Copying new file T_A.sql",
            "  Copying changed file T_B.sql",
        ]

    def test_show_stats_logs_elapsed_time(self, tmp_path, caplog):
        source = _export(tmp_path, "DMS5", {"T_A.sql": "a\n"})
        orchestrator, _ = _setup(tmp_path, show_stats=True)

        with caplog.at_level(logging.INFO):
            orchestrator.synchronize({"DMS5": source}, tmp_path / "repo")

        assert "Synchronized schema files in" in caplog.text
