"""Tests for the unified config schema and the build_config() factory."""

import pytest
from pydantic import ValidationError

from db_schema_sync.config_schema import (
    DEFAULT_EXCLUDE_PREFIXES,
    LoggingConfig,
    RepoToolConfig,
    SyncConfig,
    UnifiedConfig,
    build_config,
)
from db_schema_sync.sync.models import RepoKind

# ---------------------------------------------------------------------------
# UnifiedConfig
# ---------------------------------------------------------------------------


class TestUnifiedConfig:
    def test_zero_config_defaults(self):
        config = UnifiedConfig()

        assert config.sync.destination is None
        assert config.sync.commit is False
        assert config.sync.create_directory_for_each_db is True
        assert config.sync.database_subdirectory_prefix == "DBSchema__"
        assert config.sync.exclude_prefixes == DEFAULT_EXCLUDE_PREFIXES
        assert config.logging.level == "INFO"

    def test_frozen(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.sync = SyncConfig(commit=True)


# ---------------------------------------------------------------------------
# Client table
# ---------------------------------------------------------------------------


class TestDefaultRepoTools:
    def test_git_commands(self):
        git = UnifiedConfig().repos.for_kind(RepoKind.GIT)

        assert git.status_args == ["status", "-s", "-u"]
        assert git.push_commands == [["push", "origin"], ["push", "GitHub"]]
        assert git.failure_line_prefixes == ["fatal"]
        assert "git-scm.com" in git.install_hint

    def test_hg_pushes_once(self):
        hg = UnifiedConfig().repos.for_kind(RepoKind.HG)
        assert hg.push_commands == [["push"]]

    def test_svn_never_pushes(self):
        svn = UnifiedConfig().repos.for_kind(RepoKind.SVN)

        assert svn.push_commands == []
        assert svn.failure_substrings == ["Commit failed"]

    def test_step_timeouts(self):
        tool = UnifiedConfig().repos.git
        assert (
            tool.add_timeout,
            tool.status_timeout,
            tool.commit_timeout,
            tool.push_timeout,
        ) == (30, 300, 120, 300)

    def test_for_kind_accepts_string(self):
        assert UnifiedConfig().repos.for_kind("svn").kind == RepoKind.SVN

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            RepoToolConfig(kind="git", executable="git", add_timeout=0)


# ---------------------------------------------------------------------------
# SyncConfig
# ---------------------------------------------------------------------------


class TestSyncConfig:
    def test_enabled_repos_in_update_order(self):
        config = SyncConfig(git=True, svn=True)
        assert config.enabled_repos == [RepoKind.SVN, RepoKind.GIT]

    def test_no_repos_enabled(self):
        assert SyncConfig().enabled_repos == []


# ---------------------------------------------------------------------------
# build_config()
# ---------------------------------------------------------------------------


class TestBuildConfig:
    def test_none_and_empty(self):
        assert build_config(None) == UnifiedConfig()
        assert build_config({}) == UnifiedConfig()

    def test_sections_parsed(self):
        config = build_config(
            {
                "sync": {"destination": "/srv/schema", "git": True},
                "logging": {"level": "DEBUG", "file": "/tmp/sync.log"},
            }
        )

        assert config.sync.destination == "/srv/schema"
        assert config.sync.enabled_repos == [RepoKind.GIT]
        assert config.logging == LoggingConfig(level="DEBUG", file="/tmp/sync.log")

    def test_partial_repo_override_keeps_defaults(self):
        config = build_config({"repos": {"git": {"executable": "/opt/git/bin/git"}}})

        git = config.repos.git
        assert git.executable == "/opt/git/bin/git"
        assert git.push_commands == [["push", "origin"], ["push", "GitHub"]]
        assert config.repos.hg.push_commands == [["push"]]

    def test_push_commands_replaced(self):
        config = build_config({"repos": {"git": {"push_commands": [["push", "origin"]]}}})
        assert config.repos.git.push_commands == [["push", "origin"]]

    def test_unknown_repo_kind_ignored(self, caplog):
        config = build_config({"repos": {"bzr": {"executable": "bzr"}}})

        assert config == UnifiedConfig()
        assert "Ignoring unknown repo kind 'bzr'" in caplog.text

    def test_invalid_value_raises(self):
        with pytest.raises(ValidationError):
            build_config({"sync": {"commit": "sometimes"}})
