"""Unified configuration schema for db_schema_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for synchronization, the VCS client table, and logging.

Usage:
    from db_schema_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    git = unified.repos.for_kind(RepoKind.GIT)
"""

from __future__ import annotations

import logging
import os
from typing import Any

from pydantic import BaseModel, Field

from .sync.models import RepoKind

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PREFIXES = [
    "x_",
    "t_tmp_",
    "t_CandidateModsSeqWork_",
    "t_CandidateSeqWork_",
]

DEFAULT_DB_SUBDIRECTORY_PREFIX = "DBSchema__"


# ---------------------------------------------------------------------------
# VCS client table
# ---------------------------------------------------------------------------


class RepoToolConfig(BaseModel):
    """How to drive one VCS client.

    Argument templates may contain ``{path}`` (file being added),
    ``{target}`` (working tree) and ``{message}`` (commit message).
    """

    kind: RepoKind
    executable: str = Field(description="Executable path or name on PATH")
    install_hint: str = Field(
        default="", description="Where to obtain the client"
    )
    add_args: list[str] = Field(default_factory=lambda: ["add", "{path}"])
    status_args: list[str] = Field(
        default_factory=lambda: ["status", "{target}"]
    )
    commit_args: list[str] = Field(
        default_factory=lambda: [
            "commit",
            "{target}",
            "--message",
            "{message}",
        ]
    )
    push_commands: list[list[str]] = Field(default_factory=list)
    add_timeout: int = Field(default=30, ge=1)
    status_timeout: int = Field(default=300, ge=1)
    commit_timeout: int = Field(default=120, ge=1)
    push_timeout: int = Field(default=300, ge=1)
    failure_line_prefixes: list[str] = Field(
        default_factory=list,
        description="A stderr line starting with one of these means failure",
    )
    failure_substrings: list[str] = Field(
        default_factory=list,
        description="Stderr containing one of these means failure",
    )

    model_config = {"frozen": True}


def _default_executable(windows_path: str, name: str) -> str:
    return windows_path if os.name == "nt" else name


def default_repo_tools() -> dict[str, dict[str, Any]]:
    """Raw defaults for the three supported clients."""
    return {
        "svn": {
            "kind": "svn",
            "executable": _default_executable(
                r"C:\Program Files\TortoiseSVN\bin\svn.exe", "svn"
            ),
            "install_hint": (
                "Installed with 64-bit Tortoise SVN, available at "
                "https://tortoisesvn.net/downloads.html"
            ),
            "failure_substrings": ["Commit failed"],
        },
        "hg": {
            "kind": "hg",
            "executable": _default_executable(
                r"C:\Program Files\TortoiseHg\hg.exe", "hg"
            ),
            "install_hint": (
                "Installed with 64-bit Tortoise Hg, available at "
                "https://tortoisehg.bitbucket.io/download/index.html"
            ),
            "push_commands": [["push"]],
        },
        "git": {
            "kind": "git",
            "executable": _default_executable(
                r"C:\Program Files\Git\bin\git.exe", "git"
            ),
            "install_hint": (
                "Installed with 64-bit Git for Windows, available at "
                "https://git-scm.com/download/win"
            ),
            "status_args": ["status", "-s", "-u"],
            "push_commands": [["push", "origin"], ["push", "GitHub"]],
            "failure_line_prefixes": ["fatal"],
        },
    }


class ReposConfig(BaseModel):
    """The VCS client table, one entry per supported kind."""

    svn: RepoToolConfig
    hg: RepoToolConfig
    git: RepoToolConfig

    model_config = {"frozen": True}

    def for_kind(self, kind: RepoKind) -> RepoToolConfig:
        return getattr(self, RepoKind(kind).value)


def _default_repos() -> ReposConfig:
    return ReposConfig(**default_repo_tools())


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SyncConfig(BaseModel):
    """Synchronization settings.

    All fields have defaults so that CLI args and env vars can supply
    them at runtime instead.
    """

    destination: str | None = Field(
        default=None, description="Root of the synchronized working trees"
    )
    enabled: bool = Field(
        default=False, description="Synchronize after exporting"
    )
    create_directory_for_each_db: bool = Field(
        default=True,
        description="Nest each database under its own subdirectory",
    )
    database_subdirectory_prefix: str = Field(
        default=DEFAULT_DB_SUBDIRECTORY_PREFIX,
        description="Prefix of per-database export directories",
    )
    commit: bool = Field(
        default=False, description="Commit and push (otherwise dry run)"
    )
    svn: bool = Field(default=False, description="Update SVN working trees")
    hg: bool = Field(default=False, description="Update Hg working trees")
    git: bool = Field(default=False, description="Update Git working trees")
    exclude_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PREFIXES),
        description="File name prefixes never synchronized",
    )
    show_stats: bool = Field(
        default=False, description="Log elapsed time per pass"
    )

    model_config = {"frozen": True}

    @property
    def enabled_repos(self) -> list[RepoKind]:
        """Enabled VCS kinds, in update order (SVN, Hg, Git)."""
        return [kind for kind in RepoKind if getattr(self, kind.value)]


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    sync: SyncConfig = Field(default_factory=SyncConfig)
    repos: ReposConfig = Field(default_factory=_default_repos)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict | None) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.
    Entries under ``repos`` are merged key by key onto the built-in client
    table, so a config file may override just ``executable``.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    data = dict(raw_data)
    repos = default_repo_tools()
    for name, overrides in (data.get("repos") or {}).items():
        if name not in repos:
            logger.warning("Ignoring unknown repo kind '%s' in config", name)
            continue
        repos[name].update(overrides or {})
        repos[name]["kind"] = name
    data["repos"] = repos

    return UnifiedConfig(**data)
