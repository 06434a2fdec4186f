"""Shared pytest fixtures for db-schema-sync tests."""

import sys
from datetime import date
from pathlib import Path

import pytest

from db_schema_sync.config_schema import ReposConfig, default_repo_tools
from db_schema_sync.sync.models import CommandOutcome, CommandResult


class FakeExecutor:
    """ProcessExecutor replacement that records calls.

    Responses are looked up by the first rendered argument (``add``,
    ``status``, ``commit``, ``push``...).  A response may be a
    ``CommandResult`` or a list of them consumed in order.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def run(self, executable, arguments, working_directory, timeout_seconds):
        self.calls.append(
            {
                "executable": Path(executable),
                "arguments": list(arguments),
                "cwd": Path(working_directory),
                "timeout": timeout_seconds,
            }
        )
        key = arguments[0] if arguments else ""
        response = self.responses.get(key)
        if isinstance(response, list):
            response = response.pop(0) if response else None
        if response is None:
            return ok()
        return response

    def commands(self):
        """Argument lists of every call, in order."""
        return [call["arguments"] for call in self.calls]


def ok(stdout="", stderr="", return_code=0):
    """A completed command result."""
    return CommandResult(
        stdout=stdout,
        stderr=stderr,
        outcome=CommandOutcome.COMPLETED,
        return_code=return_code,
    )


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def repos_on_python():
    """Client table whose executables exist (the running interpreter)."""
    raw = default_repo_tools()
    for entry in raw.values():
        entry["executable"] = sys.executable
    return ReposConfig(**raw)


@pytest.fixture
def fixed_clock():
    return lambda: date(2024, 1, 15)


@pytest.fixture
def write_file():
    """Factory writing text files, creating parent directories."""

    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
