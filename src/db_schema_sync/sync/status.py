"""Parsers for VCS status output.

Each parser turns the combined output of one client's status command into
a list of ``StatusEntry`` objects, or raises ``RepoNotFoundError`` when the
client reports that the directory is not a working copy.

Expected line shapes::

    Git (status -s -u)   XY path           X = index, Y = worktree
                         ?? new_file.sql
    SVN (status)         MP     path       M = item, P = property column,
                         ?       new.sql   path begins at column 8
    Hg (status)          M path            path begins at column 2
                         ? new.sql
"""

from __future__ import annotations

import textwrap
from pathlib import Path

from ..errors import RepoNotFoundError
from .models import ChangeKind, RepoKind, StatusEntry

_STATUS_CODES: dict[str, ChangeKind] = {
    "M": ChangeKind.MODIFIED,
    "A": ChangeKind.ADDED,
    "R": ChangeKind.RENAMED,
    "?": ChangeKind.UNTRACKED,
    "D": ChangeKind.DELETED,
    "!": ChangeKind.MISSING,
}

_TRACKED_CHANGE_CODES = frozenset("MAR")


class StatusParser:
    """Base contract for per-VCS status parsers.

    Subclasses set ``kind`` and ``minimum_width`` and implement
    ``_is_not_a_repo()`` and ``_parse_line()``.
    """

    kind: RepoKind
    minimum_width: int = 1

    def parse(
        self, output: str, directory: Path | str = ""
    ) -> list[StatusEntry]:
        """Parse raw status *output*.

        Args:
            output: Combined stdout/stderr of the status command.
            directory: Working tree the command ran against (for errors).

        Returns:
            One entry per recognized status line, in output order.

        Raises:
            RepoNotFoundError: The client reported a missing working copy.
        """
        entries: list[StatusEntry] = []
        for line in self._prepare(output).splitlines():
            if self._is_not_a_repo(line.strip()):
                raise RepoNotFoundError(self.kind, directory)
            if not line.strip() or len(line) < self.minimum_width:
                continue
            entry = self._parse_line(line)
            if entry is not None:
                entries.append(entry)
        return entries

    def _prepare(self, output: str) -> str:
        return output

    def _is_not_a_repo(self, line: str) -> bool:
        raise NotImplementedError

    def _parse_line(self, line: str) -> StatusEntry | None:
        raise NotImplementedError


class GitStatusParser(StatusParser):
    """Parse ``git status -s -u`` output."""

    kind = RepoKind.GIT
    minimum_width = 4

    def _is_not_a_repo(self, line: str) -> bool:
        return line.lower().startswith("fatal: not a git repository")

    def _parse_line(self, line: str) -> StatusEntry | None:
        index_status = line[0]
        worktree_status = line[1]
        path = line[3:].strip()

        if index_status == "?":
            change = ChangeKind.UNTRACKED
        elif index_status in _TRACKED_CHANGE_CODES:
            change = _STATUS_CODES[index_status]
        elif worktree_status in _TRACKED_CHANGE_CODES:
            change = _STATUS_CODES[worktree_status]
        else:
            change = _STATUS_CODES.get(
                index_status.strip() or worktree_status, ChangeKind.OTHER
            )

        if change == ChangeKind.RENAMED and " -> " in path:
            path = path.split(" -> ", 1)[1]

        return StatusEntry(path=path, change=change, raw=line)


class SvnStatusParser(StatusParser):
    """Parse ``svn status`` output."""

    kind = RepoKind.SVN
    minimum_width = 8

    def _prepare(self, output: str) -> str:
        # Captured output is sometimes indented as a block.  A blank status
        # column (property-only changes) looks like indentation too, so the
        # block offset is the one that puts every path at column 8.
        offset = _svn_block_offset(output.splitlines())
        if not offset:
            return output
        return "\n".join(line[offset:] for line in output.splitlines())

    def _is_not_a_repo(self, line: str) -> bool:
        # svn 1.7+ reports "svn: E155007: ... is not a working copy"
        return line.startswith("svn:") and "is not a working copy" in line

    def _parse_line(self, line: str) -> StatusEntry | None:
        item_status = line[0]
        property_status = line[1]
        path = line[7:].strip()

        if item_status in _TRACKED_CHANGE_CODES:
            change = _STATUS_CODES[item_status]
        elif property_status == "M":
            change = ChangeKind.PROPERTY_MODIFIED
        else:
            change = _STATUS_CODES.get(item_status, ChangeKind.OTHER)

        return StatusEntry(path=path, change=change, raw=line)


class HgStatusParser(StatusParser):
    """Parse ``hg status`` output."""

    kind = RepoKind.HG
    minimum_width = 3

    def _prepare(self, output: str) -> str:
        return textwrap.dedent(output)

    def _is_not_a_repo(self, line: str) -> bool:
        return line.startswith("abort: no repository found in")

    def _parse_line(self, line: str) -> StatusEntry | None:
        status = line[0]
        path = line[2:].strip()
        change = _STATUS_CODES.get(status, ChangeKind.OTHER)
        return StatusEntry(path=path, change=change, raw=line)


_PARSERS: dict[RepoKind, type[StatusParser]] = {
    RepoKind.GIT: GitStatusParser,
    RepoKind.SVN: SvnStatusParser,
    RepoKind.HG: HgStatusParser,
}


def get_status_parser(kind: RepoKind) -> StatusParser:
    """Return the status parser for *kind*."""
    return _PARSERS[RepoKind(kind)]()


def count_modified(entries: list[StatusEntry]) -> int:
    """Count tracked files that are modified, added, or renamed."""
    return sum(1 for entry in entries if entry.counts_as_modified)


def _svn_block_offset(lines: list[str]) -> int:
    """Return the indentation shared by an ``svn status`` block.

    Candidate offsets run from 0 up to the common leading whitespace; the
    first one that leaves a space at column 7 and a path at column 8 on
    every status line wins.  Falls back to the common leading whitespace.
    """
    content = [line for line in lines if line.strip()]
    if not content:
        return 0
    common = min(len(line) - len(line.lstrip(" ")) for line in content)
    for offset in range(common + 1):
        status_lines = [line for line in content if len(line) > offset + 8]
        if status_lines and all(
            line[offset + 7] == " " and line[offset + 8] != " "
            for line in status_lines
        ):
            return offset
    return common
