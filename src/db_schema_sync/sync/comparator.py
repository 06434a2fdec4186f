"""Content-aware comparison of schema files.

Schema exports regenerate every file on each run, so a plain byte
comparison would flag files whose only change is cosmetic.  Two families
of files get override rules:

* **DB definition files** (``DBDefinition*``): ``( NAME = ...`` lines carry
  ``SIZE = ...`` fields that drift with the database's growth.  Size fields
  are ignored; every other field must match.
* **Date-ignore data files**: ``INSERT INTO`` lines carry timestamps such as
  ``'1/15/2024 3:04:05 PM'``.  Both lines are truncated at the first
  timestamp before comparing.

Files in either family skip the fast length check since they may differ
in length while being equal under these rules.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..errors import ReadError
from ..file_handler import read_lines
from .models import DifferenceOutcome

logger = logging.getLogger(__name__)

DB_DEFINITION_FILE_PREFIX = "DBDefinition"

DEFAULT_DATE_IGNORE_FILES: frozenset[str] = frozenset(
    {
        "T_Process_Step_Control_Data.sql",
        "T_Signatures_Data.sql",
        "T_MTS_Peptide_DBs_Data.sql",
        "T_MTS_MT_DBs_Data.sql",
        "T_Processor_Tool_Data.sql",
        "T_Processor_Tool_Group_Details_Data.sql",
    }
)

DATE_PATTERN = re.compile(
    r"'\d+/\d+/\d+ \d+:\d+:\d+ [AP]M'", re.IGNORECASE
)

_NAME_LINE_PREFIX = "( NAME ="
_INSERT_PREFIX = "INSERT INTO "


class FileComparator:
    """Decide whether a source file differs from its synchronized copy.

    Args:
        db_definition_prefix: File name prefix of DB definition files.
        date_ignore_files: File names (case-insensitive) whose
            ``INSERT INTO`` timestamps are ignored.
    """

    def __init__(
        self,
        db_definition_prefix: str = DB_DEFINITION_FILE_PREFIX,
        date_ignore_files: frozenset[str] | set[str] = DEFAULT_DATE_IGNORE_FILES,
    ) -> None:
        self.db_definition_prefix = db_definition_prefix
        self.date_ignore_files = frozenset(
            name.lower() for name in date_ignore_files
        )

    def compare(
        self, base: Path, candidate: Path
    ) -> tuple[bool, DifferenceOutcome]:
        """Compare *base* (the fresh export) against *candidate* (the copy).

        Returns:
            ``(differs, reason)``.  Read failures are logged and reported
            as ``(True, CHANGED)`` so the file gets copied.
        """
        try:
            return self._compare(base, candidate)
        except ReadError as exc:
            logger.error("%s; treating %s as changed", exc, base.name)
            return True, DifferenceOutcome.CHANGED

    def is_db_definition_file(self, name: str) -> bool:
        return name.startswith(self.db_definition_prefix)

    def is_date_ignore_file(self, name: str) -> bool:
        return name.lower() in self.date_ignore_files

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compare(
        self, base: Path, candidate: Path
    ) -> tuple[bool, DifferenceOutcome]:
        if not base.exists():
            return False, DifferenceOutcome.UNCHANGED

        if not candidate.exists():
            return True, DifferenceOutcome.NEW_FILE

        db_definition = self.is_db_definition_file(base.name)
        ignore_dates = False

        if not db_definition and self.is_date_ignore_file(base.name):
            logger.debug("Ignoring date values in file %s", base.name)
            ignore_dates = True

        if not db_definition and not ignore_dates:
            if _file_size(base) != _file_size(candidate):
                return True, DifferenceOutcome.CHANGED

        base_lines = _read(base)
        candidate_lines = _read(candidate)

        for index, base_line in enumerate(base_lines):
            if index >= len(candidate_lines):
                return True, DifferenceOutcome.CHANGED

            candidate_line = candidate_lines[index]
            if base_line == candidate_line:
                continue

            if db_definition and _definition_lines_match(
                base_line, candidate_line
            ):
                continue

            if ignore_dates and _insert_lines_match(
                base_line, candidate_line
            ):
                continue

            return True, DifferenceOutcome.CHANGED

        return False, DifferenceOutcome.UNCHANGED


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError as exc:
        raise ReadError(f"Cannot stat {path}: {exc}") from exc


def _read(path: Path) -> list[str]:
    try:
        return read_lines(path)
    except OSError as exc:
        raise ReadError(f"Cannot read {path}: {exc}") from exc


def _definition_lines_match(base_line: str, candidate_line: str) -> bool:
    """Compare ``( NAME = ...`` lines field by field, ignoring SIZE fields."""
    if not (
        base_line.startswith(_NAME_LINE_PREFIX)
        and candidate_line.startswith(_NAME_LINE_PREFIX)
    ):
        return False

    base_fields = base_line.split(",")
    candidate_fields = candidate_line.split(",")
    if len(base_fields) != len(candidate_fields):
        return False

    for base_field, candidate_field in zip(base_fields, candidate_fields):
        base_value = base_field.strip()
        candidate_value = candidate_field.strip()
        if base_value.startswith("SIZE") and candidate_value.startswith(
            "SIZE"
        ):
            continue
        if base_value != candidate_value:
            return False
    return True


def _insert_lines_match(base_line: str, candidate_line: str) -> bool:
    """Compare ``INSERT INTO`` lines up to their first embedded timestamp."""
    if not (
        base_line.startswith(_INSERT_PREFIX)
        and candidate_line.startswith(_INSERT_PREFIX)
    ):
        return False

    base_match = DATE_PATTERN.search(base_line)
    candidate_match = DATE_PATTERN.search(candidate_line)
    if base_match is None or candidate_match is None:
        return False

    return (
        base_line[: base_match.start()]
        == candidate_line[: candidate_match.start()]
    )
