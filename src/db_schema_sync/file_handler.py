"""File handler module: encoding-aware reads, line splitting, file copies.

Provides the file I/O infrastructure shared by the comparator and the
sync engine.  All functions are plain synchronous helpers.
"""

import re
import shutil
from pathlib import Path

from charset_normalizer import from_bytes

_LINE_BREAK = re.compile(r"\r\n|\r|\n")

# =============================================================================
# File Read
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def read_lines(path: Path) -> list[str]:
    """Read a text file and split it into lines without terminators.

    Accepts ``\\r\\n``, ``\\r`` and ``\\n`` line breaks.  A trailing line
    break does not produce an extra empty line.
    """
    content, _ = read_file_with_encoding(path)
    return split_lines(content)


def split_lines(content: str) -> list[str]:
    if not content:
        return []
    lines = _LINE_BREAK.split(content)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


# =============================================================================
# Directory listing and copying
# =============================================================================


def list_files(directory: Path) -> list[Path]:
    """Return the regular files directly inside *directory*, sorted by name."""
    return sorted(
        (p for p in directory.iterdir() if p.is_file()),
        key=lambda p: p.name,
    )


def copy_file(source: Path, target: Path) -> int:
    """Copy *source* over *target*, creating parent directories as needed.

    Args:
        source: Existing file to copy.
        target: Destination path; overwritten when it exists.

    Returns:
        Number of bytes copied.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, target)
    return target.stat().st_size
