"""Synchronous progress notifications.

The sync pipeline reports ``(task description, percent complete)`` pairs
for the overall run and for the current subtask.  A ``ProgressReporter``
logs description changes and forwards every event to an optional
callback on the calling thread.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


def _clamp(percent: float) -> float:
    return min(max(float(percent), 0.0), 100.0)


class ProgressReporter:
    """Track and publish progress for a sync run.

    Args:
        callback: Receives ``(description, percent)`` for overall progress.
        subtask_callback: Receives ``(description, percent)`` for subtasks.
    """

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        subtask_callback: ProgressCallback | None = None,
    ) -> None:
        self.callback = callback
        self.subtask_callback = subtask_callback
        self.description = ""
        self.percent = 0.0
        self.subtask_description = ""
        self.subtask_percent = 0.0

    def reset(self, description: str) -> None:
        """Start a new run at 0 percent."""
        self.description = ""
        self.update(description, 0.0)

    def update(self, description: str, percent: float | None = None) -> None:
        """Report overall progress; *percent* defaults to the last value."""
        if percent is not None:
            self.percent = _clamp(percent)
        if description != self.description:
            self.description = description
            _log(description, self.percent)
        if self.callback is not None:
            self.callback(description, self.percent)

    def update_subtask(self, description: str, percent: float) -> None:
        """Report progress within the current task."""
        self.subtask_percent = _clamp(percent)
        if description != self.subtask_description:
            self.subtask_description = description
            _log(description, self.subtask_percent)
        if self.subtask_callback is not None:
            self.subtask_callback(description, self.subtask_percent)


def _log(description: str, percent: float) -> None:
    text = description.replace("\n", "; ")
    if percent > 0:
        logger.info("%s (%.1f%% complete)", text, percent)
    else:
        logger.info("%s", text)
