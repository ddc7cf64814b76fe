"""
Per-file journal of what the run did, with a summary report at the end.
"""

from __future__ import annotations

import enum
from collections import Counter

from loguru import logger


class Action(enum.Enum):
    UPLOADED = "Uploaded"
    UPGRADED = "Server's asset upgraded"
    SERVER_DUPLICATE = "Server has same photo"
    LOCAL_DUPLICATE = "File duplicated in the input"
    SERVER_BETTER = "Server's asset is better"
    NOT_SELECTED = "File not selected"
    ALBUM = "Added to an album"
    STACKED = "Stacked"
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    SERVER_ERROR = "Server error"
    UNDECIDED = "Needs manual check"


_LEVELS = {
    Action.ERROR: "ERROR",
    Action.SERVER_ERROR: "ERROR",
    Action.WARNING: "WARNING",
    Action.UNDECIDED: "WARNING",
    Action.INFO: "DEBUG",
    Action.NOT_SELECTED: "DEBUG",
}


class Journal:
    def __init__(self):
        self.counts: Counter = Counter()

    def add_entry(self, file_name: str, action: Action, *comments: str):
        self.counts[action] += 1
        comment = " ".join(c for c in comments if c)
        level = _LEVELS.get(action, "INFO")
        if comment:
            logger.log(level, "{}: {}: {}", action.value, file_name, comment)
        else:
            logger.log(level, "{}: {}", action.value, file_name)

    def report(self) -> str:
        """
        Build the end-of-run summary, log it, and return it.
        """
        lines = ["Upload report:"]
        width = max(len(a.value) for a in Action)
        for action in Action:
            if action is Action.INFO:
                continue
            lines.append(f"  {action.value:<{width}} : {self.counts.get(action, 0):7d}")
        text = "\n".join(lines)
        logger.info("\n{}", text)
        return text
