"""Append-only text logs of per-update rejection statistics."""

from pathlib import Path
from typing import Union

from .outlier.base import RejectionStats

LOG_FILE = "log.txt"
ERROR_FILE = "error.txt"

LOG_HEADER = (
    "#lc #good-lc #odom-consistent-lc #multirobot-lc #good-multirobot-lc "
    "#ldmrk-measurements #good-ldmrk-measurements #error"
)
ERROR_HEADER = "#consistency-error"


class StatsLogger:
    """Writes one line per update to ``log.txt`` and ``error.txt``.

    Files are opened and closed within each call, so no handle outlives a
    single update.
    """

    def __init__(self, folder: Union[str, Path]) -> None:
        """Initialize the logger and truncate both log files.

        Args:
            folder: Folder holding the log files, created if missing.
        """
        self.folder = Path(folder)
        self.reset()

    @property
    def log_path(self) -> Path:
        return self.folder / LOG_FILE

    @property
    def error_path(self) -> Path:
        return self.folder / ERROR_FILE

    def reset(self) -> None:
        """Truncate both files and write their header lines."""
        self.folder.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "w", encoding="utf-8") as f:
            f.write(LOG_HEADER + "\n")
        with open(self.error_path, "w", encoding="utf-8") as f:
            f.write(ERROR_HEADER + "\n")

    def write(self, stats: RejectionStats, error: float) -> None:
        """Append one record.

        Args:
            stats: Rejection statistics after the update.
            error: Total graph error after the update.
        """
        fields = [str(count) for count in stats.counters()] + [f"{error:g}"]
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(" ".join(fields) + "\n")
        with open(self.error_path, "a", encoding="utf-8") as f:
            f.write(" ".join(f"{e:g}" for e in stats.consistency_error) + "\n")
