"""Tests for the rejection statistics logs."""

from robust_pgo.outlier import RejectionStats
from robust_pgo.stats import ERROR_FILE, ERROR_HEADER, LOG_FILE, LOG_HEADER, StatsLogger


class TestStatsLogger:
    """Test StatsLogger class."""

    def test_headers(self, tmp_path) -> None:
        """Test that a new logger creates the folder and both headers."""
        folder = tmp_path / "nested" / "logs"
        StatsLogger(folder)

        assert (folder / LOG_FILE).read_text() == LOG_HEADER + "\n"
        assert (folder / ERROR_FILE).read_text() == ERROR_HEADER + "\n"

    def test_write(self, tmp_path) -> None:
        """Test the record format."""
        stats_logger = StatsLogger(tmp_path)
        stats = RejectionStats(
            lc=4,
            good_lc=3,
            odom_consistent_lc=3,
            multirobot_lc=2,
            good_multirobot_lc=1,
            landmark_measurements=5,
            good_landmark_measurements=4,
            consistency_error=[0.5, 12.0],
        )

        stats_logger.write(stats, 1.25)
        stats_logger.write(RejectionStats(), 0.0)

        log_lines = (tmp_path / LOG_FILE).read_text().splitlines()
        error_lines = (tmp_path / ERROR_FILE).read_text().splitlines()
        assert log_lines[1:] == ["4 3 3 2 1 5 4 1.25", "0 0 0 0 0 0 0 0"]
        assert error_lines[1:] == ["0.5 12", ""]

    def test_reset_truncates(self, tmp_path) -> None:
        """Test that existing logs are truncated."""
        StatsLogger(tmp_path).write(RejectionStats(lc=1), 0.0)

        StatsLogger(tmp_path)

        assert len((tmp_path / LOG_FILE).read_text().splitlines()) == 1
