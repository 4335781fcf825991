"""
Tests for WindowPartitioner.

Tests:
- Full and partial windows
- Skip gaps and bounding rows
- Null window (no holdout)
- Ordering / non-overlap invariants
- Configuration errors
"""
import numpy as np
import pytest

from direct_forecast.config import WindowConfig
from direct_forecast.cross_validation import Window, WindowPartitioner, create_windows, windows_to_frame
from direct_forecast.exceptions import ConfigurationError


def bounds(windows):
    return [(w.start, w.stop) for w in windows]


# =============================================================================
# PARTITIONING
# =============================================================================

class TestPartition:
    """Tests for window generation."""

    def test_full_windows(self):
        """24 rows, length 6, no skip -> 4 full windows."""
        windows = create_windows(24, window_length=6, skip=0)

        assert bounds(windows) == [(0, 6), (6, 12), (12, 18), (18, 24)]
        assert [w.window_id for w in windows] == [1, 2, 3, 4]
        assert not any(w.is_partial for w in windows)

    def test_partial_window_kept(self):
        """24 rows, length 5 -> 4 full windows plus a trailing window of 4."""
        windows = create_windows(24, window_length=5, include_partial_window=True)

        assert bounds(windows) == [(0, 5), (5, 10), (10, 15), (15, 20), (20, 24)]
        assert windows[-1].size == 4
        assert windows[-1].length == 5
        assert windows[-1].is_partial

    def test_partial_window_discarded(self):
        windows = create_windows(24, window_length=5, include_partial_window=False)

        assert bounds(windows) == [(0, 5), (5, 10), (10, 15), (15, 20)]

    def test_skip_leaves_gaps(self):
        windows = create_windows(24, window_length=5, skip=2)

        assert bounds(windows) == [(0, 5), (7, 12), (14, 19), (21, 24)]

    def test_start_and_stop(self):
        windows = create_windows(24, window_length=4, window_start=4, window_stop=16)

        assert bounds(windows) == [(4, 8), (8, 12), (12, 16)]

    @pytest.mark.parametrize("length,skip", [(1, 0), (3, 1), (5, 2), (7, 0), (6, 3)])
    def test_windows_plus_gaps_cover_range(self, length, skip):
        """Window sizes plus skip gaps add up to window_stop - window_start."""
        start, stop = 2, 50
        windows = create_windows(60, window_length=length, skip=skip, window_start=start, window_stop=stop)

        starts = [w.start for w in windows]
        assert starts == sorted(starts)
        for prev, cur in zip(windows, windows[1:]):
            assert prev.stop <= cur.start
            assert cur.start - prev.stop == skip

        covered = sum(w.size for w in windows) + skip * (len(windows) - 1)
        assert windows[0].start == start
        assert covered <= stop - start
        # at most a final skip gap remains uncovered
        assert stop - start - covered <= skip

    def test_null_window(self):
        """window_length=0 collapses to a single null window."""
        windows = create_windows(24, window_length=0)

        assert len(windows) == 1
        assert windows[0].is_null
        assert windows[0].size == 0
        assert not windows[0].contains(np.arange(24)).any()

    def test_window_contains(self):
        window = Window(window_id=2, start=6, stop=12, length=6)
        mask = window.contains(np.array([5, 6, 11, 12]))

        np.testing.assert_array_equal(mask, [False, True, True, False])

    def test_windows_to_frame(self):
        frame = windows_to_frame(create_windows(24, window_length=5))

        assert list(frame["window_id"]) == [1, 2, 3, 4, 5]
        assert frame["is_partial"].tolist() == [False] * 4 + [True]

    def test_repr(self):
        partitioner = WindowPartitioner(WindowConfig(window_length=6, skip=2))

        assert "window_length=6" in repr(partitioner)
        assert "skip=2" in repr(partitioner)


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class TestWindowConfigurationErrors:
    """Tests for invalid window settings."""

    def test_negative_length(self):
        with pytest.raises(ConfigurationError, match="window_length"):
            create_windows(24, window_length=-1)

    def test_negative_skip(self):
        with pytest.raises(ConfigurationError, match="skip"):
            create_windows(24, window_length=6, skip=-1)

    def test_start_not_before_stop(self):
        with pytest.raises(ConfigurationError, match="window_start"):
            create_windows(24, window_length=6, window_start=10, window_stop=10)

    def test_start_past_series_end(self):
        with pytest.raises(ConfigurationError, match="window_start"):
            create_windows(24, window_length=6, window_start=30)

    def test_stop_past_series_end(self):
        with pytest.raises(ConfigurationError, match="window_stop"):
            create_windows(24, window_length=6, window_stop=30)

    def test_no_complete_window(self):
        with pytest.raises(ConfigurationError, match="No complete window"):
            create_windows(24, window_length=30, include_partial_window=False)

    def test_empty_series(self):
        with pytest.raises(ConfigurationError):
            create_windows(0, window_length=6)
