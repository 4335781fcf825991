"""
Outer-loop validation windows for nested time-series cross-validation.

Each window is a contiguous block of original row indices held out from
training; the model for that (horizon, window) cell learns from every other
row. Windows never overlap and are emitted in chronological order:

    window_length=6, skip=2:  |--W1--|..|--W2--|..|--W3--|..

A window_length of 0 yields a single null window: no holdout, every row is
used for training and predictions are in-sample.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from direct_forecast.config.settings import WindowConfig
from direct_forecast.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Window:
    """
    Half-open block [start, stop) of original row indices.

    Attributes:
        window_id: 1-based position in chronological order
        start: First held-out row
        stop: One past the last held-out row
        length: Nominal window size (the trailing window may be shorter)
    """
    window_id: int
    start: int
    stop: int
    length: int

    @property
    def is_null(self) -> bool:
        return self.length == 0

    @property
    def size(self) -> int:
        return self.stop - self.start

    @property
    def is_partial(self) -> bool:
        return not self.is_null and self.size < self.length

    def contains(self, indices: np.ndarray) -> np.ndarray:
        """Boolean mask of which original row indices fall inside the window."""
        indices = np.asarray(indices)
        if self.is_null:
            return np.zeros(indices.shape, dtype=bool)
        return (indices >= self.start) & (indices < self.stop)

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_id": self.window_id,
            "window_start": self.start,
            "window_stop": self.stop,
            "window_length": self.length,
            "is_partial": self.is_partial,
        }


class WindowPartitioner:
    """
    Splits a row range into contiguous outer-loop validation windows.

    Example:
        >>> partitioner = WindowPartitioner(WindowConfig(window_length=6))
        >>> [(w.start, w.stop) for w in partitioner.partition(24)]
        [(0, 6), (6, 12), (12, 18), (18, 24)]
    """

    def __init__(self, config: WindowConfig) -> None:
        self.config = config

    def partition(self, row_count: int) -> list[Window]:
        """
        Generate windows over rows [window_start, window_stop).

        Args:
            row_count: Number of rows in the original series

        Returns:
            Ordered list of Window

        Raises:
            ConfigurationError: If bounds are invalid or no window fits
        """
        if row_count < 1:
            raise ConfigurationError(f"row_count must be >= 1, got {row_count}")

        length = self.config.window_length
        if length == 0:
            logger.debug("window_length=0: single null window, no outer-loop holdout")
            return [Window(window_id=1, start=0, stop=0, length=0)]

        start = 0 if self.config.window_start is None else self.config.window_start
        stop = row_count if self.config.window_stop is None else self.config.window_stop

        if start >= stop:
            raise ConfigurationError(f"window_start ({start}) must be < window_stop ({stop})")
        if stop > row_count:
            raise ConfigurationError(
                f"window_stop ({stop}) exceeds the series length ({row_count})"
            )

        windows: list[Window] = []
        cursor = start
        while cursor < stop:
            end = cursor + length
            if end > stop:
                if not self.config.include_partial_window:
                    logger.debug(f"Discarding {stop - cursor} trailing rows (partial window)")
                    break
                end = stop
            windows.append(Window(window_id=len(windows) + 1, start=cursor, stop=end, length=length))
            cursor = end + self.config.skip

        if not windows:
            raise ConfigurationError(
                f"No complete window of length {length} fits in rows [{start}, {stop}). "
                "Reduce window_length or set include_partial_window=True."
            )

        logger.debug(f"Partitioned rows [{start}, {stop}) into {len(windows)} windows")
        return windows

    def __repr__(self) -> str:
        parts = [f"WindowPartitioner(window_length={self.config.window_length}"]
        if self.config.skip:
            parts.append(f"skip={self.config.skip}")
        if self.config.window_start is not None:
            parts.append(f"start={self.config.window_start}")
        if self.config.window_stop is not None:
            parts.append(f"stop={self.config.window_stop}")
        parts.append(f"partial={self.config.include_partial_window}")
        return ", ".join(parts) + ")"


def windows_to_frame(windows: list[Window]) -> pd.DataFrame:
    """Tabulate windows, one row each."""
    return pd.DataFrame([w.to_dict() for w in windows])


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_windows(
    row_count: int,
    window_length: int,
    skip: int = 0,
    window_start: int | None = None,
    window_stop: int | None = None,
    include_partial_window: bool = True,
) -> list[Window]:
    """
    Partition rows into outer-loop validation windows.

    Args:
        row_count: Number of rows in the original series
        window_length: Rows per window (0 = single null window)
        skip: Rows left between windows
        window_start: First eligible row (default 0)
        window_stop: Exclusive last row (default row_count)
        include_partial_window: Keep a short trailing window

    Returns:
        Ordered list of Window
    """
    config = WindowConfig(
        window_length=window_length,
        skip=skip,
        window_start=window_start,
        window_stop=window_stop,
        include_partial_window=include_partial_window,
    )
    return WindowPartitioner(config).partition(row_count)


__all__ = [
    "Window",
    "WindowPartitioner",
    "create_windows",
    "windows_to_frame",
]
