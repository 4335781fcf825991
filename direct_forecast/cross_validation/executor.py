"""
Fixed-size worker pool for independent grid cells.

Cells never depend on each other, so they are submitted all at once to a
ThreadPoolExecutor. User closures run synchronously inside the workers;
model libraries that release the GIL (numpy, scikit-learn, boosting
libraries) parallelize well this way.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, TypeVar

from tqdm.auto import tqdm

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_cells(
    tasks: Sequence[T],
    fn: Callable[[T], Any],
    n_jobs: int = 1,
    cancel_event: threading.Event | None = None,
    show_progress: bool = False,
    desc: str = "cells",
) -> tuple[dict[int, Any], list[int]]:
    """
    Run `fn` over every task, optionally in parallel.

    `fn` is responsible for catching user-closure errors; anything it raises
    is a bug and propagates. Once `cancel_event` is set, tasks that have not
    started are skipped while in-flight tasks run to completion.

    Args:
        tasks: Work items, one per cell
        fn: Callable applied to each task
        n_jobs: Worker threads (1 = run inline)
        cancel_event: Cancellation flag checked before each task starts
        show_progress: Display a tqdm progress bar
        desc: Progress bar label

    Returns:
        Tuple of (results keyed by task position, positions of skipped tasks)
    """
    results: dict[int, Any] = {}
    skipped: list[int] = []

    def guarded(position: int) -> tuple[int, bool, Any]:
        if cancel_event is not None and cancel_event.is_set():
            return position, False, None
        return position, True, fn(tasks[position])

    def record(position: int, ran: bool, value: Any) -> None:
        if ran:
            results[position] = value
        else:
            skipped.append(position)
        progress.update(1)

    progress = tqdm(total=len(tasks), desc=desc, disable=not show_progress, leave=False)
    try:
        if n_jobs <= 1 or len(tasks) <= 1:
            for position in range(len(tasks)):
                record(*guarded(position))
        else:
            n_workers = min(n_jobs, len(tasks))
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                futures = [executor.submit(guarded, i) for i in range(len(tasks))]
                for future in as_completed(futures):
                    record(*future.result())
    finally:
        progress.close()

    if skipped:
        logger.info(f"Cancelled before start: {len(skipped)} of {len(tasks)} {desc}")
    return results, sorted(skipped)


__all__ = ["run_cells"]
