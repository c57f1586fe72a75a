"""
Wall-clock timing of the GLM pipeline stages.

Every public entry point fills ``Result.timing`` with the total runtime and
the time spent in each named stage ('design', 'sweep', 'tests').
"""

import time
from contextlib import contextmanager
from typing import Iterator


class Timer:
    """
    Stage timer.

    Usage:
        timer = Timer()
        timer.start()
        with timer.section('sweep'):
            fit = sweep_fit(design)
        timer.stop()
        timer.result()   # {'total_seconds': ..., 'sweep': ...}
    """

    def __init__(self):
        self._sections: dict[str, float] = {}
        self._start_time: float | None = None
        self._total: float | None = None

    def start(self) -> None:
        self._start_time = time.perf_counter()

    def stop(self) -> None:
        if self._start_time is None:
            raise RuntimeError("Timer.stop() called before start()")
        self._total = time.perf_counter() - self._start_time

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        """
        Time one stage. Entering the same stage twice adds up both runs,
        so the tests of every model term accumulate under 'tests'.
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self._sections[name] = self._sections.get(name, 0.0) + (
                time.perf_counter() - start
            )

    def result(self) -> dict[str, float]:
        """
        'total_seconds' plus one entry per stage.

        Raises:
            RuntimeError: If the timer was never stopped
        """
        if self._total is None:
            raise RuntimeError("Timer.result() called before stop()")
        return {'total_seconds': self._total, **self._sections}
