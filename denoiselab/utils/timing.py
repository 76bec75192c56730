"""
Wall-clock measurement for scheduler and optimizer invocations.

Wrapping a call never alters its result; the elapsed time is returned
alongside it.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterator, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class TimedResult(Generic[T]):
    """Result of a wrapped call and its elapsed wall-clock time."""
    result: T
    elapsed: float      # Seconds

    def __iter__(self):
        # Allows `result, elapsed = measure(...)`
        return iter((self.result, self.elapsed))


@dataclass
class Stopwatch:
    """Mutable holder filled in by MetricsCollector.timer()"""
    start: float = 0.0
    end: float = 0.0

    @property
    def elapsed(self) -> float:
        return self.end - self.start


class MetricsCollector:
    """
    Times calls transparently.

    The clock is injectable so callers can substitute a deterministic one.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self.clock = clock

    def measure(self, func: Callable[..., T], *args, **kwargs) -> TimedResult[T]:
        """Call `func(*args, **kwargs)` and return its result with the elapsed time."""
        start_time = self.clock()
        result = func(*args, **kwargs)
        return TimedResult(result=result, elapsed=self.clock() - start_time)

    def wrap(self, func: Callable[..., T]) -> Callable[..., TimedResult[T]]:
        """Return a function that behaves like `func` but yields TimedResults."""
        def timed(*args: Any, **kwargs: Any) -> TimedResult[T]:
            return self.measure(func, *args, **kwargs)
        timed.__name__ = getattr(func, '__name__', 'timed')
        timed.__doc__ = getattr(func, '__doc__', None)
        return timed

    @contextmanager
    def timer(self) -> Iterator[Stopwatch]:
        """Context manager form; the stopwatch is complete after the block exits."""
        watch = Stopwatch(start=self.clock())
        try:
            yield watch
        finally:
            watch.end = self.clock()


_default_collector = MetricsCollector()


def measure(func: Callable[..., T], *args, **kwargs) -> TimedResult[T]:
    """
    Execute function and measure execution time.

    Args:
        func: Function to execute
        *args: Function arguments
        **kwargs: Function keyword arguments

    Returns:
        TimedResult of (result, execution_time_seconds)
    """
    return _default_collector.measure(func, *args, **kwargs)
