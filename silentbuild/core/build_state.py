"""Build metrics aggregator — one instance per build session.

Module builds may run in parallel, so every counter is an independently
locked atomic.  Reads take no snapshot lock: two different counters read
back-to-back may interleave with a writer, but each counter on its own is
monotonic.
"""

from __future__ import annotations

import threading
import time

from silentbuild.models.results import TestSummary


class AtomicCounter:
    """An integer that can be incremented from many threads without lost updates."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def add(self, delta: int = 1) -> int:
        with self._lock:
            self._value += delta
            return self._value

    @property
    def value(self) -> int:
        return self._value


class AtomicFlag:
    """A boolean with compare-and-set semantics."""

    def __init__(self, value: bool = False) -> None:
        self._value = value
        self._lock = threading.Lock()

    def set(self, value: bool = True) -> None:
        with self._lock:
            self._value = value

    def compare_and_set(self, expected: bool, new: bool) -> bool:
        """Set to *new* only if currently *expected*.  Returns whether it swapped."""
        with self._lock:
            if self._value != expected:
                return False
            self._value = new
            return True

    def __bool__(self) -> bool:
        return self._value


class BuildState:
    """Concurrency-safe counter set describing one build session's outcome.

    Parameters
    ----------
    total_modules:
        Number of modules the session was started with.
    start_time:
        Wall-clock start in epoch seconds.  Defaults to now.
    """

    def __init__(self, total_modules: int, start_time: float | None = None) -> None:
        self._total_modules = total_modules
        self._start_time = time.time() if start_time is None else start_time
        self._succeeded_modules = AtomicCounter()
        self._failed_modules = AtomicCounter()
        self._test_total = AtomicCounter()
        self._test_failed = AtomicCounter()
        self._test_errors = AtomicCounter()
        self._test_skipped = AtomicCounter()
        self._compiler_errors = AtomicCounter()
        self._build_failed = AtomicFlag()

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def module_succeeded(self) -> None:
        self._succeeded_modules.add()

    def module_failed(self) -> None:
        self._failed_modules.add()
        self._build_failed.set(True)

    def set_build_failed(self) -> None:
        """Mark the build failed without touching the module counters."""
        self._build_failed.set(True)

    def add_compiler_errors(self, count: int) -> None:
        self._compiler_errors.add(count)

    def accumulate_tests(self, summary: TestSummary) -> None:
        """Add a summary's counts.  Failure details are not retained here."""
        self._test_total.add(summary.total)
        self._test_failed.add(summary.failures)
        self._test_errors.add(summary.errors)
        self._test_skipped.add(summary.skipped)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def total_modules(self) -> int:
        return self._total_modules

    @property
    def succeeded_modules(self) -> int:
        return self._succeeded_modules.value

    @property
    def failed_modules(self) -> int:
        return self._failed_modules.value

    @property
    def test_total(self) -> int:
        return self._test_total.value

    @property
    def test_passed(self) -> int:
        return max(
            0,
            self._test_total.value
            - self._test_failed.value
            - self._test_errors.value
            - self._test_skipped.value,
        )

    @property
    def test_failed(self) -> int:
        return self._test_failed.value

    @property
    def test_errors(self) -> int:
        return self._test_errors.value

    @property
    def test_skipped(self) -> int:
        return self._test_skipped.value

    @property
    def compiler_errors(self) -> int:
        return self._compiler_errors.value

    @property
    def is_build_failed(self) -> bool:
        return bool(self._build_failed)

    @property
    def start_time(self) -> float:
        return self._start_time

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds since start; zero if the start lies in the future."""
        return max(0, int(time.time() - self._start_time))
