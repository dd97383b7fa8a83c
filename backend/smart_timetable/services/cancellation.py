from __future__ import annotations

from time import perf_counter


class CancellationToken:
    """Stop signal checked by the optimizer at generation boundaries.

    A token may carry an optional wall-clock budget; once the budget is spent
    ``should_stop`` reports True exactly as if ``cancel`` had been called.
    """

    def __init__(self, time_budget_seconds: float | None = None) -> None:
        self.time_budget_seconds = time_budget_seconds
        self._cancelled = False
        self._started_at = perf_counter()

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def elapsed_seconds(self) -> float:
        return perf_counter() - self._started_at

    def budget_exhausted(self) -> bool:
        if self.time_budget_seconds is None:
            return False
        return self.elapsed_seconds() >= self.time_budget_seconds

    def should_stop(self) -> bool:
        return self._cancelled or self.budget_exhausted()
