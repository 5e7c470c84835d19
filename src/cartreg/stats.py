"""Running mean/variance accumulator with O(1) insertion and removal.

Welford's update, extended so that a value can be taken back out again. The
accumulator has no memory of the values it has seen, so ``pop`` trusts the
caller: only pop values that were pushed earlier and have not been popped yet.
"""
from __future__ import annotations


class RunningStats:
    """Count, mean and sum of squared deviations of a changing multiset.

    Parameters
    ----------
    mean : float, default=0.0
        Mean of the values already accounted for.
    sum_sqdev : float, default=0.0
        Sum of squared deviations from ``mean`` of those values.
    count : int, default=0
        Number of values already accounted for.

    Notes
    -----
    Seeding with a known aggregate lets the split search start the right-hand
    accumulator from a node's statistics without rescanning its rows.
    """

    __slots__ = ("_mean", "_s", "_n")

    def __init__(self, mean: float = 0.0, sum_sqdev: float = 0.0, count: int = 0):
        self._mean = float(mean) if count > 0 else 0.0
        self._s = float(sum_sqdev) if count > 0 else 0.0
        self._n = int(count)

    @classmethod
    def from_variance(cls, mean: float, variance: float, count: int) -> "RunningStats":
        """Seed from a sample variance instead of a sum of squared deviations."""
        return cls(mean, variance * (count - 1) if count > 1 else 0.0, count)

    @classmethod
    def from_values(cls, values) -> "RunningStats":
        """Accumulate ``values`` one push at a time."""
        stats = cls()
        for x in values:
            stats.push(x)
        return stats

    def push(self, x: float) -> None:
        prev_mean = self._mean
        self._n += 1
        self._mean += (x - self._mean) / self._n
        self._s += (x - self._mean) * (x - prev_mean)

    def pop(self, x: float) -> None:
        """Remove ``x``, restoring the state from before it was pushed.

        ``x`` must have been pushed and not yet popped. Nothing checks this;
        violating it silently corrupts the statistics.
        """
        prev_mean = self._mean
        self._n -= 1
        if self._n <= 0:
            self._n = 0
            self._mean = 0.0
            self._s = 0.0
            return
        self._mean -= (x - self._mean) / self._n
        self._s -= (x - self._mean) * (x - prev_mean)

    @property
    def count(self) -> int:
        return self._n

    @property
    def sum_sqdev(self) -> float:
        return self._s

    def mean(self) -> float:
        return self._mean

    def variance(self) -> float:
        # sample variance; a single value has none
        return self._s / (self._n - 1) if self._n > 1 else 0.0

    def __len__(self) -> int:
        return self._n

    def __repr__(self) -> str:
        return (f"RunningStats(mean={self._mean!r}, sum_sqdev={self._s!r}, "
                f"count={self._n!r})")
