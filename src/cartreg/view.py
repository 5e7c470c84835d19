"""Windows over the training table.

The fitting routine keeps features and target in one row-major float table
(``augment``). A :class:`RowView` is a ``[begin, end)`` range of its rows that
can be sorted and partitioned in place. Views never own the table; two views
produced by :meth:`RowView.partition` cover disjoint row ranges, so the
builder can work on them independently.
"""
from __future__ import annotations

from typing import Iterator, Optional, Tuple

import numpy as np


def augment(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Return a fresh ``(n, F+1)`` float table with ``y`` appended as last column."""
    X = np.asarray(X, dtype=float)
    y = np.asarray(y, dtype=float).ravel()
    if X.ndim != 2:
        raise ValueError(f"X must be 2-D, got {X.ndim}-D")
    if X.shape[0] != y.shape[0]:
        raise ValueError(
            f"size mismatch between X and y: {X.shape[0]} rows vs {y.shape[0]} targets")
    table = np.empty((X.shape[0], X.shape[1] + 1), dtype=float)
    table[:, :-1] = X
    table[:, -1] = y
    return table


class RowView:
    """Mutable, non-owning window ``[begin, end)`` over the rows of ``table``.

    Parameters
    ----------
    table : ndarray of shape (n_rows, n_columns)
        Row-major table. The last column holds the target.
    begin, end : int
        Window bounds; ``end`` defaults to the number of rows.
    """

    __slots__ = ("table", "begin", "end")

    def __init__(self, table: np.ndarray, begin: int = 0, end: Optional[int] = None):
        if end is None:
            end = table.shape[0]
        if not 0 <= begin <= end <= table.shape[0]:
            raise ValueError(
                f"invalid window [{begin}, {end}) over a table of {table.shape[0]} rows")
        self.table = table
        self.begin = begin
        self.end = end

    # ----------------------------- Window -----------------------------

    @property
    def size(self) -> int:
        return self.end - self.begin

    def __len__(self) -> int:
        return self.end - self.begin

    @property
    def target_column(self) -> int:
        return self.table.shape[1] - 1

    def copy(self) -> "RowView":
        return RowView(self.table, self.begin, self.end)

    def split_at(self, offset: int) -> Tuple["RowView", "RowView"]:
        """Cut the window into ``[begin, begin+offset)`` and the rest."""
        if not 0 <= offset <= self.size:
            raise ValueError(f"offset {offset} outside window of size {self.size}")
        mid = self.begin + offset
        return RowView(self.table, self.begin, mid), RowView(self.table, mid, self.end)

    def column(self, col: int) -> np.ndarray:
        return self.table[self.begin:self.end, col]

    def target(self) -> np.ndarray:
        return self.table[self.begin:self.end, -1]

    def __getitem__(self, index: int) -> np.ndarray:
        n = self.size
        if index < 0:
            index += n
        if not 0 <= index < n:
            raise IndexError(f"row index out of range for window of size {n}")
        return self.table[self.begin + index]

    def __iter__(self) -> Iterator[np.ndarray]:
        for i in range(self.begin, self.end):
            yield self.table[i]

    # ----------------------------- Reordering -----------------------------

    def sort_by(self, feature: int) -> None:
        """Sort the window in place by ascending value of column ``feature``."""
        block = self.table[self.begin:self.end]
        order = np.argsort(block[:, feature], kind="mergesort")
        self.table[self.begin:self.end] = block[order]

    def partition(self, feature: int, threshold: float) -> Tuple["RowView", "RowView"]:
        """Move rows with ``row[feature] <= threshold`` in front of the others.

        Two-pointer swap scan; order within each side is not preserved.
        Returns the ``(left, right)`` views, which tile this window exactly.
        """
        t = self.table
        col = t[:, feature]
        left = self.begin
        right = self.end - 1
        while True:
            while left <= right and col[left] <= threshold:
                left += 1
            while left <= right and col[right] > threshold:
                right -= 1
            if left < right:
                t[[left, right]] = t[[right, left]]
                left += 1
                right -= 1
            else:
                break
        return RowView(t, self.begin, left), RowView(t, left, self.end)

    # ----------------------------- Aggregates -----------------------------

    def mean(self, col: int) -> float:
        if self.size == 0:
            return 0.0
        return float(self.column(col).mean())

    def sum_sqdev(self, col: int) -> float:
        if self.size == 0:
            return 0.0
        dev = self.column(col) - self.column(col).mean()
        return float(np.dot(dev, dev))

    def variance(self, col: int) -> float:
        n = self.size
        return self.sum_sqdev(col) / (n - 1) if n > 1 else 0.0

    def __str__(self) -> str:
        if self.size == 0:
            return "(empty)"
        return "\n".join(",".join(f"{v:g}" for v in row) for row in self)

    def __repr__(self) -> str:
        return f"RowView(begin={self.begin}, end={self.end}, n_columns={self.table.shape[1]})"
