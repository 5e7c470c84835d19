"""Variance-reduction split search and depth-first tree growth.

Split search sorts the node's rows by one feature and sweeps a boundary from
left to right. Two :class:`~cartreg.stats.RunningStats` accumulators track the
target on either side of the boundary, so each candidate costs O(1) on top of
the sort. Rows sharing a feature value always cross the boundary together,
since no threshold can separate them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .stats import RunningStats
from .tree import Node, Tree
from .view import RowView

logger = logging.getLogger(__name__)

# gain reported when no split position was evaluated
NO_GAIN = -1.0

# relative margin a later feature's gain must clear to replace an earlier one
GAIN_RTOL = 1e-9


@dataclass
class SplitCandidate:
    feature: int
    threshold: float
    gain: float


class TreeBuilder:
    """Grow a :class:`~cartreg.tree.Tree` from an augmented table.

    Parameters
    ----------
    min_impurity_decrease : float, default=0.0
        A split is kept only if its gain reaches this value. With a
        non-negative value, splits that do not reduce variance at all are
        rejected as well.
    min_size_to_split : int, default=2
        Nodes with fewer rows are not split.
    min_leaf_size : int, default=1
        Minimum number of rows in each child of a split.
    max_depth : int or None, default=None
        Nodes at this depth are not split; the root has depth 0. ``None``
        leaves the depth unbounded.
    verbose : int, default=0
        ``>= 2`` logs every accepted split at DEBUG level.
    """

    def __init__(self, min_impurity_decrease: float = 0.0, min_size_to_split: int = 2,
                 min_leaf_size: int = 1, max_depth: Optional[int] = None, verbose: int = 0):
        self.min_impurity_decrease = min_impurity_decrease
        self.min_size_to_split = min_size_to_split
        self.min_leaf_size = min_leaf_size
        self.max_depth = max_depth
        self.verbose = verbose

    # ----------------------------- Split search -----------------------------

    def best_split_for_feature(self, data: RowView, feature: int,
                               parent: RunningStats) -> Optional[SplitCandidate]:
        """Best threshold on one feature, or ``None`` if no position qualifies.

        ``parent`` holds the target statistics of the whole window and seeds
        the right-hand accumulator. Sorts ``data`` by ``feature`` in place.
        """
        data.sort_by(feature)
        xs = data.column(feature).tolist()
        ys = data.target().tolist()
        n = len(xs)
        parent_variance = parent.variance()

        left = RunningStats()
        right = RunningStats(parent.mean(), parent.sum_sqdev, parent.count)
        best_gain = NO_GAIN
        best_threshold = None

        i = 0
        while i < n:
            x_i = xs[i]
            while i < n and xs[i] == x_i:
                left.push(ys[i])
                right.pop(ys[i])
                i += 1
            n_left = i
            n_right = n - i
            if n_left < self.min_leaf_size:
                continue
            if n_right < self.min_leaf_size:
                break
            avg_variance = (n_left / n * left.variance()
                            + n_right / n * right.variance())
            gain = parent_variance - avg_variance
            if gain > best_gain:
                best_gain = gain
                best_threshold = _midpoint(x_i, xs[i]) if i < n else x_i

        if best_threshold is None:
            return None
        return SplitCandidate(feature, best_threshold, best_gain)

    def best_split(self, data: RowView, parent: RunningStats) -> Optional[SplitCandidate]:
        """Best split over all feature columns; lower feature index wins ties.

        Gains from running statistics carry rounding noise, so two features
        inducing the same partition rarely score bit-for-bit equal. A later
        feature must beat the incumbent by more than ``GAIN_RTOL`` relative to
        its gain.
        """
        best = None
        best_gain = NO_GAIN
        for feature in range(data.target_column):
            candidate = self.best_split_for_feature(data, feature, parent)
            if candidate is None:
                continue
            if best is None or candidate.gain > best_gain + GAIN_RTOL * abs(best_gain):
                best = candidate
                best_gain = candidate.gain
        return best

    # ----------------------------- Growth -----------------------------

    def _target_stats(self, data: RowView) -> RunningStats:
        # pushed one by one so a constant target has exactly zero deviation,
        # matching the accumulators of the split search
        return RunningStats.from_values(data.target().tolist())

    def _leaf(self, stats: RunningStats) -> Node:
        return Node(mean=stats.mean(), variance=stats.variance(), sample_size=stats.count)

    def _can_split(self, data: RowView, depth: int) -> bool:
        if self.max_depth is not None and depth >= self.max_depth:
            return False
        return data.size >= max(self.min_size_to_split, 2 * self.min_leaf_size)

    def _accepts(self, gain: float) -> bool:
        if gain < self.min_impurity_decrease:
            return False
        if gain <= 0.0 and self.min_impurity_decrease >= 0.0:
            return False
        return True

    def build(self, table: np.ndarray) -> Tree:
        """Grow a tree over ``table`` (features then target), reordering its rows.

        Growth is depth-first with the left subtree first. An explicit stack
        replaces recursion, so unbalanced trees are not limited by the
        interpreter's recursion limit.
        """
        tree = Tree()
        root = RowView(table)
        root_stats = self._target_stats(root)
        tree.add_node(self._leaf(root_stats))
        stack: List[Tuple[RowView, RunningStats, int, int]] = [(root, root_stats, 0, 0)]

        while stack:
            data, parent, index, depth = stack.pop()
            if not self._can_split(data, depth):
                continue
            best = self.best_split(data, parent)
            if best is None or not self._accepts(best.gain):
                continue

            left, right = data.partition(best.feature, best.threshold)
            left_stats = self._target_stats(left)
            right_stats = self._target_stats(right)
            left_index = tree.add_node(self._leaf(left_stats))
            right_index = tree.add_node(self._leaf(right_stats))

            node = tree.nodes[index]
            node.feature_split = best.feature
            node.threshold = best.threshold
            node.split_gain = best.gain
            node.left_child = left_index
            node.right_child = right_index

            if self.verbose >= 2:
                logger.debug(
                    "node %d (depth %d, n=%d): X[%d] <= %.6g, gain=%.6g -> %d/%d",
                    index, depth, data.size, best.feature, best.threshold,
                    best.gain, left.size, right.size)

            stack.append((right, right_stats, right_index, depth + 1))
            stack.append((left, left_stats, left_index, depth + 1))

        return tree


def _midpoint(lo: float, hi: float) -> float:
    # rounding can land on ``hi``, which would send its rows to the left
    mid = (lo + hi) / 2.0
    return mid if lo <= mid < hi else lo
