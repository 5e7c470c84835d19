"""CART regression tree with a scikit-learn style API.

This module wires the pieces together: input validation, the augmented
training table, :class:`~cartreg.builder.TreeBuilder`, and the exports of the
fitted :class:`~cartreg.tree.Tree` (Graphviz, rules, pretty printing).
"""
from __future__ import annotations

import logging
from numbers import Integral, Real
from time import perf_counter
from typing import List, Optional

import numpy as np
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y

from .builder import TreeBuilder
from .tree import Node, Tree
from .view import augment

logger = logging.getLogger(__name__)

# ----------------------------- Regressor -----------------------------


class CARTRegressor(RegressorMixin, BaseEstimator):
    r"""
    CARTRegressor(min_impurity_decrease=0.0, min_size_to_split=2,
                  min_leaf_size=1, max_depth=None, feature_names=None, verbose=0)

    A single regression tree grown by exhaustive variance-reduction search.

    **Core behavior**

    - **Split criterion**: parent target variance minus the size-weighted
      average of the two children's sample variances. Every distinct value of
      every feature is a candidate; thresholds sit at midpoints between
      consecutive distinct values. Rows go left when ``x[feature] <= threshold``.
    - **Growth**: depth-first from the root (depth 0). A node stays a leaf when
      it reached ``max_depth``, holds fewer than
      ``max(min_size_to_split, 2 * min_leaf_size)`` rows, or its best split
      gains less than ``min_impurity_decrease``.
    - **Prediction**: mean target of the leaf a row falls into.

    Parameters
    ----------
    min_impurity_decrease : float, default=0.0
        Minimum variance reduction required to accept a split. With a
        non-negative value a split must also reduce variance strictly.
    min_size_to_split : int, default=2
        Minimum number of rows at a node to attempt a split.
    min_leaf_size : int, default=1
        Minimum number of rows in each child of a split.
    max_depth : int or None, default=None
        Maximum depth of the tree (root = 0). ``None`` means unbounded.
    feature_names : sequence of str, optional
        Column names used by the textual and Graphviz exports.
    verbose : int, default=0
        ``1`` logs a summary of each fit at INFO level, ``2`` additionally logs
        every split at DEBUG level (through the ``cartreg`` loggers).

    Attributes
    ----------
    tree_ : Tree
        The fitted node arena.
    n_features_in_ : int
        Number of features seen during ``fit``.
    """

    def __init__(self,
                 min_impurity_decrease: float = 0.0,
                 min_size_to_split: int = 2,
                 min_leaf_size: int = 1,
                 max_depth: Optional[int] = None,
                 feature_names: Optional[List[str]] = None,
                 verbose: int = 0):
        self.min_impurity_decrease = min_impurity_decrease
        self.min_size_to_split = min_size_to_split
        self.min_leaf_size = min_leaf_size
        self.max_depth = max_depth
        self.feature_names = feature_names
        self.verbose = verbose

    # ----------------------------- Configuration -----------------------------

    def set_min_impurity_decrease(self, value: float) -> "CARTRegressor":
        return self.set_params(min_impurity_decrease=value)

    def set_min_size_to_split(self, value: int) -> "CARTRegressor":
        return self.set_params(min_size_to_split=value)

    def set_min_leaf_size(self, value: int) -> "CARTRegressor":
        return self.set_params(min_leaf_size=value)

    def set_max_depth(self, value: Optional[int]) -> "CARTRegressor":
        return self.set_params(max_depth=value)

    def _check_params(self, n_features: int) -> None:
        mid = self.min_impurity_decrease
        if not isinstance(mid, Real) or isinstance(mid, bool) or not np.isfinite(mid):
            raise ValueError(f"min_impurity_decrease must be a finite number, got {mid!r}")
        for name in ("min_size_to_split", "min_leaf_size"):
            value = getattr(self, name)
            if not isinstance(value, Integral) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{name} must be an integer >= 1, got {value!r}")
        depth = self.max_depth
        if depth is not None and (not isinstance(depth, Integral) or isinstance(depth, bool)
                                  or depth < 0):
            raise ValueError(f"max_depth must be None or an integer >= 0, got {depth!r}")
        if not isinstance(self.verbose, Integral) or self.verbose < 0:
            raise ValueError(f"verbose must be an integer >= 0, got {self.verbose!r}")
        if self.feature_names is not None and len(self.feature_names) != n_features:
            raise ValueError(
                f"feature_names has {len(self.feature_names)} entries, "
                f"expected {n_features} (X.shape[1])")

    # ----------------------------- Public API -----------------------------

    def fit(self, X, y):
        # a failed fit must not leave a previous tree behind
        for attr in ("tree_", "n_features_in_"):
            self.__dict__.pop(attr, None)

        X, y = check_X_y(X, y, dtype=np.float64, y_numeric=True)
        n, m = X.shape
        self._check_params(m)

        builder = TreeBuilder(
            min_impurity_decrease=float(self.min_impurity_decrease),
            min_size_to_split=int(self.min_size_to_split),
            min_leaf_size=int(self.min_leaf_size),
            max_depth=None if self.max_depth is None else int(self.max_depth),
            verbose=int(self.verbose),
        )
        t0 = perf_counter()
        # rows of the augmented copy are reordered during growth; it is not kept
        tree = builder.build(augment(X, y))
        elapsed = perf_counter() - t0

        self.tree_ = tree
        self.n_features_in_ = m
        if self.verbose >= 1:
            logger.info("fitted tree on %d rows x %d features: %d nodes, %d leaves, "
                        "depth %d in %.3fs", n, m, tree.node_count, tree.n_leaves(),
                        tree.max_depth(), elapsed)
        return self

    def predict(self, X):
        """
        Predict target values.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features) or (n_features,)
            Rows to predict. A 1-D input is treated as a single row.

        Returns
        -------
        ndarray of shape (n_samples,) or float
            One prediction per row in input order, or a single float for a
            1-D input.

        Raises
        ------
        NotFittedError
            If the estimator has not been fitted.
        ValueError
            If the number of features differs from the one seen in ``fit``.
        """
        check_is_fitted(self, "tree_")
        if np.ndim(X) == 1:
            return self.tree_.predict_row(self._validate_row(X))
        X = self._validate_matrix(X)
        return np.array([self.tree_.predict_row(x) for x in X.tolist()], dtype=float)

    def apply(self, X) -> np.ndarray:
        """Index into ``tree_.nodes`` of the leaf each row falls into."""
        check_is_fitted(self, "tree_")
        X = self._validate_matrix(X)
        return np.array([self.tree_.apply_row(x) for x in X.tolist()], dtype=np.intp)

    def get_depth(self) -> int:
        check_is_fitted(self, "tree_")
        return self.tree_.max_depth()

    def get_n_leaves(self) -> int:
        check_is_fitted(self, "tree_")
        return self.tree_.n_leaves()

    def _validate_matrix(self, X) -> np.ndarray:
        X = check_array(X, dtype=np.float64)
        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"X has {X.shape[1]} features, but {type(self).__name__} "
                f"was fitted with {self.n_features_in_} features.")
        return X

    def _validate_row(self, x) -> List[float]:
        row = check_array(np.asarray(x, dtype=np.float64).reshape(1, -1), dtype=np.float64)[0]
        if row.shape[0] != self.n_features_in_:
            raise ValueError(
                f"row has {row.shape[0]} values, but {type(self).__name__} "
                f"was fitted with {self.n_features_in_} features.")
        return row.tolist()

    # ----------------------------- Pretty / Rules / Graphviz -----------------------------

    def _maybe_feature_names(self, feature_names):
        return feature_names if feature_names is not None else self.feature_names

    @staticmethod
    def _feature_label(j: int, fn) -> str:
        return fn[j] if (fn is not None and 0 <= j < len(fn)) else f"X[{j}]"

    def print_tree(self, feature_names: Optional[List[str]] = None) -> None:
        """
        Pretty-print the fitted tree to ``stdout`` as nested if/else blocks.

        Raises
        ------
        NotFittedError
            If the estimator has not been fitted.
        """
        check_is_fitted(self, "tree_")
        fn = self._maybe_feature_names(feature_names)
        self._print_node(0, "", fn)

    def _print_node(self, index: int, indent: str, fn=None) -> None:
        node = self.tree_.nodes[index]
        if node.is_leaf:
            print(f"{indent}Predict {node.mean:.4f} (N={node.sample_size})")
            return
        name = self._feature_label(node.feature_split, fn)
        print(f"{indent}if {name} <= {node.threshold:.6g}:")
        self._print_node(node.left_child, indent + "  ", fn)
        print(f"{indent}else:")
        self._print_node(node.right_child, indent + "  ", fn)

    def export_rules(self, feature_names: Optional[List[str]] = None) -> List[str]:
        """
        Export one decision rule per leaf.

        Each rule has the form ``"<antecedent> => value=<mean> (N=<rows>)"``
        where the antecedent is the conjunction of conditions from the root.
        A tree that is a single leaf yields one rule with antecedent ``<root>``.
        """
        check_is_fitted(self, "tree_")
        fn = self._maybe_feature_names(feature_names)
        rules: List[str] = []
        self._collect_rules(0, [], rules, fn)
        return rules

    def _collect_rules(self, index: int, parts: List[str], rules: List[str], fn=None) -> None:
        node = self.tree_.nodes[index]
        if node.is_leaf:
            antecedent = " AND ".join(parts) if parts else "<root>"
            rules.append(f"{antecedent} => value={node.mean:.6g} (N={node.sample_size})")
            return
        name = self._feature_label(node.feature_split, fn)
        self._collect_rules(node.left_child, parts + [f"{name} <= {node.threshold:.6g}"],
                            rules, fn)
        self._collect_rules(node.right_child, parts + [f"{name} > {node.threshold:.6g}"],
                            rules, fn)

    def export_graphviz(self, filename: Optional[str] = None,
                        feature_names: Optional[List[str]] = None,
                        format: str = "dot") -> str:
        """
        Export the tree as a Graphviz directed graph.

        Every tree node becomes one graph node (leaves drawn as ellipses,
        splits as boxes) labelled with its mean, variance and sample size, plus
        feature, threshold and gain for splits. Every parent-child link becomes
        one edge, labelled ``True`` for the ``<=`` side and ``False`` otherwise.

        Parameters
        ----------
        filename : str or None, default=None
            Basename of the output file. If None, the DOT source is returned
            and nothing is written.
        feature_names : list[str], optional
            Names for the input features. Defaults to ``self.feature_names``.
        format : str, default="dot"
            ``'dot'`` writes the DOT source without calling the external
            Graphviz binary. Other formats (``'png'``, ``'svg'``...) are
            rendered with ``dot``; if that fails a ``.dot`` file is written
            instead.

        Returns
        -------
        str
            The DOT source when ``filename`` is None, otherwise the path of the
            written file.

        Raises
        ------
        NotFittedError
            If the estimator has not been fitted.
        RuntimeError
            If the ``graphviz`` package is not installed.
        """
        check_is_fitted(self, "tree_")
        fn = self._maybe_feature_names(feature_names)
        try:
            from graphviz import Digraph
        except ImportError as e:
            raise RuntimeError("Please install the 'graphviz' Python package.") from e
        dot = Digraph(comment="CARTRegressor", format=format)
        self._add_graph_nodes(dot, self.tree_, fn)

        if filename is None:
            return dot.source
        if format.lower() == "dot":
            path = f"{filename}.dot"
            dot.save(path)
            return path
        try:
            dot.render(filename, cleanup=True)
            return f"{filename}.{format}"
        except Exception:
            fallback_path = f"{filename}.dot"
            dot.save(fallback_path)
            return fallback_path

    def to_dot(self, feature_names: Optional[List[str]] = None) -> str:
        """DOT source of the fitted tree."""
        return self.export_graphviz(None, feature_names=feature_names)

    def _add_graph_nodes(self, dot, tree: Tree, fn=None) -> None:
        for index, node, _ in tree.walk():
            node_id = str(index)
            if node.is_leaf:
                dot.node(node_id, _node_stats(node), shape="ellipse")
                continue
            name = self._feature_label(node.feature_split, fn)
            label = (f"{name} <= {node.threshold:.6g}\ngain={node.split_gain:.6g}\n"
                     f"{_node_stats(node)}")
            dot.node(node_id, label, shape="box")
            dot.edge(node_id, str(node.left_child), label="True")
            dot.edge(node_id, str(node.right_child), label="False")


def _node_stats(node: Node) -> str:
    return f"mean={node.mean:.6g}\nvariance={node.variance:.6g}\nN={node.sample_size}"
