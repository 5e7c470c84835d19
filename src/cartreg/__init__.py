# cartreg/__init__.py
"""
cartreg: CART regression trees in pure Python (scikit-learn style).

Exports:
    - CARTRegressor
    - Tree, Node
    - TreeBuilder, SplitCandidate
    - RowView, augment
    - RunningStats
"""
from .builder import SplitCandidate, TreeBuilder
from .regressor import CARTRegressor
from .stats import RunningStats
from .tree import Node, Tree
from .view import RowView, augment

__all__ = [
    "CARTRegressor",
    "Node",
    "RowView",
    "RunningStats",
    "SplitCandidate",
    "Tree",
    "TreeBuilder",
    "augment",
]
__version__ = "0.1.0"
