"""Node storage and traversal for a fitted regression tree.

All nodes live in one append-only list; children are referenced by their
position in that list, never by object reference. A child is always appended
after its parent, so every index reachable from the root is larger than the
index of the node that points to it.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

# ----------------------------- Node -----------------------------


@dataclass
class Node:
    mean: float
    variance: float
    sample_size: int
    split_gain: float = 0.0
    feature_split: Optional[int] = None
    threshold: Optional[float] = None
    left_child: Optional[int] = None
    right_child: Optional[int] = None

    @property
    def is_leaf(self) -> bool:
        return self.feature_split is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ----------------------------- Tree -----------------------------


class Tree:
    """Arena of :class:`Node` objects; index 0 is the root."""

    def __init__(self) -> None:
        self.nodes: List[Node] = []

    def add_node(self, node: Node) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    @property
    def root(self) -> Node:
        if not self.nodes:
            raise ValueError("Tree has no nodes.")
        return self.nodes[0]

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> Node:
        return self.nodes[index]

    # ----------------------------- Prediction -----------------------------

    def apply_row(self, x: Sequence[float]) -> int:
        """Index of the leaf reached by ``x``."""
        idx = 0
        node = self.nodes[0]
        while not node.is_leaf:
            idx = node.left_child if x[node.feature_split] <= node.threshold else node.right_child
            node = self.nodes[idx]
        return idx

    def predict_row(self, x: Sequence[float]) -> float:
        return self.nodes[self.apply_row(x)].mean

    # ----------------------------- Structure -----------------------------

    def walk(self) -> Iterator[Tuple[int, Node, int]]:
        """Depth-first pre-order over ``(index, node, depth)``; the root has depth 0."""
        if not self.nodes:
            return
        stack = [(0, 0)]
        while stack:
            idx, depth = stack.pop()
            node = self.nodes[idx]
            yield idx, node, depth
            if not node.is_leaf:
                stack.append((node.right_child, depth + 1))
                stack.append((node.left_child, depth + 1))

    def max_depth(self) -> int:
        return max((depth for _, _, depth in self.walk()), default=0)

    def n_leaves(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": [node.to_dict() for node in self.nodes]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tree":
        tree = cls()
        for entry in data["nodes"]:
            tree.add_node(Node(**entry))
        return tree
