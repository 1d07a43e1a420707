"""
===============================================================================
TREE — Flat-Arena Hierarchy With Binomial Leaf Data
===============================================================================

Nodes are integer indices into flat arrays:

    parents[i]   -> index of the parent (-1 for the root)
    children[i]  -> ordered list of child indices
    levels[i]    -> depth (root = 0)
    labels[i]    -> identifier, unique among siblings

Leaves carry a Datum (trial/success counts); internal nodes must not.

The engine only talks to the TreeProvider protocol, so any object exposing
root/children/datum/path can stand in for Tree.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from .errors import InvalidBinomialParameters, TreeStructureError


@dataclass(frozen=True)
class Datum:
    """Binomial observation attached to a leaf."""
    number_of_trials: int
    number_of_successes: int

    def __post_init__(self):
        if self.number_of_trials < 0 or self.number_of_successes < 0:
            raise InvalidBinomialParameters(
                f"counts must be non-negative: trials={self.number_of_trials}, "
                f"successes={self.number_of_successes}"
            )
        if self.number_of_successes > self.number_of_trials:
            raise InvalidBinomialParameters(
                f"successes ({self.number_of_successes}) exceed trials ({self.number_of_trials})"
            )

    def __add__(self, other: 'Datum') -> 'Datum':
        return Datum(
            self.number_of_trials + other.number_of_trials,
            self.number_of_successes + other.number_of_successes,
        )


@dataclass(frozen=True)
class Node:
    """A tree position: arena index, depth and label."""
    index: int
    level: int
    label: str

    def __str__(self) -> str:
        return self.label


class TreeProvider(Protocol):
    """Read-only view of a hierarchy used by the engine."""

    def root(self) -> Node: ...

    def children(self, node: Node) -> List[Node]: ...

    def datum(self, node: Node) -> Datum: ...

    def has_datum(self, node: Node) -> bool: ...

    def path(self, node: Node) -> List[str]: ...


class Tree:
    """
    Hierarchy stored as a flat arena.

    Build with add_root/add_child or from_paths, then call validate() before
    running inference.
    """

    def __init__(self):
        self._nodes: List[Node] = []
        self._parents: List[int] = []
        self._children: List[List[int]] = []
        self._data: Dict[int, Datum] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def add_root(self, label: str = "root", datum: Optional[Datum] = None) -> Node:
        if self._nodes:
            raise TreeStructureError("tree already has a root")
        return self._append(-1, 0, label, datum)

    def add_child(self, parent: Node, label: str, datum: Optional[Datum] = None) -> Node:
        self._check(parent)
        for child in self._children[parent.index]:
            if self._nodes[child].label == label:
                raise TreeStructureError(f"duplicate label {label!r} under {parent.label!r}")
        return self._append(parent.index, parent.level + 1, label, datum)

    def _append(self, parent: int, level: int, label: str, datum: Optional[Datum]) -> Node:
        node = Node(index=len(self._nodes), level=level, label=str(label))
        self._nodes.append(node)
        self._parents.append(parent)
        self._children.append([])
        if parent >= 0:
            self._children[parent].append(node.index)
        if datum is not None:
            self._data[node.index] = datum
        return node

    def _check(self, node: Node) -> None:
        if not (0 <= node.index < len(self._nodes)) or self._nodes[node.index] != node:
            raise TreeStructureError(f"unknown node: {node!r}")

    # ------------------------------------------------------------------
    # TreeProvider
    # ------------------------------------------------------------------

    def root(self) -> Node:
        if not self._nodes:
            raise TreeStructureError("tree is empty")
        return self._nodes[0]

    def children(self, node: Node) -> List[Node]:
        self._check(node)
        return [self._nodes[i] for i in self._children[node.index]]

    def parent(self, node: Node) -> Optional[Node]:
        self._check(node)
        index = self._parents[node.index]
        return self._nodes[index] if index >= 0 else None

    def is_leaf(self, node: Node) -> bool:
        self._check(node)
        return not self._children[node.index]

    def datum(self, node: Node) -> Datum:
        self._check(node)
        if node.index not in self._data:
            raise TreeStructureError(f"node {node.label!r} has no observation data")
        return self._data[node.index]

    def has_datum(self, node: Node) -> bool:
        self._check(node)
        return node.index in self._data

    def path(self, node: Node) -> List[str]:
        """Labels from the root down to node."""
        self._check(node)
        labels = []
        index = node.index
        while index >= 0:
            labels.append(self._nodes[index].label)
            index = self._parents[index]
        labels.reverse()
        return labels

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def post_order(self) -> List[Node]:
        """Children before parents, siblings in insertion order."""
        order: List[Node] = []
        if not self._nodes:
            return order
        stack: List[Tuple[int, bool]] = [(0, False)]
        while stack:
            index, expanded = stack.pop()
            if expanded:
                order.append(self._nodes[index])
                continue
            stack.append((index, True))
            for child in reversed(self._children[index]):
                stack.append((child, False))
        return order

    def leaves(self) -> List[Node]:
        return [n for n in self._nodes if not self._children[n.index]]

    def validate(self) -> bool:
        """
        Check that every leaf has a datum and no internal node has one.

        Raises:
            TreeStructureError: on the first offending node
        """
        if not self._nodes:
            raise TreeStructureError("tree is empty")
        for node in self._nodes:
            has_datum = node.index in self._data
            if self._children[node.index] and has_datum:
                raise TreeStructureError(f"internal node {node.label!r} carries leaf data")
            if not self._children[node.index] and not has_datum:
                raise TreeStructureError(f"leaf {node.label!r} has no observation data")
        return True

    @property
    def depth(self) -> int:
        return max(n.level for n in self._nodes) if self._nodes else 0

    @classmethod
    def from_paths(
        cls,
        rows: Iterable[Tuple[Sequence[str], Datum]],
        root_label: str = "root",
    ) -> 'Tree':
        """
        Build a tree from (label_path, datum) rows.

        Each label path runs from the outermost group to the leaf and excludes
        the root. Rows sharing a path are summed into one leaf.
        """
        tree = cls()
        root = tree.add_root(root_label)
        lookup: Dict[Tuple[str, ...], Node] = {(): root}
        for labels, datum in rows:
            key: Tuple[str, ...] = ()
            node = root
            for label in labels:
                key = key + (str(label),)
                if key not in lookup:
                    lookup[key] = tree.add_child(node, str(label))
                node = lookup[key]
            if node is root:
                raise TreeStructureError("row with an empty label path")
            existing = tree._data.get(node.index)
            tree._data[node.index] = datum if existing is None else existing + datum
        return tree
