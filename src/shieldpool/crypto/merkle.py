"""
Sparse append-only Merkle tree over field elements.

This module provides the off-chain mirror of the pool's commitment tree. The
tree has a fixed depth, every leaf starts out as the EMPTY sentinel, and
leaves are only ever written at the next free index. Untouched subtrees are
represented by a precomputed zero-hash ladder, so storage grows with the
number of deposits rather than with the capacity.

``recompute_root`` is the one definition of "what is a valid path": the tree
uses it to issue paths and both statements use it to check them.
"""

import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Sequence, Tuple

from ..errors import (
    CapacityExceededError,
    IndexOutOfRangeError,
    StalePathError,
    ValidationError,
)
from .field import EMPTY_LEAF, hash_pair, require_scalar

logger = logging.getLogger(__name__)

MAX_DEPTH = 32


@lru_cache(maxsize=64)
def compute_zero_hashes(depth: int, empty_leaf: int = EMPTY_LEAF) -> Tuple[int, ...]:
    """Root of an all-EMPTY subtree for every height 0..depth."""
    zero_hashes = [empty_leaf]
    for _ in range(depth):
        zero_hashes.append(hash_pair(zero_hashes[-1], zero_hashes[-1]))
    return tuple(zero_hashes)


def empty_root(depth: int, empty_leaf: int = EMPTY_LEAF) -> int:
    """Root of an all-EMPTY tree of the given depth."""
    return compute_zero_hashes(depth, empty_leaf)[depth]


def recompute_root(leaf: int, index: int, siblings: Sequence[int]) -> int:
    """
    Walk from a leaf to the root along an authentication path.

    At level ``i`` bit ``i`` of ``index`` selects the order: 0 means the
    running node is the left child (``hash(node, sibling)``), 1 means it is
    the right child (``hash(sibling, node)``).

    Args:
        leaf: leaf value
        index: leaf position, must be below 2 ** len(siblings)
        siblings: sibling hashes from the leaf level upward

    Returns:
        The root implied by (leaf, index, siblings)
    """
    depth = len(siblings)
    if not isinstance(index, int) or isinstance(index, bool):
        raise IndexOutOfRangeError("Leaf index must be an integer", index=index)
    if index < 0 or index >= (1 << depth):
        raise IndexOutOfRangeError(
            f"Leaf index {index} does not fit a path of depth {depth}",
            index=index,
            limit=1 << depth,
        )

    node = leaf
    for level, sibling in enumerate(siblings):
        if (index >> level) & 1:
            node = hash_pair(sibling, node)
        else:
            node = hash_pair(node, sibling)
    return node


@dataclass(frozen=True)
class MerklePath:
    """Authentication path for one leaf, tagged with the tree state it came from."""

    leaf: int
    index: int
    siblings: Tuple[int, ...]
    root: int
    version: int

    @property
    def depth(self) -> int:
        return len(self.siblings)

    def index_bits(self) -> List[int]:
        """Position bits from the leaf level upward."""
        return [(self.index >> level) & 1 for level in range(self.depth)]

    def compute_root(self, leaf: int = None) -> int:
        """Recompute the root, optionally for a different leaf value."""
        return recompute_root(self.leaf if leaf is None else leaf, self.index, self.siblings)

    def verify(self) -> bool:
        """Check that the path reproduces the root it was issued with."""
        return self.compute_root() == self.root


@dataclass(frozen=True)
class PendingInsertion:
    """A not-yet-applied insertion at the next free index.

    ``path`` authenticates the EMPTY leaf at ``index`` under ``old_root``;
    the same siblings take ``value`` to ``new_root``.
    """

    value: int
    index: int
    path: MerklePath
    old_root: int
    new_root: int

    @property
    def version(self) -> int:
        return self.path.version


@dataclass(frozen=True)
class TreeSnapshot:
    """Point-in-time summary of a tree."""

    root: int
    next_index: int
    depth: int
    version: int

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def is_full(self) -> bool:
        return self.next_index >= self.capacity


class IncrementalMerkleTree:
    """Fixed-depth append-only Merkle tree with sparse node storage."""

    def __init__(self, depth: int = 20, empty_leaf: int = EMPTY_LEAF):
        """
        Initialize an empty tree.

        Args:
            depth: number of levels between the leaves and the root
            empty_leaf: sentinel value of unoccupied leaves
        """
        if not isinstance(depth, int) or not 1 <= depth <= MAX_DEPTH:
            raise ValidationError(
                f"Tree depth must be between 1 and {MAX_DEPTH}",
                field="depth",
                value=depth,
            )
        require_scalar(empty_leaf, "empty_leaf")

        self.depth = depth
        self.empty_leaf = empty_leaf
        self.zero_hashes = compute_zero_hashes(depth, empty_leaf)
        # _nodes[level][position]; level 0 holds leaves, level ``depth`` the root.
        self._nodes: List[Dict[int, int]] = [{} for _ in range(depth + 1)]
        self._next_index = 0
        self._version = 0
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def next_index(self) -> int:
        with self._lock:
            return self._next_index

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def root(self) -> int:
        with self._lock:
            return self._node(self.depth, 0)

    @property
    def empty_root(self) -> int:
        return self.zero_hashes[self.depth]

    def __len__(self) -> int:
        return self.next_index

    def _node(self, level: int, position: int) -> int:
        return self._nodes[level].get(position, self.zero_hashes[level])

    def _siblings(self, index: int) -> Tuple[int, ...]:
        return tuple(
            self._node(level, (index >> level) ^ 1) for level in range(self.depth)
        )

    def _check_capacity(self) -> None:
        if self._next_index >= self.capacity:
            raise CapacityExceededError(
                f"Tree of depth {self.depth} is full ({self.capacity} leaves)",
                capacity=self.capacity,
                next_index=self._next_index,
            )

    def insert(self, value: int) -> int:
        """
        Append a leaf at the next free index.

        Every path issued before this call for a leaf sharing an ancestor
        with the new one is stale afterwards.

        Returns:
            The index the value was written to
        """
        require_scalar(value, "leaf")
        with self._lock:
            self._check_capacity()
            index = self._next_index

            node = value
            self._nodes[0][index] = node
            position = index
            for level in range(self.depth):
                sibling = self._node(level, position ^ 1)
                if position & 1:
                    node = hash_pair(sibling, node)
                else:
                    node = hash_pair(node, sibling)
                position >>= 1
                self._nodes[level + 1][position] = node

            self._next_index += 1
            self._version += 1
            logger.debug("Inserted leaf %d, tree version %d", index, self._version)
            return index

    def prepare_insert(self, value: int) -> PendingInsertion:
        """Describe the insertion of ``value`` at the next index without applying it."""
        require_scalar(value, "leaf")
        with self._lock:
            self._check_capacity()
            index = self._next_index
            old_root = self._node(self.depth, 0)
            path = MerklePath(
                leaf=self._node(0, index),
                index=index,
                siblings=self._siblings(index),
                root=old_root,
                version=self._version,
            )

        return PendingInsertion(
            value=value,
            index=index,
            path=path,
            old_root=old_root,
            new_root=path.compute_root(value),
        )

    def path_to(self, index: int) -> MerklePath:
        """Current authentication path for an occupied leaf."""
        with self._lock:
            if not isinstance(index, int) or index < 0 or index >= self.capacity:
                raise IndexOutOfRangeError(
                    f"Index {index} outside tree capacity {self.capacity}",
                    index=index,
                    limit=self.capacity,
                )
            if index >= self._next_index:
                raise IndexOutOfRangeError(
                    f"Index {index} has not been filled (next index {self._next_index})",
                    index=index,
                    limit=self._next_index,
                )
            return MerklePath(
                leaf=self._node(0, index),
                index=index,
                siblings=self._siblings(index),
                root=self._node(self.depth, 0),
                version=self._version,
            )

    def leaf(self, index: int) -> int:
        """Leaf value at ``index`` (EMPTY for unfilled positions)."""
        if not isinstance(index, int) or not 0 <= index < self.capacity:
            raise IndexOutOfRangeError(
                f"Index {index} outside tree capacity {self.capacity}",
                index=index,
                limit=self.capacity,
            )
        with self._lock:
            return self._node(0, index)

    def leaves(self) -> List[int]:
        """All filled leaves in insertion order."""
        with self._lock:
            return [self._nodes[0][i] for i in range(self._next_index)]

    def ensure_current(self, path: MerklePath) -> None:
        """Raise StalePathError unless ``path`` was issued for the current tree."""
        with self._lock:
            if path.version != self._version or path.root != self._node(self.depth, 0):
                raise StalePathError(
                    f"Path for leaf {path.index} was computed at version "
                    f"{path.version}, tree is at version {self._version}",
                    path_version=path.version,
                    tree_version=self._version,
                )

    def snapshot(self) -> TreeSnapshot:
        """Consistent (root, next_index, depth, version) view."""
        with self._lock:
            return TreeSnapshot(
                root=self._node(self.depth, 0),
                next_index=self._next_index,
                depth=self.depth,
                version=self._version,
            )

    def __str__(self) -> str:
        return f"IncrementalMerkleTree(depth={self.depth}, leaves={self.next_index}, root={self.root:#x})"

    def __repr__(self) -> str:
        return f"IncrementalMerkleTree(depth={self.depth}, leaves={self.next_index})"
