#
import logging
from typing import Optional, Union, List, Iterator, Tuple

import numpy as np

from permls.routing.edge_data import EdgeWeightStore
from permls.utils.errors import PreconditionError, InvariantError

__all__ = ["Tour", "is_permutation"]
logger = logging.getLogger(__name__)

Number = Union[int, float]


def is_permutation(nodes: Union[np.ndarray, List[int]], n: Optional[int] = None) -> bool:
    """Check if nodes contains every index in [0, n) exactly once."""
    nodes = np.asarray(nodes)
    if nodes.ndim != 1 or not np.issubdtype(nodes.dtype, np.integer):
        return False
    n = len(nodes) if n is None else n
    if len(nodes) != n:
        return False
    if n == 0:
        return True
    if nodes.min() < 0 or nodes.max() >= n:
        return False
    return bool(np.all(np.bincount(nodes, minlength=n) == 1))


class Tour:
    """
    Cyclic visiting order of the n nodes of a TSP instance.

    The tour caches its length w.r.t. the store it was last evaluated on.
    All structural edits keep the cache up to date incrementally, so a
    2-opt move on a symmetric store costs O(1) besides the reversal itself.
    Positions are reduced modulo n to support cyclic addressing.

    Args:
        nodes: explicit ordering of the node indices
        validate: check that the ordering is a permutation
    """
    def __init__(self,
                 nodes: Union[np.ndarray, List[int]],
                 validate: bool = True):
        if validate and not is_permutation(nodes):
            raise PreconditionError(f"ordering is not a permutation of [0, {len(nodes)}).")
        self._nodes = np.array(nodes, dtype=np.int64)
        self._length = None
        self._store = None

    @classmethod
    def identity(cls, n: int) -> "Tour":
        return cls(np.arange(n), validate=False)

    @classmethod
    def random(cls,
               n: int,
               seed: Optional[int] = None,
               rnd: Optional[np.random.Generator] = None) -> "Tour":
        """Uniformly random permutation of n nodes."""
        rnd = np.random.default_rng(seed) if rnd is None else rnd
        return cls(rnd.permutation(n), validate=False)

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, pos: int) -> int:
        return int(self._nodes[self._pos(pos)])

    def __iter__(self) -> Iterator[int]:
        return iter(self._nodes.tolist())

    def __eq__(self, other) -> bool:
        if not isinstance(other, Tour):
            return NotImplemented
        return np.array_equal(self._nodes, other._nodes)

    def __repr__(self) -> str:
        if len(self) > 10:
            nodes = f"ndarray_{[len(self)]}"
        else:
            nodes = self._nodes.tolist()
        return f"{self.__class__.__name__}(nodes={nodes}, length={self._length})"

    @property
    def n(self) -> int:
        return len(self._nodes)

    @property
    def nodes(self) -> np.ndarray:
        """Read-only view of the visiting order."""
        view = self._nodes.view()
        view.flags.writeable = False
        return view

    def tolist(self) -> List[int]:
        return self._nodes.tolist()

    def copy(self) -> "Tour":
        tour = Tour(self._nodes, validate=False)
        tour._length = self._length
        tour._store = self._store
        return tour

    def is_permutation(self) -> bool:
        return is_permutation(self._nodes)

    def check(self):
        """Raise an InvariantError if the tour is not a permutation anymore."""
        if not self.is_permutation():
            raise InvariantError(f"tour {self._nodes.tolist()} is not a permutation.")

    def edges(self) -> List[Tuple[int, int]]:
        """Cyclic list of (node, successor) pairs."""
        return list(zip(self._nodes.tolist(), np.roll(self._nodes, -1).tolist()))

    def _pos(self, pos) -> int:
        if not isinstance(pos, (int, np.integer)) or isinstance(pos, bool):
            raise PreconditionError(f"position must be an integer, got {type(pos).__name__}.")
        if self.n == 0:
            raise PreconditionError(f"cannot address a position of an empty tour.")
        return int(pos) % self.n

    def length(self, store: EdgeWeightStore) -> Number:
        """Total cyclic tour length (cached)."""
        if self._store is store and self._length is not None:
            return self._length
        if store.n != self.n:
            raise PreconditionError(f"tour over {self.n} nodes evaluated on store over {store.n} nodes.")
        self._length = store.sum_many(self._nodes, np.roll(self._nodes, -1))
        self._store = store
        return self._length

    def _update_length(self, delta: Number):
        if self._length is not None:
            self._length += delta

    # === 2-opt: segment reversal === #
    def _segment(self, i: int, j: int) -> np.ndarray:
        """Positions of the cyclic segment from i to j (inclusive)."""
        seg_len = (j - i) % self.n + 1
        return (i + np.arange(seg_len)) % self.n

    def reverse_delta(self, store: EdgeWeightStore, i: int, j: int) -> Number:
        """Change of tour length if the cyclic segment [i, j] was reversed."""
        i, j = self._pos(i), self._pos(j)
        n = self.n
        seg_len = (j - i) % n + 1
        if seg_len <= 1:
            return 0
        nd = self._nodes
        if store.symmetric:
            if seg_len >= n - 1:
                # reverses the whole cycle (up to rotation)
                return 0
            a, b = nd[i - 1], nd[i]
            c, d = nd[j], nd[(j + 1) % n]
            return (store.get(a, c) + store.get(b, d)) - (store.get(a, b) + store.get(c, d))
        # asymmetric: internal edges change direction
        seg = nd[self._segment(i, j)]
        inner = store.sum_many(seg[1:], seg[:-1]) - store.sum_many(seg[:-1], seg[1:])
        if seg_len == n:
            return inner + store.get(seg[0], seg[-1]) - store.get(seg[-1], seg[0])
        a, d = nd[i - 1], nd[(j + 1) % n]
        return (inner +
                store.get(a, seg[-1]) + store.get(seg[0], d) -
                store.get(a, seg[0]) - store.get(seg[-1], d))

    def reverse_segment(self, i: int, j: int):
        """Reverse the cyclic subsequence between positions i and j (inclusive)."""
        i, j = self._pos(i), self._pos(j)
        if self._length is not None:
            self._update_length(self.reverse_delta(self._store, i, j))
        idx = self._segment(i, j)
        self._nodes[idx] = self._nodes[idx[::-1]]

    def shuffle_segment(self, i: int, j: int, rnd: np.random.Generator):
        """Randomly permute the nodes of the cyclic segment [i, j].
        The cached length is dropped, since every edge of the segment may change."""
        i, j = self._pos(i), self._pos(j)
        idx = self._segment(i, j)
        self._nodes[idx] = rnd.permutation(self._nodes[idx])
        self._length = None

    # === exchange of two nodes === #
    def swap_delta(self, store: EdgeWeightStore, i: int, j: int) -> Number:
        """Change of tour length if the nodes at positions i and j were exchanged."""
        i, j = self._pos(i), self._pos(j)
        if i == j:
            return 0
        n = self.n
        nd = self._nodes
        # edge at position e connects nodes at e and e+1
        edge_pos = {(i - 1) % n, i, (j - 1) % n, j}

        def node_at(p: int) -> int:
            if p == i:
                return nd[j]
            if p == j:
                return nd[i]
            return nd[p]

        old = sum(store.get(nd[e], nd[(e + 1) % n]) for e in edge_pos)
        new = sum(store.get(node_at(e), node_at((e + 1) % n)) for e in edge_pos)
        return new - old

    def swap(self, i: int, j: int):
        """Exchange the nodes at positions i and j."""
        i, j = self._pos(i), self._pos(j)
        if self._length is not None:
            self._update_length(self.swap_delta(self._store, i, j))
        self._nodes[[i, j]] = self._nodes[[j, i]]

    # === or-opt: move of a single node === #
    def move_delta(self, store: EdgeWeightStore, i: int, j: int) -> Number:
        """Change of tour length if the node at position i was moved to position j."""
        i, j = self._pos(i), self._pos(j)
        n = self.n
        if i == j or abs(i - j) == n - 1:
            # no change or rotation of the complete cycle
            return 0
        nd = self._nodes
        x = nd[i]
        p, q = nd[i - 1], nd[(i + 1) % n]
        if i < j:
            u, v = nd[j], nd[(j + 1) % n]
        else:
            u, v = nd[j - 1], nd[j]
        return (store.get(p, q) - store.get(p, x) - store.get(x, q) +
                store.get(u, x) + store.get(x, v) - store.get(u, v))

    def move(self, i: int, j: int):
        """Remove the node at position i and reinsert it such that it ends at position j."""
        i, j = self._pos(i), self._pos(j)
        if self._length is not None:
            self._update_length(self.move_delta(self._store, i, j))
        if i < j:
            self._nodes[i:j + 1] = np.roll(self._nodes[i:j + 1], -1)
        elif i > j:
            self._nodes[j:i + 1] = np.roll(self._nodes[j:i + 1], 1)

    # === or-opt: move of a block of consecutive nodes === #
    def _block(self, i: int, size: int, p: int) -> Tuple[np.ndarray, np.ndarray]:
        """Split the tour into the block of size nodes starting at position i
        and the remaining nodes in cyclic order behind the block."""
        n = self.n
        if not isinstance(size, (int, np.integer)) or not 1 <= size <= n - 2:
            raise PreconditionError(f"block size must be in [1, {n - 2}], got {size}.")
        if not isinstance(p, (int, np.integer)) or not 0 <= p <= n - size - 2:
            raise PreconditionError(f"insertion index must be in [0, {n - size - 2}], got {p}.")
        seq = np.roll(self._nodes, -self._pos(i))
        return seq[:size], seq[size:]

    def block_move_delta(self, store: EdgeWeightStore, i: int, size: int, p: int) -> Number:
        """Change of tour length if the block of size nodes starting at position i
        was reinserted behind the p-th of the remaining nodes."""
        block, rest = self._block(i, size, p)
        head, tail = block[0], block[-1]
        return (store.get(rest[-1], rest[0]) + store.get(rest[p], head) + store.get(tail, rest[p + 1]) -
                store.get(rest[-1], head) - store.get(tail, rest[0]) - store.get(rest[p], rest[p + 1]))

    def block_move(self, i: int, size: int, p: int):
        """Reinsert the block of size nodes starting at position i behind the p-th
        of the remaining nodes (counted in cyclic order from the block end)."""
        block, rest = self._block(i, size, p)
        if self._length is not None:
            self._update_length(self.block_move_delta(self._store, i, size, p))
        self._nodes[:] = np.concatenate((rest[:p + 1], block, rest[p + 1:]))
