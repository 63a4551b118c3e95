#
from typing import Optional, Iterator, Tuple, Union, Dict, Type

import numpy as np

from permls.routing import EdgeWeightStore, Tour

__all__ = [
    "Neighborhood",
    "TwoOptNeighborhood",
    "SwapNeighborhood",
    "InsertionNeighborhood",
    "OrOptNeighborhood",
    "NEIGHBORHOODS",
    "get_neighborhood",
]

Move = Tuple[int, int]


class Neighborhood:
    """
    Set of tours reachable from a tour by one structural edit.

    A move is a pair of tour positions. Neighborhoods only evaluate
    moves via the O(1) delta functions of the tour and never copy it.
    """
    NAME = None

    def __repr__(self):
        return f"{self.__class__.__name__}()"

    def moves(self, tour: Tour) -> Iterator[Move]:
        raise NotImplementedError

    def delta(self, tour: Tour, store: EdgeWeightStore, move: Move) -> Union[int, float]:
        raise NotImplementedError

    def apply(self, tour: Tour, move: Move):
        raise NotImplementedError

    def random_move(self, tour: Tour, rnd: np.random.Generator) -> Optional[Move]:
        """Sample a move uniformly from the neighborhood (None if it is empty)."""
        moves = list(self.moves(tour))
        if len(moves) == 0:
            return None
        return moves[rnd.integers(0, len(moves))]


class TwoOptNeighborhood(Neighborhood):
    """Reversal of a segment of at least 2 and at most n-1 nodes."""
    NAME = "two_opt"

    def moves(self, tour: Tour) -> Iterator[Move]:
        n = len(tour)
        for i in range(n - 1):
            for j in range(i + 1, min(n, i + n - 1)):
                yield i, j

    def delta(self, tour: Tour, store: EdgeWeightStore, move: Move) -> Union[int, float]:
        return tour.reverse_delta(store, *move)

    def apply(self, tour: Tour, move: Move):
        tour.reverse_segment(*move)

    def random_move(self, tour: Tour, rnd: np.random.Generator) -> Optional[Move]:
        n = len(tour)
        if n < 3:
            return None
        while True:
            i, j = sorted(rnd.choice(n, size=2, replace=False).tolist())
            if j - i < n - 1:
                return i, j


class SwapNeighborhood(Neighborhood):
    """Exchange of the nodes at two positions."""
    NAME = "swap"

    def moves(self, tour: Tour) -> Iterator[Move]:
        n = len(tour)
        for i in range(n - 1):
            for j in range(i + 1, n):
                yield i, j

    def delta(self, tour: Tour, store: EdgeWeightStore, move: Move) -> Union[int, float]:
        return tour.swap_delta(store, *move)

    def apply(self, tour: Tour, move: Move):
        tour.swap(*move)

    def random_move(self, tour: Tour, rnd: np.random.Generator) -> Optional[Move]:
        n = len(tour)
        if n < 2:
            return None
        i, j = rnd.choice(n, size=2, replace=False).tolist()
        return i, j


class InsertionNeighborhood(Neighborhood):
    """Removal of a single node and its reinsertion at another position (or-opt)."""
    NAME = "insertion"

    def moves(self, tour: Tour) -> Iterator[Move]:
        n = len(tour)
        for i in range(n):
            for j in range(n):
                # j == i is no move, |i-j| == n-1 only rotates the cycle
                if i != j and abs(i - j) != n - 1:
                    yield i, j

    def delta(self, tour: Tour, store: EdgeWeightStore, move: Move) -> Union[int, float]:
        return tour.move_delta(store, *move)

    def apply(self, tour: Tour, move: Move):
        tour.move(*move)

    def random_move(self, tour: Tour, rnd: np.random.Generator) -> Optional[Move]:
        n = len(tour)
        if n < 3:
            return None
        while True:
            i, j = rnd.choice(n, size=2, replace=False).tolist()
            if abs(i - j) != n - 1:
                return i, j


class OrOptNeighborhood(Neighborhood):
    """Move of a block of consecutive nodes to another position."""
    NAME = "or_opt"

    def __init__(self, block_size: int = 2):
        assert block_size >= 1
        self.block_size = block_size

    def __repr__(self):
        return f"{self.__class__.__name__}(block_size={self.block_size})"

    def moves(self, tour: Tour) -> Iterator[Move]:
        n = len(tour)
        for i in range(n):
            for p in range(n - self.block_size - 1):
                yield i, p

    def delta(self, tour: Tour, store: EdgeWeightStore, move: Move) -> Union[int, float]:
        return tour.block_move_delta(store, move[0], self.block_size, move[1])

    def apply(self, tour: Tour, move: Move):
        tour.block_move(move[0], self.block_size, move[1])

    def random_move(self, tour: Tour, rnd: np.random.Generator) -> Optional[Move]:
        n = len(tour)
        if n < self.block_size + 2:
            return None
        return int(rnd.integers(0, n)), int(rnd.integers(0, n - self.block_size - 1))


NEIGHBORHOODS: Dict[str, Type[Neighborhood]] = {
    TwoOptNeighborhood.NAME: TwoOptNeighborhood,
    SwapNeighborhood.NAME: SwapNeighborhood,
    InsertionNeighborhood.NAME: InsertionNeighborhood,
    OrOptNeighborhood.NAME: OrOptNeighborhood,
}


def get_neighborhood(nbh: Union[str, Neighborhood]) -> Neighborhood:
    if isinstance(nbh, Neighborhood):
        return nbh
    try:
        return NEIGHBORHOODS[nbh.lower()]()
    except KeyError:
        raise ValueError(f"unknown neighborhood: '{nbh}'. "
                         f"Available: {list(NEIGHBORHOODS.keys())}")
