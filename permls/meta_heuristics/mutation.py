#
from typing import Union, Dict, Type

import numpy as np

from permls.routing import Tour

__all__ = [
    "Mutation",
    "ReversalMutation",
    "SwapMutation",
    "InsertionMutation",
    "ScrambleMutation",
    "MUTATIONS",
    "get_mutation",
]


class Mutation:
    """Unary operator editing an (exclusively owned) offspring tour in place."""
    NAME = None

    def __repr__(self):
        return f"{self.__class__.__name__}()"

    def __call__(self, tour: Tour, rnd: np.random.Generator):
        return self.mutate(tour, rnd)

    def mutate(self, tour: Tour, rnd: np.random.Generator):
        raise NotImplementedError

    @staticmethod
    def _positions(tour: Tour, rnd: np.random.Generator):
        i, j = rnd.choice(len(tour), size=2, replace=False).tolist()
        return i, j


class ReversalMutation(Mutation):
    """Reverse a random segment (random 2-opt move)."""
    NAME = "reversal"

    def mutate(self, tour, rnd):
        if len(tour) > 2:
            tour.reverse_segment(*self._positions(tour, rnd))


class SwapMutation(Mutation):
    """Exchange two random nodes."""
    NAME = "swap"

    def mutate(self, tour, rnd):
        if len(tour) > 1:
            tour.swap(*self._positions(tour, rnd))


class InsertionMutation(Mutation):
    """Move a random node to a random position."""
    NAME = "insertion"

    def mutate(self, tour, rnd):
        if len(tour) > 2:
            tour.move(*self._positions(tour, rnd))


class ScrambleMutation(Mutation):
    """Randomly shuffle the nodes of a random (non-wrapping) segment."""
    NAME = "scramble"

    def mutate(self, tour, rnd):
        if len(tour) > 2:
            i, j = sorted(self._positions(tour, rnd))
            tour.shuffle_segment(i, j, rnd)


MUTATIONS: Dict[str, Type[Mutation]] = {
    ReversalMutation.NAME: ReversalMutation,
    SwapMutation.NAME: SwapMutation,
    InsertionMutation.NAME: InsertionMutation,
    ScrambleMutation.NAME: ScrambleMutation,
}


def get_mutation(mutation: Union[str, Mutation, None]) -> Union[Mutation, None]:
    if mutation is None or isinstance(mutation, Mutation):
        return mutation
    try:
        return MUTATIONS[mutation.lower()]()
    except KeyError:
        raise ValueError(f"unknown mutation: '{mutation}'. "
                         f"Available: {list(MUTATIONS.keys())}")
