#
import logging
from enum import Enum
from typing import Optional, List, Union, Tuple

import numpy as np

from permls.routing import EdgeWeightStore, Tour
from permls.utils import Budget
from permls.meta_heuristics.neighborhoods import Neighborhood, OrOptNeighborhood, get_neighborhood

__all__ = [
    "ImprovementPolicy",
    "VNSState",
    "VariableNeighborhoodSearch",
    "run_vns",
]
logger = logging.getLogger(__name__)

DEFAULT_NBHS = ["two_opt", "swap", "insertion"]


class ImprovementPolicy(str, Enum):
    FIRST_IMPROVEMENT = "FIRST_IMPROVEMENT"     # accept first strictly improving neighbor
    BEST_IMPROVEMENT = "BEST_IMPROVEMENT"       # scan full nbh and accept the best if it improves


class VNSState(str, Enum):
    INIT = "INIT"
    EXPLORE = "EXPLORE"
    IMPROVED = "IMPROVED"
    EXHAUSTED = "EXHAUSTED"
    SHAKE = "SHAKE"
    TERMINATED = "TERMINATED"


class VariableNeighborhoodSearch:
    """
    Variable neighborhood search over permutations.

    Neighborhood k is explored with the configured improvement policy.
    After every improvement the search restarts at k=1, if neighborhood
    k is exhausted the next one is used, and when the last one
    (k == kmax) is exhausted the current tour is perturbed ("shaken") by
    random moves of that neighborhood before restarting at k=1.
    The best tour observed over the whole run is returned, since
    shaking may worsen the current tour.

    Args:
        kmax: number of neighborhoods to use, if it exceeds the number of configured
            neighborhoods, the deeper ones move blocks of 2, 3, ... consecutive nodes
        policy: improvement selection policy
        neighborhoods: ordered list of neighborhoods (names or instances) of increasing distance
        shake_strength: number of random moves per shake (default: kmax)
        shuffle: flag to scan the moves of a neighborhood in random order
        eps: a move must improve the tour length by more than eps to be accepted
        debug: flag to validate the tour after every move and log state transitions
    """
    def __init__(self,
                 kmax: Optional[int] = None,
                 policy: Union[str, ImprovementPolicy] = ImprovementPolicy.BEST_IMPROVEMENT,
                 neighborhoods: Optional[List[Union[str, Neighborhood]]] = None,
                 shake_strength: Optional[int] = None,
                 shuffle: bool = False,
                 eps: float = 1e-9,
                 debug: Union[bool, int] = False,
                 **kwargs):
        neighborhoods = DEFAULT_NBHS if neighborhoods is None else neighborhoods
        self.neighborhoods = [get_neighborhood(nbh) for nbh in neighborhoods]
        num_nbhs = len(self.neighborhoods)
        self.kmax = num_nbhs if kmax is None else int(kmax)
        if self.kmax < 1:
            raise ValueError(f"kmax must be >= 1, got {self.kmax}.")
        for k in range(num_nbhs, self.kmax):
            self.neighborhoods.append(OrOptNeighborhood(block_size=k - num_nbhs + 2))
        if isinstance(policy, str):
            policy = policy.upper()
            if not policy.endswith("_IMPROVEMENT"):     # allow short 'first' / 'best'
                policy = f"{policy}_IMPROVEMENT"
        self.policy = ImprovementPolicy(policy)
        self.shake_strength = shake_strength
        assert shake_strength is None or shake_strength > 0
        self.shuffle = shuffle
        assert eps >= 0
        self.eps = eps
        self.debug = int(debug)
        self._rnd = np.random.default_rng(1)

        self.state = None
        self.num_improvements = 0
        self.num_shakes = 0

    def seed(self, seed: Optional[int] = None):
        self._rnd = np.random.default_rng(seed)

    def _set_state(self, state: VNSState, k: int):
        self.state = state
        if self.debug:
            logger.debug(f"{state.value}(k={k})")

    def _explore(self,
                 nbh: Neighborhood,
                 tour: Tour,
                 store: EdgeWeightStore,
                 budget: Budget) -> Optional[Tuple[int, int]]:
        """Scan the neighborhood and return the accepted move (None if exhausted)."""
        moves = nbh.moves(tour)
        if self.shuffle:
            moves = list(moves)
            self._rnd.shuffle(moves)
        first = self.policy == ImprovementPolicy.FIRST_IMPROVEMENT
        best_move, best_delta = None, -self.eps
        num_evals = 0
        for move in moves:
            delta = nbh.delta(tour, store, move)
            num_evals += 1
            if delta < best_delta:
                best_move, best_delta = move, delta
                if first:
                    break
        budget.record_evaluation(num_evals)
        return best_move

    def _shake(self, nbh: Neighborhood, tour: Tour, k: int):
        """Perturb the tour by random moves of neighborhood nbh."""
        strength = k if self.shake_strength is None else self.shake_strength
        for _ in range(strength):
            move = nbh.random_move(tour, self._rnd)
            if move is None:
                break
            nbh.apply(tour, move)
        self.num_shakes += 1

    def run(self,
            initial_tour: Tour,
            store: EdgeWeightStore,
            budget: Budget) -> Tuple[Tour, Union[int, float]]:
        """Run the search until the budget is exhausted.

        Args:
            initial_tour: start solution (not modified)
            store: edge weights of the instance
            budget: computational budget, polled once per neighborhood scan

        Returns:
            best tour found and its length
        """
        budget.start()
        self.num_improvements = 0
        self.num_shakes = 0
        k = 1
        self._set_state(VNSState.INIT, k)

        current = initial_tour.copy()
        cur_cost = current.length(store)
        budget.record_evaluation()
        best, best_cost = current.copy(), cur_cost
        logger.info(f"VNS({self.policy.value}, kmax={self.kmax}) started with cost {cur_cost}.")

        while not budget.is_exhausted():
            self._set_state(VNSState.EXPLORE, k)
            nbh = self.neighborhoods[k-1]
            move = self._explore(nbh, current, store, budget)
            budget.record_iteration()

            if move is not None:
                self._set_state(VNSState.IMPROVED, k)
                nbh.apply(current, move)
                self.num_improvements += 1
                k = 1
            else:
                self._set_state(VNSState.EXHAUSTED, k)
                if k < self.kmax:
                    k += 1
                    continue
                self._set_state(VNSState.SHAKE, k)
                self._shake(nbh, current, k)
                budget.record_evaluation()
                k = 1

            if self.debug:
                current.check()
            cur_cost = current.length(store)
            if cur_cost < best_cost:
                best, best_cost = current.copy(), cur_cost

        self._set_state(VNSState.TERMINATED, k)
        logger.info(f"VNS finished after {budget.num_iterations} scans, "
                    f"{self.num_improvements} improvements and {self.num_shakes} shakes "
                    f"with best cost {best_cost}.")
        return best, best_cost


def run_vns(initial_tour: Tour,
            store: EdgeWeightStore,
            kmax: int,
            policy: Union[str, ImprovementPolicy],
            budget: Budget,
            seed: Optional[int] = None,
            **kwargs) -> Tuple[Tour, Union[int, float]]:
    """Convenience wrapper to configure and run a single VNS."""
    vns = VariableNeighborhoodSearch(kmax=kmax, policy=policy, **kwargs)
    vns.seed(seed)
    return vns.run(initial_tour, store, budget)


# ============= #
# ### TEST #### #
# ============= #
def _test(n: int = 30, seed: int = 1234, max_iterations: int = 200):
    from permls.routing import TSPGenerator, build_store
    instance = TSPGenerator(seed=seed).generate(sample_size=1, graph_size=n)[0]
    store = build_store(instance)
    for policy in ImprovementPolicy:
        tour = Tour.random(n, seed=seed)
        best, cost = run_vns(tour, store, kmax=3, policy=policy,
                             budget=Budget(max_iterations=max_iterations), seed=seed)
        assert best.is_permutation()
        assert cost <= tour.length(store)
        print(f"{policy.value}: {tour.length(store)} -> {cost}")
