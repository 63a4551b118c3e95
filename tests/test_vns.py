#
import pytest

from permls.routing import Tour
from permls.utils import Budget
from permls.meta_heuristics import (
    VariableNeighborhoodSearch,
    ImprovementPolicy,
    VNSState,
    TwoOptNeighborhood,
    run_vns,
)


@pytest.mark.parametrize("policy", ["FIRST_IMPROVEMENT", "BEST_IMPROVEMENT"])
@pytest.mark.parametrize("kmax", [2, 3])
@pytest.mark.parametrize("seed", range(5))
def test_square_converges(square_store, policy, kmax, seed):
    tour = Tour.random(4, seed=seed)
    best, cost = run_vns(tour, square_store, kmax=kmax, policy=policy,
                         budget=Budget(max_iterations=50), seed=seed)
    assert cost == 4
    assert best.is_permutation()
    assert best.length(square_store) == 4


@pytest.mark.parametrize("policy", list(ImprovementPolicy))
def test_never_worse_than_initial(store, policy):
    tour = Tour.random(store.n, seed=11)
    init_cost = tour.length(store)
    best, cost = run_vns(tour, store, kmax=3, policy=policy,
                         budget=Budget(max_iterations=100), seed=1)
    assert cost <= init_cost
    assert Tour(best.tolist()).length(store) == cost
    # the initial tour is not modified
    assert tour.length(store) == init_cost


def test_single_scan_policies(euclidean_store):
    store = euclidean_store
    tour = Tour.random(store.n, seed=2)
    init_cost = tour.length(store)
    nbh = TwoOptNeighborhood()
    deltas = [nbh.delta(tour, store, m) for m in nbh.moves(tour)]
    improving = [d for d in deltas if d < 0]
    assert len(improving) > 0

    vns = VariableNeighborhoodSearch(kmax=1, policy="best", neighborhoods=["two_opt"])
    _, cost = vns.run(tour, store, Budget(max_iterations=1))
    assert cost == init_cost + min(deltas)

    vns = VariableNeighborhoodSearch(kmax=1, policy="first", neighborhoods=["two_opt"])
    _, cost = vns.run(tour, store, Budget(max_iterations=1))
    assert cost == init_cost + improving[0]


class RecordingVNS(VariableNeighborhoodSearch):
    """Records the delta of every accepted move."""
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.accepted = []

    def _explore(self, nbh, tour, store, budget):
        move = super()._explore(nbh, tour, store, budget)
        if move is not None:
            self.accepted.append(nbh.delta(tour, store, move))
        return move


@pytest.mark.parametrize("policy", list(ImprovementPolicy))
def test_accepted_moves_strictly_improve(store, policy):
    vns = RecordingVNS(kmax=3, policy=policy)
    vns.seed(3)
    vns.run(Tour.random(store.n, seed=3), store, Budget(max_iterations=60))
    assert len(vns.accepted) > 0
    assert all(d < 0 for d in vns.accepted)
    assert vns.num_improvements == len(vns.accepted)


def test_exhausted_budget_returns_initial(euclidean_store):
    tour = Tour.random(euclidean_store.n, seed=4)
    budget = Budget(max_iterations=0)
    vns = VariableNeighborhoodSearch()
    best, cost = vns.run(tour, euclidean_store, budget)
    assert best == tour
    assert best is not tour
    assert cost == tour.length(euclidean_store)
    assert vns.state == VNSState.TERMINATED


def test_cancelled_budget(euclidean_store):
    budget = Budget(max_time=60)
    budget.cancel()
    tour = Tour.random(euclidean_store.n, seed=4)
    _, cost = run_vns(tour, euclidean_store, kmax=2, policy="best", budget=budget)
    assert cost == tour.length(euclidean_store)


def test_evaluation_budget(euclidean_store):
    budget = Budget(max_evaluations=500)
    vns = VariableNeighborhoodSearch(kmax=2)
    vns.run(Tour.random(euclidean_store.n, seed=4), euclidean_store, budget)
    assert budget.num_evaluations >= 500
    assert budget.num_iterations > 0


def test_shaking_escapes_local_optimum(euclidean_store):
    vns = VariableNeighborhoodSearch(kmax=1, neighborhoods=["two_opt"], shake_strength=3, debug=True)
    vns.seed(7)
    vns.run(Tour.random(euclidean_store.n, seed=7), euclidean_store, Budget(max_iterations=300))
    assert vns.num_shakes > 0


def test_shuffled_scan(store):
    tour = Tour.random(store.n, seed=8)
    best, cost = run_vns(tour, store, kmax=3, policy="first", shuffle=True,
                         budget=Budget(max_iterations=50), seed=8)
    assert best.is_permutation()
    assert cost <= tour.length(store)


@pytest.mark.parametrize("kmax", [0, -1])
def test_invalid_kmax(kmax):
    with pytest.raises(ValueError):
        VariableNeighborhoodSearch(kmax=kmax)


def test_invalid_configuration():
    with pytest.raises(ValueError):
        VariableNeighborhoodSearch(neighborhoods=["three_opt"])
    with pytest.raises(ValueError):
        VariableNeighborhoodSearch(policy="worst")


@pytest.mark.parametrize("policy", list(ImprovementPolicy))
def test_kmax_beyond_configured_neighborhoods(store, policy):
    vns = VariableNeighborhoodSearch(kmax=5, policy=policy)
    assert len(vns.neighborhoods) == 5
    assert [nbh.block_size for nbh in vns.neighborhoods[3:]] == [2, 3]
    vns.seed(9)
    tour = Tour.random(store.n, seed=9)
    best, cost = vns.run(tour, store, Budget(max_iterations=100))
    assert best.is_permutation()
    assert cost <= tour.length(store)
    assert Tour(best.tolist()).length(store) == cost


def test_run_vns_with_large_kmax(square_store):
    best, cost = run_vns(Tour([0, 2, 1, 3]), square_store, kmax=4, policy="first",
                         budget=Budget(max_iterations=50), seed=0)
    assert cost == 4
