#
import numpy as np
import pytest

from permls.routing import EdgeWeightStore, Tour
from permls.utils import InvariantError, PreconditionError
from permls.meta_heuristics import Crossover, CROSSOVERS, get_crossover, SavingsCrossover


def undirected_edges(tour: Tour) -> set:
    return {(min(u, v), max(u, v)) for u, v in tour.edges()}


@pytest.mark.parametrize("name", list(CROSSOVERS.keys()))
def test_offspring_is_permutation(store, name):
    op = get_crossover(name)
    rnd = np.random.default_rng(0)
    for s in range(20):
        a = Tour.random(store.n, rnd=rnd)
        b = Tour.random(store.n, rnd=rnd)
        child = op.combine(a, b, store, rnd)
        assert child.is_permutation()
        assert len(child) == store.n


@pytest.mark.parametrize("name", list(CROSSOVERS.keys()))
@pytest.mark.parametrize("n", [1, 2, 3, 4, 5])
def test_tiny_instances(name, n):
    store = EdgeWeightStore.from_coords(np.random.default_rng(n).uniform(size=(n, 2)), scale=100)
    rnd = np.random.default_rng(n)
    child = get_crossover(name)(Tour.random(n, rnd=rnd), Tour.random(n, rnd=rnd), store, rnd)
    assert child.is_permutation()


@pytest.mark.parametrize("name", ["savings", "erx"])
def test_identical_parents(euclidean_store, name):
    parent = Tour.random(euclidean_store.n, seed=3)
    child = get_crossover(name).combine(parent, parent.copy(), euclidean_store, np.random.default_rng(1))
    assert undirected_edges(child) == undirected_edges(parent)
    assert child.length(euclidean_store) == parent.length(euclidean_store)


def test_savings_only_uses_parent_edges_when_possible(square_store):
    a = Tour([0, 1, 2, 3])
    b = Tour([0, 1, 3, 2])
    rnd = np.random.default_rng(0)
    for _ in range(10):
        child = SavingsCrossover().combine(a, b, square_store, rnd)
        assert child.length(square_store) == 4


def test_savings_keeps_common_edges(euclidean_store):
    rnd = np.random.default_rng(5)
    a = Tour.random(euclidean_store.n, rnd=rnd)
    b = a.copy()
    b.reverse_segment(2, 6)
    child = SavingsCrossover().combine(a, b, euclidean_store, rnd)
    common = undirected_edges(a) & undirected_edges(b)
    assert common <= undirected_edges(child)


def test_parents_are_not_modified(euclidean_store):
    a = Tour.random(euclidean_store.n, seed=1)
    b = Tour.random(euclidean_store.n, seed=2)
    a_, b_ = a.tolist(), b.tolist()
    for name in CROSSOVERS:
        get_crossover(name).combine(a, b, euclidean_store, np.random.default_rng(0))
    assert a.tolist() == a_ and b.tolist() == b_


def test_size_mismatch(square_store):
    with pytest.raises(PreconditionError):
        SavingsCrossover().combine(Tour([0, 1, 2, 3]), Tour([0, 1, 2]), square_store)


class DuplicatingCrossover(Crossover):
    def _combine(self, a, b, store, rnd):
        child = a.copy()
        child[0] = child[1]
        return child


def test_invalid_offspring_is_detected(square_store):
    with pytest.raises(InvariantError):
        DuplicatingCrossover().combine(Tour([0, 1, 2, 3]), Tour([3, 2, 1, 0]), square_store)


def test_unknown_crossover():
    with pytest.raises(ValueError):
        get_crossover("pmx")
