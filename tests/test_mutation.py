#
import numpy as np
import pytest

from permls.routing import Tour
from permls.meta_heuristics import MUTATIONS, get_mutation


@pytest.mark.parametrize("name", list(MUTATIONS.keys()))
def test_mutation_keeps_permutation(store, name):
    op = get_mutation(name)
    rnd = np.random.default_rng(0)
    tour = Tour.random(store.n, rnd=rnd)
    tour.length(store)
    changed = False
    for _ in range(50):
        before = tour.tolist()
        op(tour, rnd)
        changed = changed or tour.tolist() != before
        assert tour.is_permutation()
        assert tour.length(store) == Tour(tour.tolist()).length(store)
    assert changed


@pytest.mark.parametrize("name", list(MUTATIONS.keys()))
@pytest.mark.parametrize("n", [1, 2, 3])
def test_tiny_tours(name, n):
    tour = Tour.random(n, seed=n)
    get_mutation(name).mutate(tour, np.random.default_rng(n))
    assert tour.is_permutation()


def test_get_mutation():
    assert get_mutation(None) is None
    op = get_mutation("swap")
    assert get_mutation(op) is op
    with pytest.raises(ValueError):
        get_mutation("inversion")
