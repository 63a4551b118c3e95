#
import numpy as np
import pytest

from permls.routing import EdgeWeightStore, TSPGenerator, build_store

SQUARE = [
    [0, 1, 2, 1],
    [1, 0, 1, 2],
    [2, 1, 0, 1],
    [1, 2, 1, 0],
]


@pytest.fixture
def square_store():
    """4 nodes on a unit square, the optimal tour has length 4."""
    return EdgeWeightStore.from_matrix(SQUARE)


@pytest.fixture
def euclidean_store():
    instance = TSPGenerator(seed=1234, scale=100.0).generate(sample_size=1, graph_size=15)[0]
    return build_store(instance)


@pytest.fixture
def asymmetric_store():
    rnd = np.random.default_rng(7)
    mat = rnd.integers(1, 500, size=(12, 12))
    np.fill_diagonal(mat, 0)
    return EdgeWeightStore.from_matrix(mat, symmetric=False)


@pytest.fixture(params=["euclidean", "asymmetric"])
def store(request, euclidean_store, asymmetric_store):
    return euclidean_store if request.param == "euclidean" else asymmetric_store
