#
import numpy as np
import pytest
from scipy.spatial.distance import pdist

from permls.routing import EdgeWeightStore, select_kind
from permls.utils import CapacityError, RangeError, PreconditionError


@pytest.mark.parametrize("max_magnitude, kind", [
    (0, "uint8"),
    (100, "uint8"),
    (255, "uint8"),
    (256, "uint16"),
    (300, "uint16"),
    (2**16 - 1, "uint16"),
    (2**16, "uint32"),
    (2**32, "uint64"),
    (2**64 - 1, "uint64"),
    (12.5, "uint8"),
])
def test_select_narrowest_integral_kind(max_magnitude, kind):
    assert select_kind(max_magnitude).name == kind


def test_select_float_kind():
    assert select_kind(12.5, allow_float=True).name == "float32"
    assert select_kind(1e300, allow_float=True).name == "float64"


@pytest.mark.parametrize("max_magnitude, allow_float", [
    (2**64, False),
    (float("inf"), False),
    (float("inf"), True),
])
def test_select_kind_capacity(max_magnitude, allow_float):
    with pytest.raises(CapacityError):
        select_kind(max_magnitude, allow_float=allow_float)


def test_select_kind_negative():
    with pytest.raises(ValueError):
        select_kind(-1)


@pytest.mark.parametrize("symmetric, n, max_magnitude", [
    (True, 2, 128),
    (False, 64, 127),
    (False, 13, 32768),
    (True, 17, 2**20),
    (True, 9, 2**40),
])
def test_round_trip(symmetric, n, max_magnitude):
    rnd = np.random.default_rng(n)
    store = EdgeWeightStore.create(n, symmetric=symmetric, max_magnitude=max_magnitude)
    expected = {}
    for i in range(n):
        for j in range(n):
            if symmetric and i >= j:
                continue
            v = int(rnd.integers(0, max_magnitude, endpoint=True))
            store.set(i, j, v)
            expected[(i, j)] = v
    for (i, j), v in expected.items():
        assert store.get(i, j) == v
        if symmetric:
            assert store.get(j, i) == v
            assert store[j, i] == v


def test_symmetric_storage_footprint():
    store = EdgeWeightStore.create(10, symmetric=True, max_magnitude=100)
    assert store.kind == "uint8"
    assert store.nbytes == 10 * 9 // 2
    store = EdgeWeightStore.create(10, symmetric=False, max_magnitude=300)
    assert store.kind == "uint16"
    assert store.nbytes == 2 * 10 * 10


def test_symmetric_set_updates_both_directions():
    store = EdgeWeightStore.create(5, symmetric=True, max_magnitude=100)
    store.set(3, 1, 42)
    assert store.get(1, 3) == 42
    assert store.get(3, 1) == 42


def test_asymmetric_directions_are_independent():
    store = EdgeWeightStore.create(5, symmetric=False, max_magnitude=100)
    store.set(3, 1, 42)
    store.set(1, 3, 7)
    assert store.get(3, 1) == 42
    assert store.get(1, 3) == 7


def test_diagonal_of_symmetric_store():
    store = EdgeWeightStore.create(4, symmetric=True, max_magnitude=100)
    assert store.get(2, 2) == 0
    store.set(2, 2, 0)
    with pytest.raises(PreconditionError):
        store.set(2, 2, 5)


def test_value_exceeding_kind():
    store = EdgeWeightStore.create(4, symmetric=True, max_magnitude=100)
    assert store.max_value == 255
    store.set(0, 1, 255)
    with pytest.raises(RangeError):
        store.set(0, 1, 300)
    with pytest.raises(RangeError):
        store.set(0, 1, -1)
    # a wider kind is selected if declared up front
    store = EdgeWeightStore.create(4, symmetric=True, max_magnitude=300)
    store.set(0, 1, 300)
    assert store.get(0, 1) == 300


def test_non_integral_value_in_integral_store():
    store = EdgeWeightStore.create(4, symmetric=True, max_magnitude=100)
    store.set(0, 1, 3.0)
    assert store.get(0, 1) == 3
    with pytest.raises(RangeError):
        store.set(0, 1, 3.5)


def test_range_error_is_value_error():
    store = EdgeWeightStore.create(4, symmetric=True, max_magnitude=100)
    with pytest.raises(ValueError):
        store.set(0, 1, 1000)


@pytest.mark.parametrize("i, j", [(-1, 0), (0, 4), (4, 4), (1.0, 2)])
def test_node_out_of_range(i, j):
    store = EdgeWeightStore.create(4, symmetric=False, max_magnitude=100)
    with pytest.raises(PreconditionError):
        store.get(i, j)
    with pytest.raises(PreconditionError):
        store.set(i, j, 1)


def test_float_store():
    store = EdgeWeightStore.create(3, symmetric=False, max_magnitude=10.5, allow_float=True)
    assert store.kind == "float32"
    assert not store.is_integral
    store.set(0, 2, 1.25)
    store.set(2, 0, 0.5)
    assert store.get(0, 2) == 1.25
    assert store.get(2, 0) == 0.5
    with pytest.raises(RangeError):
        store.set(0, 1, float("nan"))


def test_from_matrix_infers_symmetry(square_store):
    assert square_store.symmetric
    assert square_store.kind == "uint8"
    mat = np.array([[0, 1, 5], [2, 0, 1], [1, 9, 0]])
    store = EdgeWeightStore.from_matrix(mat)
    assert not store.symmetric
    assert store.get(0, 2) == 5
    assert store.get(2, 0) == 1
    assert np.array_equal(store.to_matrix(), mat)


def test_from_matrix_rejects_asymmetric_data():
    with pytest.raises(ValueError):
        EdgeWeightStore.from_matrix([[0, 1], [2, 0]], symmetric=True)


def test_to_matrix_symmetric(square_store):
    mat = square_store.to_matrix()
    assert mat.shape == (4, 4)
    assert np.array_equal(mat, mat.T)
    assert np.all(np.diag(mat) == 0)
    assert mat[0, 2] == 2 and mat[3, 0] == 1


def test_from_coords():
    coords = np.array([[0.0, 0.0], [3.0, 0.0], [3.0, 4.0]])
    store = EdgeWeightStore.from_coords(coords)
    assert store.is_integral
    assert store.get(0, 1) == 3
    assert store.get(1, 2) == 4
    assert store.get(0, 2) == 5
    store = EdgeWeightStore.from_coords(coords, scale=0.5, rounding=False)
    assert not store.is_integral
    assert store.get(2, 0) == pytest.approx(2.5)


def test_get_many_matches_get(store):
    rnd = np.random.default_rng(3)
    i = rnd.integers(0, store.n, 50)
    j = rnd.integers(0, store.n, 50)
    vals = store.get_many(i, j)
    assert vals.tolist() == [store.get(a, b) for a, b in zip(i.tolist(), j.tolist())]


def test_float_values_round_trip_exactly():
    store = EdgeWeightStore.create(3, symmetric=True, max_magnitude=10.0, allow_float=True)
    assert store.kind == "float32"
    with pytest.raises(RangeError):
        store.set(0, 1, 0.1)
    store.set(0, 1, 0.375)
    assert store.get(0, 1) == 0.375
    store = EdgeWeightStore.create(3, symmetric=True, max_magnitude=1e300, allow_float=True)
    store.set(0, 1, 0.1)
    assert store.get(0, 1) == 0.1


def test_float_kind_selected_from_values():
    assert select_kind(10.0, allow_float=True, values=np.array([0.5, 2.25])).name == "float32"
    assert select_kind(10.0, allow_float=True, values=np.array([0.1, 2.25])).name == "float64"
    mat = np.array([[0.0, 0.1, 2.5], [0.1, 0.0, 1.7], [2.5, 1.7, 0.0]])
    store = EdgeWeightStore.from_matrix(mat)
    assert store.kind == "float64"
    assert store.get(1, 0) == 0.1
    assert store.get(1, 2) == 1.7
    coords = np.array([[0.0, 0.0], [0.3, 0.1], [0.7, 0.9]])
    store = EdgeWeightStore.from_coords(coords, rounding=False)
    assert store.kind == "float64"
    assert store.get(0, 1) == pdist(coords)[0]


def test_from_matrix_rejects_symmetric_diagonal():
    mat = np.array([[1, 2, 3], [2, 0, 4], [3, 4, 0]])
    with pytest.raises(PreconditionError):
        EdgeWeightStore.from_matrix(mat)
    store = EdgeWeightStore.from_matrix(mat, symmetric=False)
    assert store.get(0, 0) == 1
