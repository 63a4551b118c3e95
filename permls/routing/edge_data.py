#
import logging
import math
from typing import Optional, Union, Tuple, List

import numpy as np
from scipy.spatial.distance import pdist, squareform

from permls.utils.errors import CapacityError, RangeError, PreconditionError

__all__ = [
    "EdgeWeightStore",
    "INT_KINDS",
    "FLOAT_KINDS",
    "select_kind",
]
logger = logging.getLogger(__name__)

# candidate storage types, ordered from narrowest to widest
INT_KINDS = [np.uint8, np.uint16, np.uint32, np.uint64]
FLOAT_KINDS = [np.float32, np.float64]

Number = Union[int, float, np.integer, np.floating]


def _is_exact(values: np.ndarray, kind) -> bool:
    """Check if all values are exactly representable by the floating point kind."""
    if values.size == 0:
        return True
    values = values.astype(np.float64)
    return bool(np.all(values.astype(kind).astype(np.float64) == values))


def select_kind(max_magnitude: Number,
                allow_float: bool = False,
                values: Optional[np.ndarray] = None) -> np.dtype:
    """Select the narrowest numeric kind which is able to hold all values in [0, max_magnitude].

    A floating point kind is only selected if the known values
    survive a round trip through it unchanged.

    Args:
        max_magnitude: largest edge weight which will be stored
        allow_float: use a floating point kind to store non-integral weights
        values: optional weights which will be stored

    Returns:
        numpy dtype of the selected kind

    Raises:
        CapacityError: if no available kind covers max_magnitude
    """
    if isinstance(max_magnitude, np.generic):
        max_magnitude = max_magnitude.item()
    if max_magnitude is None or math.isnan(max_magnitude) or max_magnitude < 0:
        raise ValueError(f"max_magnitude must be a non-negative number, got {max_magnitude}.")
    if allow_float:
        for kind in FLOAT_KINDS:
            if max_magnitude > np.finfo(kind).max:
                continue
            if values is not None and not _is_exact(np.asarray(values), kind):
                continue
            return np.dtype(kind)
    else:
        # integral weights, so e.g. 12.5 needs a kind which holds 13
        if isinstance(max_magnitude, (float, np.floating)):
            if math.isinf(max_magnitude):
                raise CapacityError(f"no integral kind can hold an infinite max_magnitude.")
            max_magnitude = math.ceil(max_magnitude)
        for kind in INT_KINDS:
            if max_magnitude <= int(np.iinfo(kind).max):
                return np.dtype(kind)
    raise CapacityError(f"max_magnitude={max_magnitude} exceeds the largest available "
                        f"{'floating point' if allow_float else 'integral'} kind.")


class EdgeWeightStore:
    """
    Compact storage of the pairwise travel costs of a TSP instance.

    The storage dtype is selected at construction as the narrowest kind
    which can hold the declared maximum magnitude (see :func:`select_kind`).
    Symmetric stores only materialize the strict upper triangle in
    condensed (scipy ``pdist``) order, the diagonal always reads 0.
    Asymmetric stores keep a flat row-major n x n array.

    A populated store is read-only during search and can be shared by
    any number of concurrent readers. Writes are not synchronized.

    Args:
        n: number of nodes
        symmetric: flag if weight(i, j) == weight(j, i)
        max_magnitude: declared maximum edge weight
        allow_float: flag to store non-integral weights in a floating point kind
        values: weights which will be filled in, used to select an exact floating point kind
    """
    def __init__(self,
                 n: int,
                 symmetric: bool = True,
                 max_magnitude: Number = np.iinfo(np.uint8).max,
                 allow_float: bool = False,
                 values: Optional[np.ndarray] = None,
                 ):
        if n < 1:
            raise ValueError(f"a store needs at least one node, got n={n}.")
        self.n = int(n)
        self.symmetric = bool(symmetric)
        self.max_magnitude = max_magnitude
        self.allow_float = bool(allow_float)
        self.dtype = select_kind(max_magnitude, allow_float, values=values if allow_float else None)
        self._is_int = np.issubdtype(self.dtype, np.integer)
        self._info = np.iinfo(self.dtype) if self._is_int else np.finfo(self.dtype)

        size = (self.n * (self.n - 1)) // 2 if self.symmetric else self.n * self.n
        self._data = np.zeros(size, dtype=self.dtype)

    @classmethod
    def create(cls,
               n: int,
               symmetric: bool,
               max_magnitude: Number,
               allow_float: bool = False) -> "EdgeWeightStore":
        return cls(n, symmetric=symmetric, max_magnitude=max_magnitude, allow_float=allow_float)

    @classmethod
    def from_matrix(cls,
                    matrix: Union[np.ndarray, List[List[Number]]],
                    symmetric: Optional[bool] = None,
                    allow_float: Optional[bool] = None) -> "EdgeWeightStore":
        """Create and populate a store from a dense (n, n) cost matrix.

        Symmetry and the need for a floating point kind are inferred
        from the data if not specified.
        """
        matrix = np.asarray(matrix)
        assert matrix.ndim == 2 and matrix.shape[0] == matrix.shape[1], \
            f"cost matrix must be square, got shape {matrix.shape}"
        n = matrix.shape[0]
        if symmetric is None:
            symmetric = bool(np.array_equal(matrix, matrix.T))
        elif symmetric and not np.array_equal(matrix, matrix.T):
            raise ValueError(f"requested symmetric store for an asymmetric cost matrix.")
        if allow_float is None:
            allow_float = bool(
                np.issubdtype(matrix.dtype, np.floating) and
                not np.all(np.mod(matrix, 1) == 0)
            )
        if symmetric:
            if np.any(np.diag(matrix) != 0):
                raise PreconditionError(f"the diagonal of a symmetric cost matrix must be 0.")
            values = matrix[np.triu_indices(n, k=1)]
        else:
            values = matrix.reshape(-1)
        max_magnitude = values.max().item() if values.size > 0 else 0
        store = cls(n, symmetric=symmetric, max_magnitude=max_magnitude,
                    allow_float=allow_float, values=values)
        store._fill(values)
        return store

    @classmethod
    def from_coords(cls,
                    coords: np.ndarray,
                    scale: float = 1.0,
                    rounding: bool = True,
                    metric: str = "euclidean") -> "EdgeWeightStore":
        """Create a symmetric store from node coordinates.

        Distances are scaled and, if rounding is enabled, rounded to the nearest
        integer (TSPLIB EUC_2D convention), otherwise kept as floats.
        """
        coords = np.asarray(coords, dtype=np.float64)
        n = coords.shape[0]
        dists = pdist(coords * scale, metric=metric)
        if rounding:
            dists = np.floor(dists + 0.5)
        max_magnitude = dists.max().item() if dists.size > 0 else 0
        store = cls(n, symmetric=True, max_magnitude=max_magnitude,
                    allow_float=not rounding, values=dists)
        store._fill(dists)
        return store

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(n={self.n}, symmetric={self.symmetric}, "
                f"kind={self.kind}, max_magnitude={self.max_magnitude}, "
                f"data=ndarray_{list(self._data.shape)})")

    def __len__(self) -> int:
        return self.n

    def __getitem__(self, item: Tuple[int, int]):
        i, j = item
        return self.get(i, j)

    def __setitem__(self, item: Tuple[int, int], value: Number):
        i, j = item
        self.set(i, j, value)

    @property
    def kind(self) -> str:
        """Name of the selected numeric kind, e.g. 'uint8' or 'float32'."""
        return self.dtype.name

    @property
    def is_integral(self) -> bool:
        return self._is_int

    @property
    def nbytes(self) -> int:
        return self._data.nbytes

    @property
    def max_value(self) -> Number:
        return int(self._info.max) if self._is_int else float(self._info.max)

    def _check_node(self, i) -> int:
        if not isinstance(i, (int, np.integer)) or isinstance(i, bool):
            raise PreconditionError(f"node index must be an integer, got {type(i).__name__}.")
        if not 0 <= i < self.n:
            raise PreconditionError(f"node index {i} out of range [0, {self.n}).")
        return int(i)

    def _index(self, i: int, j: int) -> int:
        """Position of edge (i, j), i != j for symmetric stores."""
        if self.symmetric:
            if i > j:
                i, j = j, i
            # condensed upper triangle (same layout as scipy pdist)
            return self.n * i - (i * (i + 1)) // 2 + (j - i - 1)
        return i * self.n + j

    def _index_many(self, i: np.ndarray, j: np.ndarray) -> np.ndarray:
        if self.symmetric:
            lo = np.minimum(i, j)
            hi = np.maximum(i, j)
            return self.n * lo - (lo * (lo + 1)) // 2 + (hi - lo - 1)
        return i * self.n + j

    def _check_value(self, value: Number):
        if isinstance(value, np.generic):
            value = value.item()
        if self._is_int:
            if isinstance(value, float):
                if not math.isfinite(value) or not float(value).is_integer():
                    raise RangeError(f"value {value} is not integral, "
                                     f"but the store uses the integral kind '{self.kind}'.")
                value = int(value)
            if not 0 <= value <= int(self._info.max):
                raise RangeError(f"value {value} out of range [0, {int(self._info.max)}] "
                                 f"of kind '{self.kind}'.")
        else:
            if (not math.isfinite(value) or abs(value) > float(self._info.max) or
                    float(self.dtype.type(value)) != value):
                raise RangeError(f"value {value} is not exactly representable by kind '{self.kind}'.")
        return value

    def _fill(self, values: np.ndarray):
        """Populate the complete storage from values in storage layout."""
        values = np.asarray(values)
        assert values.shape == self._data.shape
        if values.size == 0:
            return
        if self._is_int:
            if np.issubdtype(values.dtype, np.floating) and not np.all(np.mod(values, 1) == 0):
                raise RangeError(f"non-integral values for integral kind '{self.kind}'.")
            if values.min() < 0 or values.max() > self._info.max:
                raise RangeError(f"values in [{values.min()}, {values.max()}] exceed the range "
                                 f"[0, {int(self._info.max)}] of kind '{self.kind}'.")
        elif not np.all(np.isfinite(values)) or not _is_exact(values, self.dtype):
            raise RangeError(f"values not representable by kind '{self.kind}'.")
        self._data[:] = values.astype(self.dtype)

    def get(self, i: int, j: int) -> Number:
        """Return the cost of edge (i, j)."""
        i = self._check_node(i)
        j = self._check_node(j)
        if self.symmetric and i == j:
            return 0 if self._is_int else 0.0
        return self._data[self._index(i, j)].item()

    def set(self, i: int, j: int, value: Number):
        """Set the cost of edge (i, j) (and (j, i) for symmetric stores)."""
        i = self._check_node(i)
        j = self._check_node(j)
        value = self._check_value(value)
        if self.symmetric and i == j:
            if value != 0:
                raise PreconditionError(f"the diagonal of a symmetric store is fixed to 0.")
            return
        self._data[self._index(i, j)] = value

    def get_many(self, i: np.ndarray, j: np.ndarray) -> np.ndarray:
        """Vectorized lookup of the costs of edges (i[k], j[k]).

        Values are returned as int64 / float64 to prevent overflow when summed,
        and as python ints (object array) for the 64-bit integral kind.
        """
        i = np.asarray(i, dtype=np.int64)
        j = np.asarray(j, dtype=np.int64)
        if i.size > 0 and (
            min(i.min(), j.min()) < 0 or max(i.max(), j.max()) >= self.n
        ):
            raise PreconditionError(f"node index out of range [0, {self.n}).")
        if self.dtype == np.uint64:
            out_dtype = object
        else:
            out_dtype = np.int64 if self._is_int else np.float64
        out = np.zeros(i.shape, dtype=out_dtype)
        if self.symmetric:
            msk = i != j
            out[msk] = self._data[self._index_many(i[msk], j[msk])].astype(out_dtype)
        else:
            out[:] = self._data[self._index_many(i, j)].astype(out_dtype)
        return out

    def sum_many(self, i: np.ndarray, j: np.ndarray) -> Number:
        """Exact total cost of the edges (i[k], j[k]) as python scalar."""
        total = self.get_many(i, j).sum()
        return total.item() if isinstance(total, np.generic) else total

    def to_matrix(self) -> np.ndarray:
        """Return the dense (n, n) cost matrix."""
        if self.symmetric:
            if self.n == 1:
                return np.zeros((1, 1), dtype=self.dtype)
            return squareform(self._data, checks=False)
        return self._data.reshape(self.n, self.n).copy()


# ============= #
# ### TEST #### #
# ============= #
def _test(n: int = 10, seed: int = 1):
    rnd = np.random.default_rng(seed)
    for max_val in [100, 255, 256, 70000, 2**40]:
        for sym in [True, False]:
            store = EdgeWeightStore.create(n, symmetric=sym, max_magnitude=max_val)
            for _ in range(50):
                i, j = rnd.integers(0, n, 2)
                if sym and i == j:
                    continue
                v = int(rnd.integers(0, max_val, endpoint=True))
                store.set(i, j, v)
                assert store.get(i, j) == v
                if sym:
                    assert store.get(j, i) == v
            print(store)
