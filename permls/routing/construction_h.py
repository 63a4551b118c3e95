#
from typing import Optional
import numpy as np

from permls.routing.edge_data import EdgeWeightStore
from permls.routing.tour import Tour

__all__ = ["ConstructionHeuristic", "CONSTRUCTION_METHODS"]

CONSTRUCTION_METHODS = [
    "random",   # uniformly random permutation
    "nn",       # nearest neighbor tour from a random start node
]


class ConstructionHeuristic:
    """Wraps several construction heuristics for initial TSP tours."""
    def __init__(self, method: str = "random", **kwargs):
        self.method = method.lower()
        if self.method not in CONSTRUCTION_METHODS:
            raise ModuleNotFoundError(f"The construction method '{self.method}' does not exist.")
        self.rnd = np.random.default_rng(1)

    def seed(self, seed: Optional[int] = None):
        self.rnd = np.random.default_rng(seed)

    def construct(self, store: EdgeWeightStore, **kwargs) -> Tour:
        """Construct an initial tour for the instance described by store."""
        return getattr(self, f"_{self.method}")(store, **kwargs)

    def _random(self, store: EdgeWeightStore, **kwargs) -> Tour:
        """Complete random construction."""
        return Tour.random(store.n, rnd=self.rnd)

    def _nn(self, store: EdgeWeightStore, start_node: Optional[int] = None, **kwargs) -> Tour:
        """Nearest neighbor construction."""
        N = store.n
        dist_mat = store.to_matrix().astype(np.float64)
        np.fill_diagonal(dist_mat, float('inf'))
        idx = int(self.rnd.integers(0, N)) if start_node is None else start_node
        tour = np.empty(N, dtype=np.int64)
        tour[0] = idx
        dist_mat[:, idx] = float('inf')     # mask selected nodes with infinity distance
        for i in range(1, N):
            idx = int(np.argmin(dist_mat[idx]))  # min distance == next neighbor
            tour[i] = idx
            dist_mat[:, idx] = float('inf')
        return Tour(tour, validate=False)
