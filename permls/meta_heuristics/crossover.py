#
from typing import Optional, Union, Dict, Type, List

import numpy as np

from permls.routing import EdgeWeightStore, Tour, is_permutation
from permls.utils.errors import InvariantError, PreconditionError

__all__ = [
    "Crossover",
    "SavingsCrossover",
    "OrderCrossover",
    "EdgeRecombinationCrossover",
    "CROSSOVERS",
    "get_crossover",
]


class Crossover:
    """
    Binary operator combining two parent tours into one offspring.

    Operators are stateless: the random generator is passed in on every
    call, so one operator instance can be used concurrently for
    independent parent pairs. The offspring is always checked to be a
    permutation of the same n nodes.
    """
    NAME = None

    def __repr__(self):
        return f"{self.__class__.__name__}()"

    def __call__(self, *args, **kwargs) -> Tour:
        return self.combine(*args, **kwargs)

    def combine(self,
                parent_a: Tour,
                parent_b: Tour,
                store: EdgeWeightStore,
                rnd: Optional[np.random.Generator] = None) -> Tour:
        if len(parent_a) != len(parent_b):
            raise PreconditionError(f"parents differ in size: {len(parent_a)} != {len(parent_b)}")
        rnd = np.random.default_rng() if rnd is None else rnd
        nodes = self._combine(parent_a.nodes, parent_b.nodes, store, rnd)
        if not is_permutation(nodes, n=len(parent_a)):
            raise InvariantError(f"{self.__class__.__name__} produced an offspring "
                                 f"which is not a permutation: {np.asarray(nodes).tolist()}")
        return Tour(nodes, validate=False)

    def _combine(self,
                 a: np.ndarray,
                 b: np.ndarray,
                 store: EdgeWeightStore,
                 rnd: np.random.Generator) -> np.ndarray:
        raise NotImplementedError


class SavingsCrossover(Crossover):
    """
    Savings-style edge assembly crossover.

    Edges common to both parents are inserted first, then the remaining
    parent edges, each group in order of increasing cost, as long as no
    node gets a degree > 2 and no sub-tour is closed. The resulting path
    fragments are chained greedily by always connecting the current end
    to the cheapest reachable fragment endpoint.
    """
    NAME = "savings"

    @staticmethod
    def _cost(store: EdgeWeightStore, u: int, v: int):
        if store.symmetric:
            return store.get(u, v)
        return min(store.get(u, v), store.get(v, u))

    def _sorted_edges(self, edges: set, store: EdgeWeightStore, rnd: np.random.Generator) -> List:
        edges = list(edges)
        rnd.shuffle(edges)      # random tie breaking, the sort below is stable
        return sorted(edges, key=lambda e: self._cost(store, *e))

    def _combine(self, a, b, store, rnd):
        n = len(a)
        if n <= 3:
            return a.copy()

        def undirected(t: np.ndarray) -> set:
            nxt = np.roll(t, -1)
            return {(min(u, v), max(u, v)) for u, v in zip(t.tolist(), nxt.tolist())}

        edges_a, edges_b = undirected(a), undirected(b)
        common = edges_a & edges_b
        candidates = (
            self._sorted_edges(common, store, rnd) +
            self._sorted_edges((edges_a | edges_b) - common, store, rnd)
        )

        # union-find over path fragments
        root = list(range(n))

        def find(x: int) -> int:
            while root[x] != x:
                root[x] = root[root[x]]
                x = root[x]
            return x

        degree = [0] * n
        adj = [[] for _ in range(n)]
        num_edges = 0
        for u, v in candidates:
            if num_edges == n - 1:
                break
            if degree[u] < 2 and degree[v] < 2:
                ru, rv = find(u), find(v)
                if ru != rv:
                    root[ru] = rv
                    adj[u].append(v)
                    adj[v].append(u)
                    degree[u] += 1
                    degree[v] += 1
                    num_edges += 1

        # extract path fragments starting at an endpoint
        visited = [False] * n
        fragments = []
        for s in range(n):
            if visited[s] or degree[s] > 1:
                continue
            path = [s]
            visited[s] = True
            prev, cur = None, s
            while True:
                nxt = [x for x in adj[cur] if x != prev and not visited[x]]
                if not nxt:
                    break
                prev, cur = cur, nxt[0]
                visited[cur] = True
                path.append(cur)
            fragments.append(path)

        # greedily chain fragments
        start = int(rnd.integers(0, len(fragments)))
        tour = fragments.pop(start)
        while fragments:
            end = tour[-1]
            best_f, best_rev, best_c = None, False, None
            for f_idx, frag in enumerate(fragments):
                for rev, head in ((False, frag[0]), (True, frag[-1])):
                    c = store.get(end, head)
                    if best_c is None or c < best_c:
                        best_f, best_rev, best_c = f_idx, rev, c
            frag = fragments.pop(best_f)
            tour.extend(frag[::-1] if best_rev else frag)

        tour = np.array(tour, dtype=np.int64)
        if not store.symmetric:
            # use the cheaper direction of the cycle
            fwd = store.sum_many(tour, np.roll(tour, -1))
            bwd = store.sum_many(np.roll(tour, -1), tour)
            if bwd < fwd:
                tour = tour[::-1].copy()
        return tour


class OrderCrossover(Crossover):
    """Order crossover (OX): copy a random segment of parent a,
    fill the remaining positions in the cyclic order of parent b."""
    NAME = "ox"

    def _combine(self, a, b, store, rnd):
        n = len(a)
        if n < 2:
            return a.copy()
        i, j = sorted(rnd.choice(n, size=2, replace=False).tolist())
        child = np.full(n, -1, dtype=np.int64)
        child[i:j + 1] = a[i:j + 1]
        in_seg = np.zeros(n, dtype=bool)
        in_seg[a[i:j + 1]] = True
        fill = [x for x in np.roll(b, -(j + 1)).tolist() if not in_seg[x]]
        pos = (j + 1 + np.arange(len(fill))) % n
        child[pos] = fill
        return child


class EdgeRecombinationCrossover(Crossover):
    """Edge recombination crossover (ERX): build the offspring along the union
    of parent adjacencies, always moving to the neighbor with the fewest
    remaining neighbors."""
    NAME = "erx"

    def _combine(self, a, b, store, rnd):
        n = len(a)
        adj_map = {i: set() for i in range(n)}
        for parent in (a.tolist(), b.tolist()):
            for i in range(n):
                adj_map[parent[i]].update([parent[i - 1], parent[(i + 1) % n]])
                adj_map[parent[i]].discard(parent[i])

        offspring = []
        unvisited = set(range(n))
        current = a[0].item()
        while True:
            offspring.append(current)
            unvisited.remove(current)
            if not unvisited:
                break
            # remove current node from all adjacency lists
            for nbs in adj_map.values():
                nbs.discard(current)
            neighbors = sorted(adj_map[current])
            if not neighbors:
                # dead end, pick a random unvisited node
                rest = sorted(unvisited)
                current = rest[rnd.integers(0, len(rest))]
            else:
                # neighbor with the smallest number of remaining neighbors, random tie breaking
                sizes = np.array([len(adj_map[x]) for x in neighbors])
                ties = np.flatnonzero(sizes == sizes.min())
                current = neighbors[ties[rnd.integers(0, len(ties))]]
        return np.array(offspring, dtype=np.int64)


CROSSOVERS: Dict[str, Type[Crossover]] = {
    SavingsCrossover.NAME: SavingsCrossover,
    OrderCrossover.NAME: OrderCrossover,
    EdgeRecombinationCrossover.NAME: EdgeRecombinationCrossover,
}


def get_crossover(crossover: Union[str, Crossover]) -> Crossover:
    if isinstance(crossover, Crossover):
        return crossover
    try:
        return CROSSOVERS[crossover.lower()]()
    except KeyError:
        raise ValueError(f"unknown crossover: '{crossover}'. "
                         f"Available: {list(CROSSOVERS.keys())}")
