#
import warnings
from typing import List, Optional, Union, Tuple, Dict
import numpy as np

from permls.routing.formats import TSPSolution
from permls.routing.edge_data import EdgeWeightStore
from permls.routing.tour import Tour, is_permutation


def eval_tsp(solutions: List[TSPSolution],
             store: Union[EdgeWeightStore, List[EdgeWeightStore]],
             **kwargs) -> Tuple[List[TSPSolution], Dict]:
    """(Re-)Evaluate provided TSP solutions from scratch and summarize the results.

    Args:
        solutions: list of solutions
        store: edge-weight store of the instance, or one store per solution

    Returns:
        updated solutions and summary dict
    """
    stores = store if isinstance(store, list) else [store] * len(solutions)
    assert len(stores) == len(solutions)
    results = [eval_tour(sol, st) for sol, st in zip(solutions, stores)]

    costs = [r.cost for r in results if r.cost != float("inf")]
    run_times = [r.run_time for r in results if r.run_time is not None]
    num_inf = sum([1 for r in results if r.cost == float("inf")])

    summary = {
        "cost_mean": np.mean(costs) if len(costs) > 0 else float("inf"),
        "cost_std": np.std(costs) if len(costs) > 0 else float("inf"),
        "cost_min": np.min(costs) if len(costs) > 0 else float("inf"),
        "run_time_mean": np.mean(run_times) if len(run_times) > 0 else None,
        "run_time_total": np.sum(run_times) if len(run_times) > 0 else None,
        "num_infeasible": num_inf,
    }
    return results, summary


def eval_tour(solution: TSPSolution,
              store: EdgeWeightStore) -> TSPSolution:
    """Recompute the length of a single solution."""
    tour = solution.solution
    if tour is None or not is_permutation(np.asarray(tour), n=store.n):
        warnings.warn(f"solution is not a permutation of [0, {store.n}). setting cost to 'inf'")
        return solution.update(cost=float("inf"))
    cost = Tour(tour, validate=False).length(store)
    if solution.cost is not None and solution.cost != float("inf") and not np.isclose(cost, solution.cost):
        warnings.warn(f"reported cost {solution.cost} differs from re-evaluated cost {cost}.")
    return solution.update(cost=cost)
