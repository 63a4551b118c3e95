#
import os
import logging
import multiprocessing as mp
from typing import Dict, Tuple, Union
from omegaconf import DictConfig

import random
import numpy as np
import torch

from permls.routing import (
    TSPDataset,
    TSPInstance,
    TSPSolution,
    Tour,
    EdgeWeightStore,
    ConstructionHeuristic,
    build_store,
    eval_tsp,
)
from permls.utils import Budget, parse_from_cfg, rm_from_kwargs
from permls.meta_heuristics.vns import VariableNeighborhoodSearch
from permls.meta_heuristics.ea import EvolutionaryAlgorithm

logger = logging.getLogger(__name__)

POLICIES = ["VNS", "EA"]


def _solve(args: Tuple) -> Tuple[Tour, Union[int, float], float]:
    """Execute a single independent restart (top-level for multiprocessing)."""
    policy, store, construction_op, budget_cfg, seed = args
    budget = Budget.from_cfg(budget_cfg)
    policy.seed(seed)
    construction_op.seed(seed+1)
    budget.start()
    if isinstance(policy, VariableNeighborhoodSearch):
        tour, cost = policy.run(construction_op.construct(store), store, budget)
    else:
        tour, cost = policy.run(store, budget)
    return tour, cost, budget.elapsed


#
class Runner:
    """
    Wraps the setup and the execution of the
    meta-heuristic experiments configured by cfg.
    """
    def __init__(self, cfg: DictConfig):
        self.cfg = cfg
        # debug level
        if self.cfg.get("debug_lvl", 0) > 0:
            self.debug = max(self.cfg.debug_lvl, 1)
        else:
            self.debug = 0
        self.policy_id = self.cfg.policy.upper()
        if self.policy_id not in POLICIES:
            raise ValueError(f"unknown policy {self.policy_id}")

        self.dataset = None
        self.policy = None
        self.construction_op = None

    def setup(self):
        """set up all entities."""
        self._dir_setup()
        self._build_dataset()
        self._build_policy()
        self.seed_all(self.cfg.global_seed)

    def _dir_setup(self):
        """Set up directories for logging."""
        self._cwd = os.getcwd()
        self.cfg.log_path = os.path.join(self._cwd, self.cfg.log_path)
        os.makedirs(self.cfg.log_path, exist_ok=True)

    def _build_dataset(self):
        """Sample the problem instances."""
        generator_args = parse_from_cfg(self.cfg.get("generator_args", {})) or {}
        self.dataset = TSPDataset(seed=self.cfg.global_seed, **generator_args)
        self.dataset.sample(
            sample_size=self.cfg.dataset_size,
            graph_size=self.cfg.graph_size,
        )

    def _build_policy(self):
        """Initialize policy."""
        policy_cfg = parse_from_cfg(self.cfg.policy_cfg).copy()
        policy_cfg = rm_from_kwargs(policy_cfg, ["debug"])
        if self.policy_id == "VNS":
            assert policy_cfg.get("kmax") is None or policy_cfg.get("kmax") > 0
            self.policy = VariableNeighborhoodSearch(debug=self.debug, **policy_cfg)
        elif self.policy_id == "EA":
            assert policy_cfg.get("population_size", 1) > 0
            self.policy = EvolutionaryAlgorithm(debug=self.debug, **policy_cfg)
        construction_args = parse_from_cfg(self.cfg.get("construction_args", {})) or {}
        self.construction_op = ConstructionHeuristic(**construction_args)

    def _build_store(self, instance: TSPInstance) -> EdgeWeightStore:
        store = build_store(instance, rounding=self.cfg.get("store_cfg", {}).get("rounding", True))
        logger.info(f"created {store} using {store.nbytes} bytes.")
        return store

    def seed_all(self, seed: int):
        """Set seed for all pseudo random generators."""
        random.seed(seed)
        np.random.seed(seed)
        torch.manual_seed(seed)
        self.dataset.seed(seed)
        self.policy.seed(seed+1)
        self.construction_op.seed(seed+2)

    def save_results(self, result: Dict):
        pth = os.path.join(self.cfg.log_path, "results.pkl")
        torch.save(result, pth)
        logger.info(f"saved results to: {pth}")

    def solve(self, instance: TSPInstance, store: EdgeWeightStore, seed: int) -> TSPSolution:
        """Run all independent restarts on one instance and keep the best solution."""
        budget_cfg = parse_from_cfg(self.cfg.budget)
        num_restarts = self.cfg.get("num_restarts", 1)
        num_workers = self.cfg.get("num_workers", 1)
        jobs = [
            (self.policy, store, self.construction_op, budget_cfg, seed + 10 * r)
            for r in range(num_restarts)
        ]
        if num_workers > 1 and num_restarts > 1:
            with mp.Pool(processes=min(num_workers, num_restarts)) as pool:
                results = pool.map(_solve, jobs)
        else:
            results = [_solve(job) for job in jobs]

        costs = [c for _, c, _ in results]
        best = int(np.argmin(costs))
        tour, cost, _ = results[best]
        logger.info(f"restart costs: {costs}")
        return TSPSolution(
            solution=tour.tolist(),
            cost=cost,
            run_time=float(sum(t for _, _, t in results)),
            instance=instance,
        )

    def run(self):
        self.setup()
        logger.info(f"running {self.policy_id} on {len(self.dataset)} instances...")
        solutions, stores = [], []
        for i, instance in enumerate(self.dataset):
            store = self._build_store(instance)
            solutions.append(self.solve(instance, store, seed=self.cfg.global_seed + i))
            stores.append(store)
        logger.info(f"finished.")
        solutions, summary = eval_tsp(solutions, stores)
        self.save_results({
            "solutions": solutions,
            "summary": summary
        })
        logger.info(summary)
        return solutions, summary
