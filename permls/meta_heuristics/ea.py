#
import logging
from enum import Enum
from typing import Optional, List, Union, Tuple, Dict

import numpy as np

from permls.routing import EdgeWeightStore, Tour, ConstructionHeuristic
from permls.utils import Budget
from permls.utils.errors import PreconditionError
from permls.meta_heuristics.crossover import Crossover, get_crossover
from permls.meta_heuristics.mutation import Mutation, get_mutation

__all__ = [
    "SurvivalPolicy",
    "SELECTION_METHODS",
    "EvolutionaryAlgorithm",
    "run_ea",
]
logger = logging.getLogger(__name__)

SELECTION_METHODS = [
    "uniform",      # uniformly random parent
    "tournament",   # best of a random subset of the population
]


class SurvivalPolicy(str, Enum):
    PARENTS_SURVIVE = "PARENTS_SURVIVE"         # (mu + lambda): parents and offspring compete
    OFFSPRING_REPLACE = "OFFSPRING_REPLACE"     # (mu, lambda): offspring replace the parents


class EvolutionaryAlgorithm:
    """
    Generational evolutionary algorithm over permutations.

    Each generation selects parent pairs, recombines them with the binary
    operator, optionally mutates the offspring, evaluates all offspring
    and only then applies the survival policy to assemble the next
    population. The best individual ever evaluated is tracked
    independently of the population.

    Args:
        population_size: number of individuals (mu)
        crossover: binary operator (name or instance)
        mutation: optional unary operator (name or instance)
        survival: survival policy
        num_offspring: offspring per generation (lambda, default: population_size)
        mutation_rate: probability to mutate an offspring
        selection: parent selection method, one of SELECTION_METHODS
        tournament_size: number of competitors in tournament selection
        construction_method: construction heuristic for the initial population
        debug: flag to log per-generation statistics
    """
    def __init__(self,
                 population_size: int = 32,
                 crossover: Union[str, Crossover] = "savings",
                 mutation: Optional[Union[str, Mutation]] = None,
                 survival: Union[str, SurvivalPolicy] = SurvivalPolicy.PARENTS_SURVIVE,
                 num_offspring: Optional[int] = None,
                 mutation_rate: float = 0.1,
                 selection: str = "tournament",
                 tournament_size: int = 2,
                 construction_method: str = "random",
                 debug: Union[bool, int] = False,
                 **kwargs):
        if population_size < 1:
            raise ValueError(f"population_size must be >= 1, got {population_size}.")
        self.population_size = population_size
        self.crossover = get_crossover(crossover)
        self.mutation = get_mutation(mutation)
        self.survival = SurvivalPolicy(survival.upper() if isinstance(survival, str) else survival)
        self.num_offspring = population_size if num_offspring is None else num_offspring
        if self.num_offspring < 1:
            raise ValueError(f"num_offspring must be >= 1, got {self.num_offspring}.")
        if self.survival == SurvivalPolicy.OFFSPRING_REPLACE and self.num_offspring < population_size:
            raise ValueError(f"{self.survival.value} requires num_offspring >= population_size.")
        assert 0.0 <= mutation_rate <= 1.0
        self.mutation_rate = mutation_rate
        self.selection = selection.lower()
        if self.selection not in SELECTION_METHODS:
            raise ValueError(f"unknown selection method: '{selection}'")
        assert tournament_size >= 1
        self.tournament_size = tournament_size
        self.construction_op = ConstructionHeuristic(method=construction_method)
        self.debug = int(debug)
        self._rnd = np.random.default_rng(1)

        self.generation = 0
        self.history: List[Dict] = []

    def seed(self, seed: Optional[int] = None):
        self._rnd = np.random.default_rng(seed)
        self.construction_op.seed(seed+1 if seed is not None else None)

    def _select(self, fitness: np.ndarray) -> int:
        """Select the index of a parent."""
        m = len(fitness)
        if self.selection == "uniform" or m == 1:
            return int(self._rnd.integers(0, m))
        k = min(self.tournament_size, m)
        competitors = self._rnd.choice(m, size=k, replace=False)
        return int(competitors[np.argmin(fitness[competitors])])

    def _select_pair(self, fitness: np.ndarray) -> Tuple[int, int]:
        a = self._select(fitness)
        b = self._select(fitness)
        m = len(fitness)
        if a == b and m > 1:
            # fall back to a uniformly selected different mate
            b = int(self._rnd.integers(0, m - 1))
            b = b + 1 if b >= a else b
        return a, b

    def _survive(self,
                 population: List[Tour],
                 fitness: np.ndarray,
                 offspring: List[Tour],
                 off_fitness: np.ndarray) -> Tuple[List[Tour], np.ndarray]:
        """Assemble the next generation."""
        m = self.population_size
        if self.survival == SurvivalPolicy.PARENTS_SURVIVE:
            pool = population + offspring
            pool_fitness = np.concatenate((fitness, off_fitness))
        else:
            pool = offspring
            pool_fitness = off_fitness
        # stable sort: on ties parents are kept in favor of offspring
        idx = np.argsort(pool_fitness, kind="stable")[:m]
        return [pool[i] for i in idx], pool_fitness[idx]

    def _init_population(self,
                         store: EdgeWeightStore,
                         initial_population: Optional[List[Tour]] = None) -> List[Tour]:
        population = [] if initial_population is None else [t.copy() for t in initial_population]
        for t in population:
            if len(t) != store.n:
                raise PreconditionError(f"initial tour over {len(t)} nodes for store over {store.n} nodes.")
        population = population[:self.population_size]
        while len(population) < self.population_size:
            population.append(self.construction_op.construct(store))
        return population

    def run(self,
            store: EdgeWeightStore,
            budget: Budget,
            initial_population: Optional[List[Tour]] = None) -> Tuple[Tour, Union[int, float]]:
        """Evolve the population until the budget is exhausted.

        Args:
            store: edge weights of the instance
            budget: computational budget, polled once per generation
            initial_population: optional start tours (filled up by the construction heuristic)

        Returns:
            best tour found and its length
        """
        budget.start()
        self.generation = 0
        self.history = []

        population = self._init_population(store, initial_population)
        fitness = np.array([t.length(store) for t in population])
        budget.record_evaluation(len(population))
        best_idx = int(np.argmin(fitness))
        best, best_cost = population[best_idx].copy(), population[best_idx].length(store)
        logger.info(f"EA(mu={self.population_size}, lambda={self.num_offspring}, "
                    f"{self.crossover}, {self.mutation}, {self.survival.value}) "
                    f"started with best cost {best_cost}.")

        while not budget.is_exhausted():
            offspring = []
            for _ in range(self.num_offspring):
                a, b = self._select_pair(fitness)
                child = self.crossover.combine(population[a], population[b], store, self._rnd)
                if self.mutation is not None and self._rnd.random() < self.mutation_rate:
                    self.mutation.mutate(child, self._rnd)
                    if self.debug:
                        child.check()
                offspring.append(child)
            # all offspring are evaluated before survival
            off_fitness = np.array([t.length(store) for t in offspring])
            budget.record_evaluation(len(offspring))

            off_best = int(np.argmin(off_fitness))
            if off_fitness[off_best] < best_cost:
                best, best_cost = offspring[off_best].copy(), offspring[off_best].length(store)

            population, fitness = self._survive(population, fitness, offspring, off_fitness)
            self.generation += 1
            budget.record_iteration()

            stats = {
                "generation": self.generation,
                "best": fitness.min().item(),
                "mean": fitness.mean().item(),
                "best_ever": best_cost,
            }
            self.history.append(stats)
            if self.debug:
                logger.debug(stats)

        logger.info(f"EA finished after {self.generation} generations with best cost {best_cost}.")
        return best, best_cost


def run_ea(store: EdgeWeightStore,
           population_size: int,
           crossover: Union[str, Crossover],
           mutation: Optional[Union[str, Mutation]],
           survival: Union[str, SurvivalPolicy],
           budget: Budget,
           seed: Optional[int] = None,
           **kwargs) -> Tuple[Tour, Union[int, float]]:
    """Convenience wrapper to configure and run a single EA."""
    ea = EvolutionaryAlgorithm(
        population_size=population_size,
        crossover=crossover,
        mutation=mutation,
        survival=survival,
        **kwargs
    )
    ea.seed(seed)
    return ea.run(store, budget)
