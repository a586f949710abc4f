"""
Generational elitist genetic algorithm.

Each generation fills the non-elite slots of a second population buffer with
children of parents drawn from the current buffer, then swaps the two buffers
and writes the best-known solution into the elite slots. Optional extras:
memetic hybridization with a local-search operator, and island immigration
through a MigrationPort once the run stagnates.
"""

import copy
import logging
from typing import Any, Callable, Optional, Tuple

from ..core.population import Population
from ..core.problem import (
    LocalSearch,
    candidate_length,
    checked_fitness,
    checked_index,
    require_operations,
)
from ..exceptions import ConfigurationError, ProblemContractViolation
from ..migration.port import MigrationPort, request_immigrants, start_migration
from ..utils.monitoring import ProgressRecord
from .base import Algorithm, OptimizationResult, RunContext
from .config import EngineConfig, EvolutionCheckpoint, GenerationHistory, GeneticAlgorithmConfig

logger = logging.getLogger(__name__)


class GenerationalEngine(Algorithm):
    """
    Elitist generational GA over an opaque candidate representation.

    Example usage:
        ```python
        engine = GenerationalEngine(
            "ga1",
            problem,
            GeneticAlgorithmConfig(population_size=200, generations=500),
            local_search=SelfAdaptiveES("es1", problem).search,
        )
        best, fitness = await engine.run()
        ```
    """

    def __init__(
        self,
        run_id: str,
        problem: Any,
        config: Optional[EngineConfig] = None,
        local_search: Optional[LocalSearch] = None,
        migration: Optional[MigrationPort] = None,
        monitor: Optional[Callable[[ProgressRecord], None]] = None,
        group_id: Optional[str] = None,
    ):
        """
        Initialize the engine.

        Args:
            run_id: Identifier of this engine (island id for migration)
            problem: Problem providing all six operations
            config: Hyperparameters (defaults to GeneticAlgorithmConfig())
            local_search: Optional operator returning an improved (candidate, fitness)
            migration: Optional port for island migration
            monitor: Optional progress sink
            group_id: Monitoring group id

        Raises:
            ConfigurationError: If the problem lacks an operation
        """
        require_operations(problem)
        config = config or GeneticAlgorithmConfig()
        if migration is not None and not isinstance(config, GeneticAlgorithmConfig):
            raise ConfigurationError("migration requires a GeneticAlgorithmConfig")
        super().__init__(run_id, problem, config, monitor, group_id)

        self.local_search = local_search
        self.migration = migration

        logger.info(
            f"Initialized {type(self).__name__} {run_id} with population size "
            f"{self.config.population_size}, {self.config.generations} generations, "
            f"{self.config.elites} elites"
        )

    @property
    def population(self) -> Optional[Population]:
        """Current population of the latest run."""
        return self.state.population if self.state is not None else None

    def _optimize(self, context: RunContext, checkpoint: Optional[EvolutionCheckpoint]) -> OptimizationResult:
        if checkpoint is None:
            state = self._initialize()
        else:
            state = checkpoint
            self._restore_rng(state.rng_state)
            logger.info(f"Resuming {self.id} at generation {state.generation}")

        self.state = state
        self.checkpoint = None
        self._start_migration(context, state.population)

        interrupted = False
        while self._should_continue(state):
            if context.cancelled:
                interrupted = True
                break

            if not self._breed(context, state):
                interrupted = True
                break

            immigrants = self._immigrate(state)
            self._finish_generation(context, state, immigrants)

        return self._finalize(state, interrupted)

    def _initialize(self) -> EvolutionCheckpoint:
        size = self.config.population_size
        candidates = [self.problem.creator() for _ in range(size)]
        fitness = [self._evaluate(candidate) for candidate in candidates]
        population = Population(candidates, fitness)

        best = population.best_index()
        logger.debug(f"Initial population of {size} evaluated, best fitness {population.fitness[best]:.6g}")

        return EvolutionCheckpoint(
            generation=0,
            population=population,
            # Copies, so that the elite slots are well-formed in generation 0
            next_population=population.duplicate(),
            best_candidate=copy.deepcopy(population.candidates[best]),
            best_fitness=float(population.fitness[best]),
        )

    def _start_migration(self, context: RunContext, population: Population) -> None:
        if self.migration is None:
            return
        start_migration(self.migration, self.id, population, context.token, context.spawn)

    def _should_continue(self, state: EvolutionCheckpoint) -> bool:
        return (
            state.generation < self.config.generations
            and not self.problem.terminator(state.best_candidate, state.best_fitness)
        )

    def _breed(self, context: RunContext, state: EvolutionCheckpoint) -> bool:
        """
        Fill the non-elite slots of the next buffer.

        Returns:
            False if cancellation interrupted the generation
        """
        population, offspring = state.population, state.next_population
        improved = False

        for index in range(self.config.elites, self.config.population_size):
            if context.cancelled:
                return False

            child, fitness, _ = self._make_child(population, offspring.candidates[index])
            offspring.place(index, child, fitness)

            if fitness < state.best_fitness:
                self._improve(state, child, fitness)
                improved = True

        state.failures = 0 if improved else state.failures + 1
        return True

    def _make_child(self, population: Population, out: Any) -> Tuple[Any, float, Tuple[float, float]]:
        """
        Produce one evaluated child in the ``out`` slot.

        Returns:
            The child (``out`` unless local search replaced it), its fitness
            and the fitness of both parents
        """
        size = population.size
        first = checked_index(self.problem.selector(population.fitness_view()), size)
        second = checked_index(self.problem.selector(population.fitness_view()), size)

        length = candidate_length(out)
        self.problem.crossover(population.candidates[first], population.candidates[second], out)
        if length is not None and candidate_length(out) != length:
            raise ProblemContractViolation(
                f"crossover resized the child from {length} to {candidate_length(out)}"
            )

        if self.rng.random() < self.config.mutation_rate:
            self.problem.mutator(out)

        child, fitness = out, self._evaluate(out)

        if self.local_search is not None and self.rng.random() < self.config.local_search_rate:
            child, fitness = self._apply_local_search(child, fitness)

        return child, fitness, (float(population.fitness[first]), float(population.fitness[second]))

    def _apply_local_search(self, candidate: Any, fitness: float) -> Tuple[Any, float]:
        optimized, optimized_fitness = self.local_search(candidate)
        optimized_fitness = checked_fitness(optimized_fitness, source="local search")

        if optimized_fitness < fitness:
            # Lamarckian: the improved genotype replaces the child
            logger.debug(f"Local search improved a child from {fitness:.6g} to {optimized_fitness:.6g}")
            return copy.deepcopy(optimized), optimized_fitness
        return candidate, fitness

    def _improve(self, state: EvolutionCheckpoint, candidate: Any, fitness: float) -> None:
        state.best_candidate = copy.deepcopy(candidate)
        state.best_fitness = fitness

    def _immigrate(self, state: EvolutionCheckpoint) -> int:
        """
        Splice immigrants into random non-elite slots once the run stagnates.

        Returns:
            Number of immigrants received
        """
        config = self.config
        if self.migration is None or config.generations == 0:
            return 0
        if state.failures / config.generations < config.epoch_triggering_failure_rate:
            return 0
        if config.elites >= config.population_size:
            return 0

        count = int(config.population_size * config.immigration_rate)
        candidates, fitness = request_immigrants(self.migration, self.id, count)

        for candidate, value in zip(candidates, fitness):
            index = int(self.rng.integers(config.elites, config.population_size))
            state.next_population.place(index, copy.deepcopy(candidate), value)
            if value < state.best_fitness:
                self._improve(state, candidate, value)
                state.failures = 0

        if candidates:
            logger.debug(f"{self.id} received {len(candidates)} immigrants")
        return len(candidates)

    def _selection_pressure(self, state: EvolutionCheckpoint) -> Optional[float]:
        return None

    def _finish_generation(self, context: RunContext, state: EvolutionCheckpoint, immigrants: int) -> None:
        # Elites go in before the swap so that the current buffer always
        # starts with the best-known solution
        state.next_population.fill_elites(self.config.elites, state.best_candidate, state.best_fitness)
        state.population, state.next_population = state.next_population, state.population
        state.generation += 1

        stats = state.population.statistics()
        self._record_generation(context, GenerationHistory(
            generation=state.generation - 1,
            best_fitness=state.best_fitness,
            evaluations=self.evaluations,
            avg_fitness=stats["avg_fitness"],
            worst_fitness=stats["worst_fitness"],
            selection_pressure=self._selection_pressure(state),
            immigrants=immigrants,
        ))

    def _finalize(self, state: EvolutionCheckpoint, interrupted: bool) -> OptimizationResult:
        if interrupted:
            state.rng_state = self._save_rng()
            self.checkpoint = state
            logger.info(
                f"Run {self.id} interrupted at generation {state.generation}, "
                f"best fitness {state.best_fitness:.6g}"
            )
        else:
            logger.info(
                f"Run {self.id} complete after {state.generation} generations. "
                f"Best fitness: {state.best_fitness:.6g}"
            )

        return OptimizationResult(copy.deepcopy(state.best_candidate), state.best_fitness)
