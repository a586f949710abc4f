"""
Offspring selection genetic algorithm (OSGA).

Same generational scheme as the GenerationalEngine, but a child only enters
the next population if it is strictly better than the better of its two
parents. Rejected children are discarded and new parents drawn. The number of
attempts per generation, relative to the population size, is the selection
pressure; once it reaches the configured maximum, the generation ends early
and the run stops.
"""

import copy
import logging
from typing import Any, Callable, Optional

from ..core.problem import LocalSearch
from ..utils.monitoring import ProgressRecord
from .base import RunContext
from .config import EvolutionCheckpoint, OffspringSelectionConfig
from .genetic import GenerationalEngine

logger = logging.getLogger(__name__)


def offspring_accepted(child_fitness: float, first_parent_fitness: float, second_parent_fitness: float) -> bool:
    """
    Strict offspring selection test.

    Examples:
        >>> offspring_accepted(3.0, 4.0, 6.0)
        True
        >>> offspring_accepted(5.0, 4.0, 6.0)
        False
        >>> offspring_accepted(4.0, 4.0, 6.0)
        False
    """
    return child_fitness < min(first_parent_fitness, second_parent_fitness)


class OffspringSelectionEngine(GenerationalEngine):
    """
    Generational GA with strict offspring selection and a selection-pressure cap.

    Island migration is not available for this engine.
    """

    def __init__(
        self,
        run_id: str,
        problem: Any,
        config: Optional[OffspringSelectionConfig] = None,
        local_search: Optional[LocalSearch] = None,
        monitor: Optional[Callable[[ProgressRecord], None]] = None,
        group_id: Optional[str] = None,
    ):
        super().__init__(
            run_id,
            problem,
            config or OffspringSelectionConfig(),
            local_search=local_search,
            monitor=monitor,
            group_id=group_id,
        )

    def _should_continue(self, state: EvolutionCheckpoint) -> bool:
        return (
            state.generation < self.config.generations
            and state.selection_pressure < self.config.selection_pressure_cap
            and not self.problem.terminator(state.best_candidate, state.best_fitness)
        )

    def _breed(self, context: RunContext, state: EvolutionCheckpoint) -> bool:
        """
        Fill the next buffer with accepted children until it is full or the
        selection pressure cap is reached.

        Slots left unfilled keep the candidate and fitness they already hold.

        Returns:
            False if cancellation interrupted the generation
        """
        config = self.config
        cap = config.selection_pressure_cap
        population, offspring = state.population, state.next_population

        index = config.elites
        attempts = 0
        state.selection_pressure = 0.0

        if index >= config.population_size:
            return True

        # Children are bred in a scratch candidate so that rejected ones never
        # touch the slots; an accepted child swaps places with the slot content
        scratch = copy.deepcopy(offspring.candidates[index])

        while index < config.population_size and state.selection_pressure < cap:
            if context.cancelled:
                return False

            child, fitness, (first_fitness, second_fitness) = self._make_child(population, scratch)
            attempts += 1

            if offspring_accepted(fitness, first_fitness, second_fitness):
                displaced = offspring.candidates[index]
                offspring.place(index, child, fitness)
                if child is scratch:
                    scratch = displaced

                if fitness < state.best_fitness:
                    self._improve(state, child, fitness)
                index += 1

            state.selection_pressure = attempts / config.population_size

        if index < config.population_size:
            logger.debug(
                f"{self.id} reached selection pressure {state.selection_pressure:.1f} "
                f"with {index - config.elites} of {config.population_size - config.elites} slots filled"
            )
        return True

    def _immigrate(self, state: EvolutionCheckpoint) -> int:
        return 0

    def _selection_pressure(self, state: EvolutionCheckpoint) -> Optional[float]:
        return state.selection_pressure
