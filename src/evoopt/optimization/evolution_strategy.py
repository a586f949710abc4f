"""
(1+1) evolution strategy with self-adaptive, per-dimension mutation rates.

A single real-valued candidate is evolved by multiplicative mutation
(``gene *= rate``). Three adaptation policies are available:

- probe: every dimension is tried separately against the unperturbed
  candidate; successful dimensions are combined and the combination is
  accepted if it improves. Rates grow on success and shrink on failure.
- incremental: dimensions are visited in a fresh random order each
  generation and every improving change is accepted immediately.
- reset: all dimensions are mutated at once with normally distributed
  rates; success grows all rates, failure redraws them.

probe and incremental stop early at zero fitness; reset stops when the
problem's terminator says so.
"""

import logging
from typing import Any, Callable, Optional

import numpy as np

from ..core.lifecycle import CancellationToken
from ..core.problem import require_operations
from ..utils.monitoring import ProgressRecord
from .base import Algorithm, OptimizationResult, RunContext
from .config import EvolutionStrategyConfig, GenerationHistory, MutationStrategy, StrategyCheckpoint

logger = logging.getLogger(__name__)

GROWTH_FACTOR = 1.5
SHRINK_FACTOR = 1.5 ** -0.25
INITIAL_MUTATION_RATE = 0.1


class SelfAdaptiveES(Algorithm):
    """
    Single-solution evolution strategy.

    Also usable as a local-search operator for the genetic engines through
    ``search``, which matches ``LocalSearch(candidate) -> (candidate, fitness)``.
    """

    def __init__(
        self,
        run_id: str,
        problem: Any,
        config: Optional[EvolutionStrategyConfig] = None,
        candidate: Optional[Any] = None,
        monitor: Optional[Callable[[ProgressRecord], None]] = None,
        group_id: Optional[str] = None,
    ):
        """
        Initialize the evolution strategy.

        Args:
            run_id: Identifier of this engine
            problem: Problem providing at least creator, evaluator and terminator
            config: Hyperparameters (defaults to EvolutionStrategyConfig())
            candidate: Starting point; the problem's creator is used if None
            monitor: Optional progress sink
            group_id: Monitoring group id
        """
        require_operations(problem, ("creator", "evaluator", "terminator"))
        super().__init__(run_id, problem, config or EvolutionStrategyConfig(), monitor, group_id)

        self.candidate = candidate

        logger.info(
            f"Initialized SelfAdaptiveES {run_id} with {self.config.strategy.value} strategy, "
            f"{self.config.generations} generations"
        )

    @property
    def mutation_rates(self) -> Optional[np.ndarray]:
        """Mutation rates of the latest run."""
        return self.state.mutation_rates if self.state is not None else None

    def search(self, candidate: Any, token: Optional[CancellationToken] = None) -> OptimizationResult:
        """
        Evolve a given candidate for the configured number of generations.

        Runs synchronously, outside the lifecycle controller, and does not
        record history. Independent of this engine's own runs: only ``token``
        can cut a search short.
        """
        state = self._initialize(candidate)
        self._evolve(RunContext(token=token or CancellationToken()), state, record=False)
        return OptimizationResult(state.candidate.copy(), state.fitness)

    def _optimize(self, context: RunContext, checkpoint: Optional[StrategyCheckpoint]) -> OptimizationResult:
        if checkpoint is None:
            state = self._initialize(self.candidate)
        else:
            state = checkpoint
            self._restore_rng(state.rng_state)
            logger.info(f"Resuming {self.id} at generation {state.generation}")

        self.state = state
        self.checkpoint = None

        if self._evolve(context, state, record=True):
            state.rng_state = self._save_rng()
            self.checkpoint = state
            logger.info(f"Run {self.id} interrupted at generation {state.generation}, fitness {state.fitness:.6g}")
        else:
            logger.info(f"Run {self.id} complete after {state.generation} generations. Fitness: {state.fitness:.6g}")

        return OptimizationResult(state.candidate.copy(), state.fitness)

    def _initialize(self, candidate: Optional[Any]) -> StrategyCheckpoint:
        if candidate is None:
            candidate = self.problem.creator()
        candidate = np.array(candidate, dtype=float)

        strategy = self.config.strategy
        if strategy is MutationStrategy.RESET:
            rates = self.rng.normal(0.0, 1.0, size=candidate.shape)
        else:
            rates = np.full(candidate.shape, INITIAL_MUTATION_RATE)

        return StrategyCheckpoint(
            strategy=strategy,
            generation=0,
            candidate=candidate,
            fitness=self._evaluate(candidate),
            mutation_rates=rates,
        )

    def _evolve(self, context: RunContext, state: StrategyCheckpoint, record: bool) -> bool:
        """
        Run generations on ``state`` in place.

        Returns:
            True if cancellation interrupted the run
        """
        step = {
            MutationStrategy.PROBE: self._probe_step,
            MutationStrategy.INCREMENTAL: self._incremental_step,
            MutationStrategy.RESET: self._reset_step,
        }[state.strategy]

        while state.generation < self.config.generations and self._should_continue(state):
            if context.cancelled:
                return True

            step(state)
            state.generation += 1

            if record:
                self._record_generation(context, GenerationHistory(
                    generation=state.generation - 1,
                    best_fitness=state.fitness,
                    evaluations=self.evaluations,
                ))

        if state.strategy is MutationStrategy.INCREMENTAL:
            self._verify(state)
        return False

    def _should_continue(self, state: StrategyCheckpoint) -> bool:
        if state.strategy is MutationStrategy.RESET:
            return not self.problem.terminator(state.candidate, state.fitness)
        return state.fitness != 0.0

    def _probe_step(self, state: StrategyCheckpoint) -> None:
        candidate, rates = state.candidate, state.mutation_rates
        combined = candidate.copy()

        for i in range(candidate.size):
            probe = candidate.copy()
            probe.flat[i] *= rates.flat[i]

            if self._evaluate(probe) < state.fitness:
                combined.flat[i] = probe.flat[i]
                rates.flat[i] *= GROWTH_FACTOR
            else:
                rates.flat[i] *= SHRINK_FACTOR

        # Successful dimensions may still interfere once combined
        combined_fitness = self._evaluate(combined)
        if combined_fitness < state.fitness:
            state.candidate = combined
            state.fitness = combined_fitness

    def _incremental_step(self, state: StrategyCheckpoint) -> None:
        rates = state.mutation_rates

        for i in self.rng.permutation(state.candidate.size):
            probe = state.candidate.copy()
            probe.flat[i] *= rates.flat[i]
            probe_fitness = self._evaluate(probe)

            if probe_fitness < state.fitness:
                state.candidate = probe
                state.fitness = probe_fitness
                rates.flat[i] *= GROWTH_FACTOR
            else:
                rates.flat[i] *= SHRINK_FACTOR

    def _reset_step(self, state: StrategyCheckpoint) -> None:
        trial = state.candidate * state.mutation_rates
        trial_fitness = self._evaluate(trial)

        if trial_fitness < state.fitness:
            state.candidate = trial
            state.fitness = trial_fitness
            state.mutation_rates *= GROWTH_FACTOR
        else:
            state.mutation_rates = self.rng.normal(0.0, 1.0, size=state.candidate.shape)

    def _verify(self, state: StrategyCheckpoint) -> None:
        fitness = self._evaluate(state.candidate)
        if fitness != state.fitness:
            logger.warning(
                f"{self.id}: re-evaluation gave {fitness:.6g} instead of {state.fitness:.6g}; "
                "the evaluator is not deterministic"
            )
            state.fitness = fitness
