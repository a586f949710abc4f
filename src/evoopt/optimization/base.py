"""
Common machinery of the evoopt engines.

The Algorithm base class owns what every engine needs regardless of its
search scheme: the problem binding, a private seedable random generator,
evaluation accounting with contract checks, generation history, progress
publishing and the lifecycle controller.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, NamedTuple, Optional

import numpy as np

from ..core.lifecycle import CancellationToken, LifecycleController, Spawner, spawn_detached
from ..core.problem import checked_fitness
from ..utils.monitoring import ProgressPublisher, ProgressRecord
from .config import GenerationHistory

logger = logging.getLogger(__name__)


class OptimizationResult(NamedTuple):
    """Best solution of a run."""

    candidate: Any
    fitness: float


@dataclass
class RunContext:
    """Per-run collaborators handed down the engine loop."""

    token: CancellationToken
    spawn: Spawner = spawn_detached
    publisher: Optional[ProgressPublisher] = None

    @property
    def cancelled(self) -> bool:
        return self.token.cancellation_requested


class Algorithm(ABC):
    """
    Base class for all optimization engines.

    Subclasses implement ``_optimize``; everything else (lifecycle, history,
    monitoring) is shared.
    """

    def __init__(
        self,
        run_id: str,
        problem: Any,
        config: Any,
        monitor: Optional[Callable[[ProgressRecord], None]] = None,
        group_id: Optional[str] = None,
    ):
        """
        Initialize the engine.

        Args:
            run_id: Identifier of this engine, used for migration and monitoring
            problem: Problem providing the operations this engine calls
            config: Engine hyperparameters
            monitor: Optional sink receiving one progress record per generation
            group_id: Monitoring group shared by engines of one experiment
        """
        self.id = run_id
        self.problem = problem
        self.config = config
        self.monitor = monitor
        self.group_id = group_id or str(uuid.uuid4())

        self.rng = np.random.default_rng(config.seed)
        self.history: List[GenerationHistory] = []
        self.evaluations = 0

        # Working state of the current run; kept as checkpoint when interrupted
        self.state: Any = None
        self.checkpoint: Any = None
        self.publisher: Optional[ProgressPublisher] = None

        self.lifecycle = LifecycleController(self)

        logging.getLogger("evoopt").setLevel(getattr(logging, config.log_level.upper()))

    # Lifecycle delegation

    def run(self):
        """Start a run (idempotent); returns the result handle."""
        return self.lifecycle.run()

    def pause(self):
        """Interrupt the run, keeping it resumable."""
        return self.lifecycle.pause()

    def resume(self):
        """Continue a paused run."""
        return self.lifecycle.resume()

    def stop(self):
        """Interrupt the run for good."""
        return self.lifecycle.stop()

    def cancel(self) -> None:
        """Request cancellation without returning the handle."""
        self.lifecycle.cancel()

    @property
    def run_state(self):
        """Lifecycle state of this engine."""
        return self.lifecycle.state

    @property
    def background_tasks(self):
        """Futures of background work spawned by controller-driven runs."""
        return self.lifecycle.background

    def optimize(
        self,
        token: Optional[CancellationToken] = None,
        checkpoint: Any = None,
        spawn: Optional[Spawner] = None,
    ) -> OptimizationResult:
        """
        Run the optimization synchronously in the calling thread.

        Args:
            token: Cancellation token polled between candidates
            checkpoint: State of an interrupted run to continue from
            spawn: Scheduler for background coroutines (migration push)

        Returns:
            Best-known candidate and fitness
        """
        context = RunContext(
            token=token or CancellationToken(),
            spawn=spawn or spawn_detached,
            publisher=ProgressPublisher(self.monitor) if self.monitor else None,
        )
        self.publisher = context.publisher
        try:
            return self._optimize(context, checkpoint)
        finally:
            # Records still queued are delivered by the publisher thread
            if context.publisher is not None:
                context.publisher.close()

    @abstractmethod
    def _optimize(self, context: RunContext, checkpoint: Any) -> OptimizationResult:
        ...

    def _evaluate(self, candidate: Any) -> float:
        self.evaluations += 1
        return checked_fitness(self.problem.evaluator(candidate))

    def _save_rng(self) -> dict:
        return self.rng.bit_generator.state

    def _restore_rng(self, rng_state: Optional[dict]) -> None:
        if rng_state is not None:
            self.rng.bit_generator.state = rng_state

    def _record_generation(
        self,
        context: RunContext,
        entry: GenerationHistory,
    ) -> None:
        """Append a history entry, log it and publish progress records."""
        self.history.append(entry)

        if self.config.log_generation_stats:
            message = f"{self.id} gen {entry.generation}: best={entry.best_fitness:.6g}"
            if entry.selection_pressure is not None:
                message += f", sel. pres.={entry.selection_pressure:.1f}"
            if entry.immigrants:
                message += f", immigrants={entry.immigrants}"
            logger.info(message)

        if context.publisher is None:
            return

        context.publisher.publish(ProgressRecord(
            algorithm_name=self.id,
            group_id=self.group_id,
            rank=1,
            label=f"{self.id}: fit",
            value=entry.best_fitness,
            timestamp=entry.timestamp,
        ))
        if entry.selection_pressure is not None:
            context.publisher.publish(ProgressRecord(
                algorithm_name=self.id,
                group_id=self.group_id,
                rank=2,
                label=f"{self.id}: spres",
                value=entry.selection_pressure,
                timestamp=entry.timestamp,
            ))
