"""
Migration boundary of the generational engine.

A MigrationPort is supplied by an external collaborator (network transport,
message broker, or the in-process IslandPool). The engine calls it at two
points only:

- ``migrate`` once when a run starts, as a background task that receives a
  point-in-time snapshot of the population and must honor the run's
  cancellation token;
- ``immigrate`` from inside the generation loop, synchronously, when the run
  has stagnated long enough.

Failures on either side are logged here and never reach the generation loop.
"""

import concurrent.futures
import inspect
import logging
from typing import Any, Awaitable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from ..core.lifecycle import CancellationToken, Spawner
from ..core.population import Population
from ..core.problem import checked_fitness
from ..exceptions import ProblemContractViolation

logger = logging.getLogger(__name__)


@runtime_checkable
class MigrationPort(Protocol):
    """Hooks an engine uses to exchange candidates with other islands."""

    def immigrate(self, run_id: str, count: int) -> Tuple[Sequence[Any], Sequence[float]]:
        """Return exactly ``count`` candidates and their fitness values."""
        ...

    def migrate(
        self,
        run_id: str,
        population: List[Any],
        fitness: np.ndarray,
        token: CancellationToken,
    ) -> Awaitable[None]:
        """Offer a population snapshot to other islands until cancelled."""
        ...


def request_immigrants(port: MigrationPort, run_id: str, count: int) -> Tuple[List[Any], List[float]]:
    """
    Pull immigrants, turning any failure into zero immigrants.

    Args:
        port: Migration port to ask
        run_id: Identifier of the requesting run
        count: Number of immigrants wanted

    Returns:
        Candidates and fitness values, both empty on failure
    """
    if count <= 0:
        return [], []

    try:
        candidates, fitness = port.immigrate(run_id, count)
        candidates = list(candidates)
        fitness = [checked_fitness(f, source="immigrate") for f in fitness]
    except ProblemContractViolation as e:
        logger.warning(f"Discarding immigrants for {run_id}: {e}")
        return [], []
    except Exception as e:
        logger.warning(f"Immigration failed for {run_id}: {e}")
        return [], []

    if len(candidates) != len(fitness) or len(candidates) != count:
        logger.warning(
            f"Discarding immigrants for {run_id}: requested {count}, received "
            f"{len(candidates)} candidates and {len(fitness)} fitness values"
        )
        return [], []

    return candidates, fitness


def start_migration(
    port: MigrationPort,
    run_id: str,
    population: Population,
    token: CancellationToken,
    spawn: Spawner,
) -> Optional[concurrent.futures.Future]:
    """
    Hand a snapshot of the population to the port's push hook.

    The hook never sees the engine's live buffers: it gets deep copies taken
    before the call, so the engine can keep swapping and overwriting its own.

    Returns:
        Future of the background task, or None if it could not be started
    """
    candidates, fitness = population.snapshot()
    try:
        result = port.migrate(run_id, candidates, fitness, token)
        if not inspect.isawaitable(result):
            return None
        future = spawn(result)
    except Exception as e:
        logger.warning(f"Could not start migration for {run_id}: {e}")
        return None

    future.add_done_callback(lambda f: _report_migration(run_id, f))
    logger.debug(f"Started migration task for {run_id}")
    return future


def _report_migration(run_id: str, future: concurrent.futures.Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"Migration task for {run_id} failed: {error}")
