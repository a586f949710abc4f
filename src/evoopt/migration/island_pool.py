"""
In-process migration between engines sharing one Python process.

Each engine that starts with the pool as its MigrationPort publishes a
snapshot of its initial population. Stagnating engines then draw immigrants
from the snapshots of the other islands.
"""

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..core.lifecycle import CancellationToken
from ..exceptions import MigrationError

logger = logging.getLogger(__name__)


class IslandPool:
    """
    MigrationPort backed by in-memory population snapshots.

    Migrant policies:
        best: the lowest-fitness candidates across all donor islands
        random: uniform draws across all donor islands
    """

    POLICY_BEST = "best"
    POLICY_RANDOM = "random"

    def __init__(self, policy: str = POLICY_BEST, seed: Optional[int] = None, poll_interval: float = 0.05):
        """
        Initialize the pool.

        Args:
            policy: Migrant selection policy ("best" or "random")
            seed: Seed of the pool's own random generator
            poll_interval: Seconds between cancellation checks of a published snapshot
        """
        if policy not in (self.POLICY_BEST, self.POLICY_RANDOM):
            raise ValueError(f"Unknown migrant policy: {policy}")

        self.policy = policy
        self.poll_interval = poll_interval

        self._rng = np.random.default_rng(seed)
        self._lock = threading.Lock()
        self._islands: Dict[str, Tuple[List[Any], np.ndarray]] = {}

    @property
    def islands(self) -> List[str]:
        """Run ids currently offering migrants."""
        with self._lock:
            return list(self._islands)

    async def migrate(
        self,
        run_id: str,
        population: List[Any],
        fitness: np.ndarray,
        token: CancellationToken,
    ) -> None:
        """
        Offer a population snapshot until the run's token is cancelled.
        """
        with self._lock:
            self._islands[run_id] = (population, np.asarray(fitness, dtype=float))
        logger.info(f"Island {run_id} joined the pool with {len(population)} candidates")

        try:
            await token.wait_async(self.poll_interval)
        finally:
            with self._lock:
                self._islands.pop(run_id, None)
            logger.info(f"Island {run_id} left the pool")

    def immigrate(self, run_id: str, count: int) -> Tuple[List[Any], List[float]]:
        """
        Draw ``count`` migrants from islands other than ``run_id``.

        Raises:
            MigrationError: If no other island is offering migrants
        """
        with self._lock:
            donors = [snapshot for island, snapshot in self._islands.items() if island != run_id]

            if not donors:
                raise MigrationError(f"no donor islands available for {run_id}")

            candidates = [c for population, _ in donors for c in population]
            fitness = np.concatenate([f for _, f in donors])
            indices = self._pick(fitness, count)

            migrants = [copy.deepcopy(candidates[i]) for i in indices]
            migrant_fitness = [float(fitness[i]) for i in indices]

        logger.debug(f"Sending {len(migrants)} migrants to {run_id}")
        return migrants, migrant_fitness

    def _pick(self, fitness: np.ndarray, count: int) -> np.ndarray:
        if self.policy == self.POLICY_RANDOM:
            return self._rng.choice(len(fitness), size=count, replace=len(fitness) < count)

        # Cycle through the ranking when fewer candidates than requested exist
        ranking = np.argsort(fitness, kind="stable")
        return np.resize(ranking, count)
