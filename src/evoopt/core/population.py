"""
Population management for the evoopt engines.

This module defines the Population class, an index-aligned pair of candidate
list and fitness vector. The engines keep two of them (current and next) and
swap their roles every generation instead of copying contents.
"""

import copy
from typing import Any, Dict, Generic, Iterator, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

T = TypeVar("T")


class Population(Generic[T]):
    """
    A fixed-length population with its fitness vector.

    ``fitness[i]`` is the quality of ``candidates[i]``; lower is better.

    Attributes:
        candidates: Candidate solutions, index-addressed
        fitness: Float vector aligned 1:1 with candidates
    """

    def __init__(self, candidates: Sequence[T], fitness: Optional[Sequence[float]] = None):
        """
        Initialize a Population.

        Args:
            candidates: Candidate solutions
            fitness: Fitness values aligned with candidates (zeros if None)

        Raises:
            ValueError: If candidates and fitness differ in length
        """
        self.candidates: List[T] = list(candidates)
        if fitness is None:
            self.fitness = np.zeros(len(self.candidates), dtype=float)
        else:
            self.fitness = np.array(fitness, dtype=float)

        if self.fitness.shape != (len(self.candidates),):
            raise ValueError(
                f"fitness vector of shape {self.fitness.shape} does not match "
                f"{len(self.candidates)} candidates"
            )

    @property
    def size(self) -> int:
        """Get the population size."""
        return len(self.candidates)

    def duplicate(self) -> "Population[T]":
        """Deep copy of candidates and fitness, independent of this population."""
        return Population(copy.deepcopy(self.candidates), self.fitness.copy())

    def place(self, index: int, candidate: T, fitness: float) -> None:
        """Store a candidate and its fitness at an index."""
        self.candidates[index] = candidate
        self.fitness[index] = fitness

    def fill_elites(self, elites: int, candidate: T, fitness: float) -> None:
        """
        Overwrite the first ``elites`` slots with copies of one solution.

        Args:
            elites: Number of reserved slots at the front
            candidate: Best-known candidate (copied into every slot)
            fitness: Its fitness
        """
        for index in range(elites):
            self.candidates[index] = copy.deepcopy(candidate)
            self.fitness[index] = fitness

    def best_index(self) -> int:
        """Index of the lowest fitness (first one on ties)."""
        return int(np.argmin(self.fitness))

    def fitness_view(self) -> np.ndarray:
        """Read-only view of the fitness vector for selectors."""
        view = self.fitness.view()
        view.flags.writeable = False
        return view

    def snapshot(self) -> Tuple[List[T], np.ndarray]:
        """
        Point-in-time copy for handing to a concurrent reader.

        The returned objects share nothing with this population, so later
        swaps and in-place crossover cannot be observed through them.
        """
        fitness = self.fitness.copy()
        fitness.flags.writeable = False
        return copy.deepcopy(self.candidates), fitness

    def statistics(self) -> Dict[str, Any]:
        """
        Compute population statistics.

        Returns:
            Dictionary with size and best/average/worst fitness
        """
        if self.size == 0:
            return {
                "size": 0,
                "avg_fitness": None,
                "best_fitness": None,
                "worst_fitness": None,
            }

        return {
            "size": self.size,
            "avg_fitness": float(np.mean(self.fitness)),
            "best_fitness": float(np.min(self.fitness)),
            "worst_fitness": float(np.max(self.fitness)),
        }

    def __repr__(self) -> str:
        """String representation of the population."""
        stats = self.statistics()
        if stats["size"] == 0:
            return "Population(size=0)"
        return (
            f"Population(size={stats['size']}, "
            f"best={stats['best_fitness']:.6g}, "
            f"avg={stats['avg_fitness']:.6g})"
        )

    def __len__(self) -> int:
        """Get the population size."""
        return len(self.candidates)

    def __iter__(self) -> Iterator[Tuple[T, float]]:
        """Iterate over (candidate, fitness) pairs."""
        return iter(zip(self.candidates, self.fitness.tolist()))
