"""
Fixtures for unit tests.
"""

import itertools

import numpy as np
import pytest


class ScalarProblem:
    """
    Rigged problem over one-gene candidates ``[x]`` whose fitness is ``x``.

    Candidates are produced from ``values`` in order. The selector cycles
    through ``indices``; crossover copies the first parent unless
    ``child_values`` supplies the gene of each child in turn.
    """

    def __init__(self, values, indices=(0,), child_values=None, terminator=None):
        self._values = iter(values)
        self._indices = itertools.cycle(indices)
        self._children = iter(child_values) if child_values is not None else None
        self._terminator = terminator
        self.evaluated = []

    def creator(self):
        return [float(next(self._values))]

    def evaluator(self, candidate):
        self.evaluated.append(candidate[0])
        return candidate[0]

    def selector(self, fitness):
        return next(self._indices)

    def crossover(self, first_parent, second_parent, child):
        if self._children is None:
            child[:] = first_parent
        else:
            child[:] = [float(next(self._children))]

    def mutator(self, candidate):
        candidate[0] -= 1.0

    def terminator(self, best_candidate, best_fitness):
        if self._terminator is None:
            return False
        return self._terminator(best_candidate, best_fitness)


class RastriginProblem:
    """Rastrigin function on real vectors with its own seeded random source."""

    def __init__(self, dimensions=5, seed=0, target=1e-8):
        self.dimensions = dimensions
        self.target = target
        self.rng = np.random.default_rng(seed)

    def creator(self):
        return self.rng.uniform(-5.12, 5.12, self.dimensions)

    def evaluator(self, candidate):
        return float(10 * len(candidate) + np.sum(candidate ** 2 - 10 * np.cos(2 * np.pi * candidate)))

    def selector(self, fitness):
        first, second = self.rng.integers(len(fitness), size=2)
        return int(first if fitness[first] <= fitness[second] else second)

    def crossover(self, first_parent, second_parent, child):
        mask = self.rng.random(self.dimensions) < 0.5
        child[:] = np.where(mask, first_parent, second_parent)

    def mutator(self, candidate):
        index = self.rng.integers(self.dimensions)
        candidate[index] += self.rng.normal(0.0, 0.5)

    def terminator(self, best_candidate, best_fitness):
        return best_fitness < self.target


class SphereProblem:
    """Sum of squares, starting from a fixed point."""

    def __init__(self, start=(2.0, 3.0)):
        self.start = list(start)
        self.evaluated = []

    def creator(self):
        return np.array(self.start, dtype=float)

    def evaluator(self, candidate):
        self.evaluated.append(np.array(candidate, copy=True))
        return float(np.sum(np.square(candidate)))

    def terminator(self, best_candidate, best_fitness):
        return False


@pytest.fixture
def scalar_problem():
    """Factory for rigged scalar problems."""
    return ScalarProblem


@pytest.fixture
def rastrigin_problem():
    """Factory for seeded Rastrigin problems."""
    return RastriginProblem


@pytest.fixture
def sphere_problem():
    """Factory for sphere problems."""
    return SphereProblem
