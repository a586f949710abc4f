"""
Problem contract for the optimization engines.

An optimization target is anything exposing the six operations below. The
engines never look inside a candidate: they duplicate it with ``copy.deepcopy``
and hand it back to these operations. Lower fitness is better throughout.
"""

import math
import numbers
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Tuple, TypeVar, runtime_checkable

import numpy as np

from ..exceptions import ConfigurationError, ProblemContractViolation

T = TypeVar("T")

# Local search returns an improved candidate and its fitness.
LocalSearch = Callable[[Any], Tuple[Any, float]]

PROBLEM_OPERATIONS = ("creator", "evaluator", "selector", "crossover", "mutator", "terminator")


@runtime_checkable
class Problem(Protocol[T]):
    """
    Capability contract an optimization target must satisfy.

    Operations:
        creator: Produce one independently sampled candidate
        evaluator: Deterministic fitness of a candidate
        selector: Index into the current population given its fitness vector
        crossover: Write a child of two parents into a caller-owned output slot
        mutator: Perturb a candidate in place
        terminator: True when the run should stop
    """

    def creator(self) -> T:
        ...

    def evaluator(self, candidate: T) -> float:
        ...

    def selector(self, fitness: np.ndarray) -> int:
        ...

    def crossover(self, first_parent: T, second_parent: T, child: T) -> None:
        ...

    def mutator(self, candidate: T) -> None:
        ...

    def terminator(self, best_candidate: T, best_fitness: float) -> bool:
        ...


def never_terminate(best_candidate: Any, best_fitness: float) -> bool:
    """Terminator that leaves stopping to the generation budget."""
    return False


@dataclass
class FunctionProblem(Generic[T]):
    """
    Problem assembled from plain callables.

    Operations an algorithm does not use may be left as None; the evolution
    strategy only needs ``creator`` and ``evaluator``, for example.
    """

    creator: Callable[[], T]
    evaluator: Callable[[T], float]
    selector: Optional[Callable[[np.ndarray], int]] = None
    crossover: Optional[Callable[[T, T, T], None]] = None
    mutator: Optional[Callable[[T], None]] = None
    terminator: Callable[[T, float], bool] = never_terminate


def require_operations(problem: Any, operations: Iterable[str] = PROBLEM_OPERATIONS) -> None:
    """
    Check that a problem provides the operations an algorithm calls.

    Raises:
        ConfigurationError: If any operation is missing or not callable
    """
    if problem is None:
        raise ConfigurationError("problem must be provided")

    missing = [name for name in operations if not callable(getattr(problem, name, None))]
    if missing:
        raise ConfigurationError(f"problem is missing required operations: {', '.join(missing)}")


def checked_fitness(value: Any, source: str = "evaluator") -> float:
    """
    Validate a fitness value returned by a problem operation.

    Args:
        value: The returned fitness
        source: Operation name used in the error message

    Returns:
        The fitness as a float

    Raises:
        ProblemContractViolation: If the value is not a real number or is NaN
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ProblemContractViolation(f"{source} returned a non-numeric fitness: {value!r}")

    fitness = float(value)
    if math.isnan(fitness):
        raise ProblemContractViolation(f"{source} returned NaN fitness")
    return fitness


def checked_index(value: Any, size: int) -> int:
    """
    Validate a parent index returned by the selector.

    Raises:
        ProblemContractViolation: If the index is not an integer in [0, size)
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ProblemContractViolation(f"selector returned a non-integer index: {value!r}")

    index = int(value)
    if not 0 <= index < size:
        raise ProblemContractViolation(f"selector returned index {index} outside [0, {size})")
    return index


def candidate_length(candidate: Any) -> Optional[int]:
    """Length of a sized candidate, None for unsized ones."""
    try:
        return len(candidate)
    except TypeError:
        return None
