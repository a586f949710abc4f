"""
Core building blocks: the problem contract, populations and run lifecycle.
"""

from .lifecycle import CancellationToken, LifecycleController, RunState, loop_spawner, spawn_detached
from .population import Population
from .problem import FunctionProblem, LocalSearch, Problem, never_terminate, require_operations

__all__ = [
    "Problem",
    "FunctionProblem",
    "LocalSearch",
    "never_terminate",
    "require_operations",
    "Population",
    "CancellationToken",
    "LifecycleController",
    "RunState",
    "spawn_detached",
    "loop_spawner",
]
