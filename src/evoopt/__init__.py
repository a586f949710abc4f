"""
evoopt: population-based metaheuristics with cooperative lifecycle control.

Engines:
    GenerationalEngine: Elitist GA with optional local search and island immigration
    OffspringSelectionEngine: GA with strict offspring selection and a selection-pressure cap
    SelfAdaptiveES: (1+1) evolution strategy with self-adaptive mutation rates
"""

from .core import CancellationToken, FunctionProblem, LifecycleController, Population, Problem, RunState
from .exceptions import ConfigurationError, EvoOptError, MigrationError, ProblemContractViolation
from .migration import IslandPool, MigrationPort
from .optimization import (
    EngineConfig,
    EvolutionStrategyConfig,
    GenerationalEngine,
    GeneticAlgorithmConfig,
    MutationStrategy,
    OffspringSelectionConfig,
    OffspringSelectionEngine,
    OptimizationResult,
    SelfAdaptiveES,
)
from .utils import ProgressPublisher, ProgressRecord

__version__ = "0.1.0"

__all__ = [
    # Engines
    "GenerationalEngine",
    "OffspringSelectionEngine",
    "SelfAdaptiveES",
    "OptimizationResult",

    # Configuration
    "EngineConfig",
    "GeneticAlgorithmConfig",
    "OffspringSelectionConfig",
    "EvolutionStrategyConfig",
    "MutationStrategy",

    # Problem and lifecycle
    "Problem",
    "FunctionProblem",
    "Population",
    "CancellationToken",
    "LifecycleController",
    "RunState",

    # Migration and monitoring
    "MigrationPort",
    "IslandPool",
    "ProgressRecord",
    "ProgressPublisher",

    # Errors
    "EvoOptError",
    "ConfigurationError",
    "ProblemContractViolation",
    "MigrationError",
]
