"""
Optimization engines of evoopt.

The generational GA and its offspring-selection variant evolve a population
of opaque candidates; the self-adaptive ES evolves a single real vector and
doubles as a local-search operator for the former.
"""

from .base import Algorithm, OptimizationResult
from .config import (
    EngineConfig,
    EvolutionCheckpoint,
    EvolutionStrategyConfig,
    GenerationHistory,
    GeneticAlgorithmConfig,
    MutationStrategy,
    OffspringSelectionConfig,
    StrategyCheckpoint,
)
from .evolution_strategy import SelfAdaptiveES
from .genetic import GenerationalEngine
from .offspring_selection import OffspringSelectionEngine, offspring_accepted

__all__ = [
    "Algorithm",
    "OptimizationResult",
    "GenerationalEngine",
    "OffspringSelectionEngine",
    "offspring_accepted",
    "SelfAdaptiveES",
    "EngineConfig",
    "GeneticAlgorithmConfig",
    "OffspringSelectionConfig",
    "EvolutionStrategyConfig",
    "MutationStrategy",
    "GenerationHistory",
    "EvolutionCheckpoint",
    "StrategyCheckpoint",
]
