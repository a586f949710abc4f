"""
Configuration and data classes for the evoopt engines.
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional

import numpy as np
import yaml

from ..core.population import Population
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE_VALUES = ("1", "true", "yes", "on")


class MutationStrategy(str, Enum):
    """Self-adaptive mutation policies of the evolution strategy."""

    PROBE = "probe"
    INCREMENTAL = "incremental"
    RESET = "reset"


def _check_rate(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be between 0 and 1")


def _check_log_level(value: str) -> None:
    if str(value).upper() not in _LOG_LEVELS:
        raise ConfigurationError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")


class ConfigFileMixin:
    """YAML and environment loading shared by all configuration classes."""

    # Top-level YAML key holding this configuration
    section: ClassVar[str] = ""

    @classmethod
    def from_yaml(cls, config_path: Path):
        """
        Load configuration from YAML file.

        The values are read from the class's section if present, otherwise
        from the top level of the document.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Configuration instance
        """
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        values = config.get(cls.section, config)
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"unknown {cls.__name__} options: {', '.join(sorted(unknown))}")

        return cls(**values)

    @classmethod
    def from_env(cls, prefix: str = "EVOOPT_"):
        """
        Load configuration from environment variables.

        Each field is read from ``<prefix><FIELD_NAME>``, e.g.
        ``EVOOPT_POPULATION_SIZE`` or ``EVOOPT_MAXIMUM_SELECTION_PRESSURE``.
        Unset variables keep their defaults.

        Returns:
            Configuration instance
        """
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = cls._coerce(f.name, f.default, raw)
        return cls(**values)

    @staticmethod
    def _coerce(name: str, default: Any, raw: str) -> Any:
        if name == "seed":
            return int(raw)
        if isinstance(default, bool):
            return raw.strip().lower() in _TRUE_VALUES
        if isinstance(default, Enum):
            return raw.strip()
        try:
            return type(default)(raw)
        except ValueError as e:
            raise ConfigurationError(f"invalid value for {name}: {raw!r}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    def to_yaml(self, save_path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            save_path: Path where to save the configuration
        """
        with open(save_path, "w") as f:
            yaml.dump({self.section: self.to_dict()}, f, default_flow_style=False)

        logger.info(f"Saved configuration to {save_path}")


@dataclass
class EngineConfig(ConfigFileMixin):
    """
    Hyperparameters shared by the population-based engines.
    """

    section: ClassVar[str] = "engine"

    population_size: int = 1000
    generations: int = 5000
    mutation_rate: float = 0.1
    elites: int = 1

    # Memetic hybridization
    local_search_rate: float = 0.0

    # None draws a fresh seed from the OS
    seed: Optional[int] = None

    # Logging
    log_level: str = "INFO"
    log_generation_stats: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.population_size < 1:
            raise ConfigurationError("population_size must be at least 1")
        if self.elites < 1:
            raise ConfigurationError("elites must be at least 1")
        if self.elites > self.population_size:
            raise ConfigurationError("elites must not exceed population_size")
        if self.generations < 0:
            raise ConfigurationError("generations must not be negative")
        _check_rate("mutation_rate", self.mutation_rate)
        _check_rate("local_search_rate", self.local_search_rate)
        _check_log_level(self.log_level)


@dataclass
class GeneticAlgorithmConfig(EngineConfig):
    """
    Hyperparameters of the generational engine, including island immigration.
    """

    section: ClassVar[str] = "genetic_algorithm"

    # Immigration starts once generations-without-improvement / generations
    # reaches this value
    epoch_triggering_failure_rate: float = 0.1
    # Immigrants requested per epoch, as a fraction of population_size
    immigration_rate: float = 0.1

    def __post_init__(self):
        super().__post_init__()
        _check_rate("epoch_triggering_failure_rate", self.epoch_triggering_failure_rate)
        _check_rate("immigration_rate", self.immigration_rate)


@dataclass
class OffspringSelectionConfig(EngineConfig):
    """
    Hyperparameters of the offspring selection engine.

    A maximum_selection_pressure <= 0 leaves selection pressure uncapped.
    """

    section: ClassVar[str] = "offspring_selection"

    maximum_selection_pressure: float = 1000.0

    @property
    def selection_pressure_cap(self) -> float:
        """Effective cap, infinite when uncapped."""
        if self.maximum_selection_pressure <= 0:
            return float("inf")
        return self.maximum_selection_pressure


@dataclass
class EvolutionStrategyConfig(ConfigFileMixin):
    """
    Hyperparameters of the (1+1) self-adaptive evolution strategy.
    """

    section: ClassVar[str] = "evolution_strategy"

    generations: int = 100
    strategy: MutationStrategy = MutationStrategy.INCREMENTAL
    seed: Optional[int] = None

    log_level: str = "INFO"
    log_generation_stats: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.generations < 0:
            raise ConfigurationError("generations must not be negative")
        try:
            self.strategy = MutationStrategy(self.strategy)
        except ValueError as e:
            choices = ", ".join(s.value for s in MutationStrategy)
            raise ConfigurationError(f"strategy must be one of {choices}") from e
        _check_log_level(self.log_level)


@dataclass
class GenerationHistory:
    """
    Statistics for a single completed generation.
    """

    generation: int
    best_fitness: float
    evaluations: int
    avg_fitness: Optional[float] = None
    worst_fitness: Optional[float] = None
    selection_pressure: Optional[float] = None
    immigrants: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationHistory":
        """Create instance from dictionary."""
        return cls(**data)


@dataclass
class EvolutionCheckpoint:
    """
    Working state of a population-based run.

    The engines mutate this object as they go; when a run is interrupted it
    is kept on the engine so that a resumed run continues from it.
    """

    generation: int
    population: Population
    next_population: Population
    best_candidate: Any
    best_fitness: float
    # Generations since the last improvement of the best-known fitness
    failures: int = 0
    selection_pressure: float = 0.0
    rng_state: Optional[Dict[str, Any]] = None


@dataclass
class StrategyCheckpoint:
    """
    Working state of an evolution strategy run.
    """

    strategy: MutationStrategy
    generation: int
    candidate: np.ndarray
    fitness: float
    mutation_rates: np.ndarray
    rng_state: Optional[Dict[str, Any]] = None
