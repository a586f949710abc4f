#!/usr/bin/env python3
"""
Rastrigin minimization with the evoopt engines.

This script demonstrates how to:
1. Define a problem with the six operations the engines call
2. Hybridize the generational GA with the evolution strategy as local search
3. Let two GA islands exchange migrants through an in-process IslandPool
4. Run an offspring selection GA next to them and monitor all engines

Usage:
    python examples/rastrigin_islands.py --dimensions 20 --generations 200
    python examples/rastrigin_islands.py --config config.yaml
"""

import argparse
import asyncio
import logging
import uuid
from pathlib import Path

import numpy as np

from evoopt import (
    EvolutionStrategyConfig,
    GenerationalEngine,
    GeneticAlgorithmConfig,
    IslandPool,
    OffspringSelectionConfig,
    OffspringSelectionEngine,
    ProgressRecord,
    SelfAdaptiveES,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

MIN_X = -5.12
MAX_X = 5.12


class Rastrigin:
    """
    Rastrigin function over real vectors in [-5.12, 5.12]^n.

    Uniform random parent selection, single-point crossover and single-gene
    reset mutation.
    """

    def __init__(self, dimensions: int, seed: int):
        self.dimensions = dimensions
        self.rng = np.random.default_rng(seed)

    def creator(self) -> np.ndarray:
        return self.rng.uniform(MIN_X, MAX_X, self.dimensions)

    def evaluator(self, x: np.ndarray) -> float:
        return float(10.0 * len(x) + np.sum(x * x - 10.0 * np.cos(2.0 * np.pi * x)))

    def selector(self, fitness: np.ndarray) -> int:
        return int(self.rng.integers(len(fitness)))

    def crossover(self, first: np.ndarray, second: np.ndarray, child: np.ndarray) -> None:
        cut = int(self.rng.integers(len(child)))
        child[:cut] = first[:cut]
        child[cut:] = second[cut:]

    def mutator(self, x: np.ndarray) -> None:
        x[self.rng.integers(self.dimensions)] = self.rng.uniform(MIN_X, MAX_X)

    def terminator(self, best: np.ndarray, best_fitness: float) -> bool:
        return best_fitness < 1e-6


def log_progress(record: ProgressRecord) -> None:
    """Monitoring sink: one line per record."""
    logger.debug(f"[{record.group_id[:8]}] {record.label} = {record.value:.4f}")


def load_configs(args):
    if args.config:
        path = Path(args.config)
        return (
            GeneticAlgorithmConfig.from_yaml(path),
            OffspringSelectionConfig.from_yaml(path),
            EvolutionStrategyConfig.from_yaml(path),
        )

    ga_config = GeneticAlgorithmConfig(
        population_size=args.population_size,
        generations=args.generations,
        local_search_rate=0.01,
        seed=42,
    )
    osga_config = OffspringSelectionConfig(
        population_size=args.population_size,
        generations=args.generations,
        mutation_rate=0.5,
        seed=24,
    )
    es_config = EvolutionStrategyConfig(generations=5, seed=7, log_generation_stats=False)
    return ga_config, osga_config, es_config


async def main():
    parser = argparse.ArgumentParser(description="Rastrigin minimization with evoopt")
    parser.add_argument("--dimensions", type=int, default=20, help="Problem dimensionality")
    parser.add_argument("--generations", type=int, default=200, help="Maximum generations per engine")
    parser.add_argument("--population-size", type=int, default=200, help="Population size of the GAs")
    parser.add_argument("--config", type=str, default=None, help="YAML file with engine sections")
    args = parser.parse_args()

    ga_config, osga_config, es_config = load_configs(args)
    group = str(uuid.uuid4())
    pool = IslandPool(policy=IslandPool.POLICY_BEST, seed=0)

    # Each engine gets its own problem instance, hence its own random source
    island_problems = [Rastrigin(args.dimensions, seed) for seed in (1, 2)]
    islands = [
        GenerationalEngine(
            f"ga{i + 1}",
            problem,
            ga_config,
            local_search=SelfAdaptiveES(f"es{i + 1}", problem, es_config).search,
            migration=pool,
            monitor=log_progress,
            group_id=group,
        )
        for i, problem in enumerate(island_problems)
    ]
    osga = OffspringSelectionEngine(
        "osga1",
        Rastrigin(args.dimensions, 3),
        osga_config,
        monitor=log_progress,
        group_id=group,
    )

    engines = islands + [osga]
    results = await asyncio.gather(*(engine.run() for engine in engines))

    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)
    for engine, (candidate, fitness) in zip(engines, results):
        print(f"{engine.id:>6}: best fitness {fitness:.6f} after {len(engine.history)} generations")
    best_engine, (best_candidate, best_fitness) = min(zip(engines, results), key=lambda pair: pair[1].fitness)
    print(f"\nBest solution candidate found by {best_engine.id}: {best_fitness:.6f}")
    print(np.array2string(np.asarray(best_candidate), precision=4))


if __name__ == "__main__":
    asyncio.run(main())
