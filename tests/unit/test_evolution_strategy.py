"""
Unit tests for the self-adaptive (1+1) evolution strategy.
"""

import logging

import numpy as np
import pytest

from evoopt.core.lifecycle import CancellationToken
from evoopt.core.problem import FunctionProblem
from evoopt.exceptions import ConfigurationError
from evoopt.optimization.config import EvolutionStrategyConfig, MutationStrategy
from evoopt.optimization.evolution_strategy import (
    GROWTH_FACTOR,
    INITIAL_MUTATION_RATE,
    SHRINK_FACTOR,
    SelfAdaptiveES,
)


def es_config(strategy, **overrides):
    values = dict(strategy=strategy, generations=1, seed=0, log_generation_stats=False)
    values.update(overrides)
    return EvolutionStrategyConfig(**values)


class TestSelfAdaptiveESInit:
    """Test suite for construction."""

    def test_constants(self):
        assert GROWTH_FACTOR == 1.5
        assert SHRINK_FACTOR == pytest.approx(1.5 ** -0.25)
        assert INITIAL_MUTATION_RATE == 0.1

    def test_only_needs_creator_evaluator_terminator(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem())
        assert es.config.strategy is MutationStrategy.INCREMENTAL
        assert es.mutation_rates is None

    def test_function_problem(self):
        problem = FunctionProblem(creator=lambda: [1.0], evaluator=lambda c: float(abs(c[0])))
        SelfAdaptiveES("es", problem, es_config("probe"))

    def test_missing_evaluator(self):
        with pytest.raises(ConfigurationError, match="evaluator"):
            SelfAdaptiveES("es", FunctionProblem(creator=lambda: [1.0], evaluator=None))


class TestProbeStrategy:
    """Test suite for the per-dimension probe strategy."""

    def test_successful_probes_grow_rates(self, sphere_problem):
        """Both dimensions improve alone and together: rates grow to 0.15."""
        es = SelfAdaptiveES("es", sphere_problem((2.0, 3.0)), es_config("probe"))

        candidate, fitness = es.optimize()

        np.testing.assert_allclose(candidate, [0.2, 0.3])
        assert fitness == pytest.approx(0.13)
        np.testing.assert_allclose(es.mutation_rates, [0.15, 0.15])
        # Initial, one probe per dimension, one combined evaluation
        assert es.evaluations == 4

    def test_failed_probe_shrinks_rate(self, sphere_problem):
        """A zero gene cannot improve by scaling: its rate shrinks."""
        es = SelfAdaptiveES("es", sphere_problem((0.0, 5.0)), es_config("probe"))

        candidate, fitness = es.optimize()

        np.testing.assert_allclose(candidate, [0.0, 0.5])
        assert fitness == pytest.approx(0.25)
        np.testing.assert_allclose(es.mutation_rates, [0.1 * SHRINK_FACTOR, 0.15])

    def test_probes_compare_against_unperturbed_candidate(self):
        """
        Each dimension is probed on its own; a combination that is worse
        than the current candidate is not accepted.
        """
        # Improves when either gene shrinks alone, but not when both do
        def evaluator(c):
            if c[0] < 1.0 and c[1] < 1.0:
                return 10.0
            return float(c[0] + c[1])

        problem = FunctionProblem(creator=lambda: [2.0, 2.0], evaluator=evaluator)
        es = SelfAdaptiveES("es", problem, es_config("probe"))

        start = evaluator([2.0, 2.0])
        candidate, fitness = es.optimize()

        assert evaluator([0.2, 2.0]) < start
        assert evaluator([0.2, 0.2]) > start
        np.testing.assert_allclose(candidate, [2.0, 2.0])
        assert fitness == start
        np.testing.assert_allclose(es.mutation_rates, [0.15, 0.15])

    def test_zero_fitness_stops_immediately(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem((0.0, 0.0)), es_config("probe", generations=10))

        result = es.optimize()

        assert result.fitness == 0.0
        assert es.history == []
        assert es.evaluations == 1

    def test_history_per_generation(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem(), es_config("probe", generations=5))

        es.optimize()

        assert [entry.generation for entry in es.history] == [0, 1, 2, 3, 4]
        best = [entry.best_fitness for entry in es.history]
        assert all(later <= earlier for earlier, later in zip(best, best[1:]))


class TestIncrementalStrategy:
    """Test suite for the incremental greedy strategy."""

    def test_same_seed_same_sequence(self, sphere_problem):
        """Equal seeds evaluate identical candidate sequences."""
        first_problem = sphere_problem((1.0, -2.0, 3.0, 0.5))
        second_problem = sphere_problem((1.0, -2.0, 3.0, 0.5))

        first = SelfAdaptiveES("a", first_problem, es_config("incremental", generations=10, seed=5))
        second = SelfAdaptiveES("b", second_problem, es_config("incremental", generations=10, seed=5))

        first_result = first.optimize()
        second_result = second.optimize()

        assert len(first_problem.evaluated) == len(second_problem.evaluated)
        for a, b in zip(first_problem.evaluated, second_problem.evaluated):
            np.testing.assert_array_equal(a, b)
        np.testing.assert_array_equal(first_result.candidate, second_result.candidate)
        assert first_result.fitness == second_result.fitness

    def test_greedy_acceptance(self, sphere_problem):
        """Each improving dimension is kept at once, whatever the order."""
        es = SelfAdaptiveES("es", sphere_problem((2.0, 3.0)), es_config("incremental"))

        candidate, fitness = es.optimize()

        np.testing.assert_allclose(candidate, [0.2, 0.3])
        assert fitness == pytest.approx(0.13)
        np.testing.assert_allclose(es.mutation_rates, [0.15, 0.15])
        # Initial, one per dimension, final re-evaluation
        assert es.evaluations == 4

    def test_zero_fitness_stops(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem((0.0,)), es_config("incremental", generations=10))

        es.optimize()

        assert es.history == []

    def test_nondeterministic_evaluator_is_reported(self, caplog):
        calls = iter(range(100, 0, -1))
        problem = FunctionProblem(creator=lambda: [1.0], evaluator=lambda c: float(next(calls)))
        es = SelfAdaptiveES("es", problem, es_config("incremental", generations=2))

        with caplog.at_level(logging.WARNING):
            result = es.optimize()

        assert "not deterministic" in caplog.text
        # Initial 100, probes 99 and 98, re-evaluation 97
        assert result.fitness == 97.0


class TestResetStrategy:
    """Test suite for the population-free reset strategy."""

    def test_runs_on_at_zero_fitness(self, sphere_problem):
        """Only the terminator stops this strategy, not a zero fitness."""
        es = SelfAdaptiveES("es", sphere_problem((0.0, 0.0)), es_config("reset", generations=5))

        es.optimize()

        assert len(es.history) == 5
        assert es.evaluations == 6

    def test_terminator_stops(self, sphere_problem):
        problem = sphere_problem((3.0, 4.0))
        problem.terminator = lambda candidate, fitness: fitness < 100.0
        es = SelfAdaptiveES("es", problem, es_config("reset", generations=5))

        result = es.optimize()

        assert es.history == []
        assert result.fitness == 25.0

    def test_normal_rates(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem((1.0, 1.0, 1.0)), es_config("reset", generations=20))

        result = es.optimize()

        assert es.mutation_rates.shape == (3,)
        assert result.fitness <= 3.0

    def test_success_grows_all_rates(self):
        """A trial that improves multiplies every rate by the growth factor."""
        problem = FunctionProblem(creator=lambda: [1.0, 1.0], evaluator=lambda c: float(c[0] + c[1] > 10.0))
        es = SelfAdaptiveES("es", problem, es_config("reset", generations=0))
        es.optimize()
        state = es.state
        state.fitness = 1.0
        before = state.mutation_rates.copy()

        es._reset_step(state)

        np.testing.assert_allclose(state.mutation_rates, before * GROWTH_FACTOR)
        assert state.fitness == 0.0

    def test_failure_redraws_rates(self):
        problem = FunctionProblem(creator=lambda: [1.0, 1.0], evaluator=lambda c: 1.0)
        es = SelfAdaptiveES("es", problem, es_config("reset", generations=0))
        es.optimize()
        state = es.state
        before = state.mutation_rates.copy()

        es._reset_step(state)

        assert not np.array_equal(state.mutation_rates, before)
        np.testing.assert_array_equal(state.candidate, [1.0, 1.0])


class TestSearch:
    """Test suite for use as a local-search operator."""

    def test_search_improves_given_candidate(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem(), es_config("probe", generations=3))

        candidate, fitness = es.search([4.0, -4.0])

        assert fitness < 32.0
        assert np.sum(np.square(candidate)) == pytest.approx(fitness)
        assert es.history == []

    @pytest.mark.asyncio
    async def test_search_after_run_finished(self, sphere_problem):
        """A finished or stopped run leaves the operator usable."""
        es = SelfAdaptiveES("es", sphere_problem(), es_config("probe"))

        await es.run()
        es.stop()
        before = es.evaluations
        candidate, fitness = es.search([2.0, 3.0])

        np.testing.assert_allclose(candidate, [0.2, 0.3])
        assert fitness == pytest.approx(0.13)
        assert es.evaluations == before + 4

    def test_search_honours_given_token(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem(), es_config("probe", generations=3))
        token = CancellationToken()
        token.cancel()

        candidate, fitness = es.search([2.0, 3.0], token)

        np.testing.assert_array_equal(candidate, [2.0, 3.0])
        assert fitness == 13.0

    def test_explicit_start_candidate(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem((9.0, 9.0)), es_config("probe"), candidate=[1.0, 0.0])

        candidate, _ = es.optimize()

        np.testing.assert_allclose(candidate, [0.1, 0.0])


class TestLifecycle:
    """Test suite for lifecycle-driven ES runs."""

    @pytest.mark.asyncio
    async def test_pause_keeps_strategy_state(self, sphere_problem):
        es = SelfAdaptiveES("es", sphere_problem(), es_config("incremental", generations=8))

        es.pause()
        await es.run()
        checkpoint = es.checkpoint
        assert checkpoint.generation == 0
        np.testing.assert_allclose(checkpoint.mutation_rates, [INITIAL_MUTATION_RATE] * 2)

        candidate, fitness = await es.resume()

        assert len(es.history) == 8
        assert fitness < 13.0
