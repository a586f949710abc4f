"""
Unit tests for progress monitoring.
"""

import threading
import time

import pytest

from evoopt.optimization.config import GeneticAlgorithmConfig
from evoopt.optimization.genetic import GenerationalEngine
from evoopt.utils.monitoring import ProgressPublisher, ProgressRecord


def make_record(value=1.0, label="ga: fit"):
    return ProgressRecord(algorithm_name="ga", group_id="group", rank=1, label=label, value=value)


class TestProgressRecord:
    """Test suite for ProgressRecord."""

    def test_to_dict(self):
        record = make_record(2.5)
        data = record.to_dict()

        assert data["algorithm_name"] == "ga"
        assert data["group_id"] == "group"
        assert data["rank"] == 1
        assert data["label"] == "ga: fit"
        assert data["value"] == 2.5
        assert "timestamp" in data

    def test_frozen(self):
        record = make_record()
        with pytest.raises(AttributeError):
            record.value = 3.0


class TestProgressPublisher:
    """Test suite for the non-blocking publisher."""

    def test_delivers_in_order(self):
        received = []
        publisher = ProgressPublisher(received.append)

        for value in range(3):
            publisher.publish(make_record(float(value)))
        publisher.close()

        assert publisher.join()
        assert [record.value for record in received] == [0.0, 1.0, 2.0]
        assert publisher.delivered == 3
        assert publisher.dropped == 0

    def test_failing_sink_is_isolated(self, caplog):
        def sink(record):
            raise RuntimeError("sink down")

        publisher = ProgressPublisher(sink)
        publisher.publish(make_record())
        publisher.close()
        publisher.join()

        assert publisher.delivered == 0
        assert "Monitoring sink failed" in caplog.text

    def test_slow_sink_drops_instead_of_blocking(self):
        release = threading.Event()
        received = []

        def sink(record):
            release.wait(5.0)
            received.append(record)

        publisher = ProgressPublisher(sink, max_pending=1)
        for value in range(5):
            publisher.publish(make_record(float(value)))

        assert publisher.dropped >= 3
        release.set()
        publisher.close()
        assert publisher.join()
        assert len(received) + publisher.dropped == 5


class TestEngineMonitoring:
    """Test suite for records emitted by engine runs."""

    def test_one_record_per_generation(self, rastrigin_problem):
        records = []
        config = GeneticAlgorithmConfig(population_size=10, generations=4, seed=0, log_generation_stats=False)
        engine = GenerationalEngine("ga", rastrigin_problem(), config, monitor=records.append, group_id="exp-1")

        engine.optimize()
        assert engine.publisher.join()

        assert [record.label for record in records] == ["ga: fit"] * 4
        assert all(record.algorithm_name == "ga" for record in records)
        assert [record.value for record in records] == [entry.best_fitness for entry in engine.history]
        assert all(record.rank == 1 and record.group_id == "exp-1" for record in records)

    def test_failing_monitor_leaves_outcome_unchanged(self, rastrigin_problem):
        def broken(record):
            raise RuntimeError("sink down")

        config = GeneticAlgorithmConfig(population_size=10, generations=4, seed=0, log_generation_stats=False)
        monitored = GenerationalEngine("ga", rastrigin_problem(seed=1), config, monitor=broken)
        unmonitored = GenerationalEngine("ga", rastrigin_problem(seed=1), config)

        first = monitored.optimize()
        second = unmonitored.optimize()

        assert first.fitness == second.fitness
        assert [e.best_fitness for e in monitored.history] == [e.best_fitness for e in unmonitored.history]

    def test_slow_sink_does_not_delay_result(self, rastrigin_problem):
        """The run returns while the sink is still working through its records."""
        release = threading.Event()
        received = []

        def sink(record):
            release.wait(5.0)
            received.append(record)

        config = GeneticAlgorithmConfig(population_size=10, generations=4, seed=0, log_generation_stats=False)
        engine = GenerationalEngine("ga", rastrigin_problem(), config, monitor=sink)

        started = time.monotonic()
        engine.optimize()
        elapsed = time.monotonic() - started

        assert elapsed < 2.0
        assert received == []

        release.set()
        assert engine.publisher.join()
        assert len(received) == 4
