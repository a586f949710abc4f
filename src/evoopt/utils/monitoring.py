"""
Progress monitoring for evoopt runs.

Engines emit one ProgressRecord per generation (two for offspring selection:
best fitness and selection pressure). Records go through a ProgressPublisher,
which hands them to the user's sink on a separate thread so that a slow or
failing sink never holds up or alters the optimization.
"""

import logging
import queue
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class ProgressRecord:
    """A single monitoring data point."""

    algorithm_name: str
    group_id: str
    rank: int
    label: str
    value: float
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


class ProgressPublisher:
    """
    Non-blocking bridge between an engine loop and a monitoring sink.

    ``publish`` never waits: when the sink falls behind by more than
    ``max_pending`` records, new records are dropped and counted.
    """

    def __init__(self, sink: Callable[[ProgressRecord], None], max_pending: int = 1024):
        """
        Initialize the publisher and start its delivery thread.

        Args:
            sink: Callable receiving each record
            max_pending: Records buffered before dropping
        """
        self.sink = sink
        self.dropped = 0
        self.delivered = 0

        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=max_pending)
        self._closing = threading.Event()
        self._thread = threading.Thread(target=self._deliver, name="evoopt-monitor", daemon=True)
        self._thread.start()

    def publish(self, record: ProgressRecord) -> None:
        """Queue a record for delivery."""
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1
            logger.debug(f"Monitoring sink is behind, dropped record {record.label}")

    def close(self) -> None:
        """
        Stop accepting work without waiting for the sink.

        The delivery thread finishes the queued records on its own and exits.
        """
        self._closing.set()

    def join(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Wait for the delivery thread to finish after ``close``.

        Returns:
            True if every queued record was handed to the sink in time
        """
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _deliver(self) -> None:
        while True:
            try:
                record = self._queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._closing.is_set():
                    return
                continue
            try:
                self.sink(record)
                self.delivered += 1
            except Exception as e:
                logger.warning(f"Monitoring sink failed for {record.label}: {e}")
