"""
Run lifecycle for the optimization engines.

Every engine run is driven by a LifecycleController: ``run`` starts the
computation in a worker thread and hands back an ``asyncio.Task``; ``pause``,
``stop`` and ``cancel`` request cooperative cancellation through a
CancellationToken that the engine polls between candidates; ``resume``
continues a paused run from the checkpoint the engine left behind.
"""

import asyncio
import concurrent.futures
import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

# Schedules a coroutine to run concurrently and returns its future.
Spawner = Callable[[Awaitable[Any]], concurrent.futures.Future]


class RunState(str, Enum):
    """Lifecycle state of a single engine."""

    CREATED = "created"
    RUNNING = "running"
    CANCELLING = "cancelling"
    TERMINATED = "terminated"


class CancellationToken:
    """
    Thread-safe cooperative cancellation flag.

    The engine loop polls ``cancellation_requested`` from its worker thread;
    background coroutines can ``await wait_async()``.
    """

    def __init__(self):
        self._event = threading.Event()

    @property
    def cancellation_requested(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or the timeout elapses."""
        return self._event.wait(timeout)

    async def wait_async(self, poll_interval: float = 0.05) -> None:
        """Wait for cancellation without blocking the event loop."""
        while not self._event.is_set():
            await asyncio.sleep(poll_interval)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancellation_requested})"


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def spawn_detached(awaitable: Awaitable[Any]) -> concurrent.futures.Future:
    """
    Run an awaitable on a private event loop in a daemon thread.

    Used when an engine is driven synchronously, outside any event loop.
    """
    future: concurrent.futures.Future = concurrent.futures.Future()

    def runner() -> None:
        try:
            future.set_result(asyncio.run(_await(awaitable)))
        except BaseException as e:
            future.set_exception(e)

    threading.Thread(target=runner, name="evoopt-background", daemon=True).start()
    return future


def loop_spawner(loop: asyncio.AbstractEventLoop) -> Spawner:
    """Spawner that schedules awaitables on a running event loop from any thread."""

    def spawn(awaitable: Awaitable[Any]) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(_await(awaitable), loop)

    return spawn


class LifecycleController:
    """
    Start/pause/resume/stop/cancel state machine shared by all engines.

    The controlled algorithm must provide:
        id: Run identifier
        checkpoint: State left behind by an interrupted run (None otherwise)
        optimize(token, checkpoint, spawn): Synchronous run returning the result

    Example usage:
        ```python
        handle = engine.run()
        engine.pause()
        paused_result = await handle
        resumed_result = await engine.resume()
        ```
    """

    def __init__(self, algorithm: Any):
        """
        Initialize the controller.

        Args:
            algorithm: The engine whose runs this controller drives
        """
        self.algorithm = algorithm
        # Background futures not yet known to be done
        self.background: List[concurrent.futures.Future] = []

        self._token = CancellationToken()
        self._handle: Optional[asyncio.Task] = None
        self._resumable = False

    @property
    def token(self) -> CancellationToken:
        """Token of the current run."""
        return self._token

    @property
    def handle(self) -> Optional[asyncio.Task]:
        """Result handle of the current run, None before the first run."""
        return self._handle

    @property
    def state(self) -> RunState:
        """Current lifecycle state."""
        if self._handle is None:
            return RunState.CREATED
        if self._handle.done():
            return RunState.TERMINATED
        if self._token.cancellation_requested:
            return RunState.CANCELLING
        return RunState.RUNNING

    def run(self) -> asyncio.Task:
        """
        Start a run unless one exists.

        Idempotent: a run in flight or already finished is returned as is.
        Must be called from a running event loop.

        Returns:
            Task resolving to the run's (candidate, fitness) result
        """
        if self._handle is None:
            self._handle = self._launch(previous=None)
        return self._handle

    def pause(self) -> Optional[asyncio.Task]:
        """Request cancellation, keeping the run resumable."""
        self._resumable = True
        self._token.cancel()
        return self._handle

    def stop(self) -> Optional[asyncio.Task]:
        """Request cancellation; the run cannot be resumed afterwards."""
        self._resumable = False
        self._token.cancel()
        return self._handle

    def cancel(self) -> None:
        """Unconditional cancellation request."""
        self._resumable = False
        self._token.cancel()

    def resume(self) -> asyncio.Task:
        """
        Continue a paused run from its checkpoint.

        A fresh token is issued in every case. After ``pause`` this returns a
        new handle that waits for the paused run to exit and then continues
        from where it stopped. Otherwise it behaves like ``run``.
        """
        self._token = CancellationToken()

        if self._resumable and self._handle is not None:
            self._resumable = False
            self._handle = self._launch(previous=self._handle)
            return self._handle

        return self.run()

    def _launch(self, previous: Optional[asyncio.Task]) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        logger.info(f"Starting run {self.algorithm.id}" + (" (resumed)" if previous else ""))
        return loop.create_task(
            self._execute(self._token, previous),
            name=f"evoopt-{self.algorithm.id}",
        )

    async def _execute(self, token: CancellationToken, previous: Optional[asyncio.Task]) -> Any:
        checkpoint = None
        if previous is not None:
            await asyncio.wait({previous})
            checkpoint = self.algorithm.checkpoint
            if checkpoint is None:
                # The paused run finished before it saw the request.
                return previous.result()

        spawn = self._tracking_spawner(loop_spawner(asyncio.get_running_loop()))
        try:
            return await asyncio.to_thread(self.algorithm.optimize, token, checkpoint, spawn)
        finally:
            # Ends background work such as the migration push task.
            token.cancel()
            logger.info(f"Run {self.algorithm.id} finished")

    def _tracking_spawner(self, spawn: Spawner) -> Spawner:
        def tracked(awaitable: Awaitable[Any]) -> concurrent.futures.Future:
            future = spawn(awaitable)
            # Only work still in flight is kept
            self.background = [f for f in self.background if not f.done()]
            self.background.append(future)
            return future

        return tracked
