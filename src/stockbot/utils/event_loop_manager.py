"""
Background event loop for deferred interaction work.

Flask answers each interaction synchronously, but command handlers are
coroutines that outlive the HTTP request (the "defer, then deliver" flow).
:class:`EventLoopManager` owns one asyncio loop running in a daemon thread.
Request threads hand coroutines over with :meth:`submit` and return at once;
the manager keeps count of what is still running so ``/health`` can report it.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Coroutine, Optional, Set, TypeVar

_logger = logging.getLogger(__name__)
T = TypeVar("T")

START_TIMEOUT_S = 5.0


class EventLoopManager:
    """A single asyncio loop in a background thread, shared by all requests."""

    def __init__(self, name: str = "stockbot-loop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._in_flight: Set[concurrent.futures.Future] = set()

    @property
    def in_flight(self) -> int:
        """Number of submitted coroutines that have not finished yet."""
        with self._lock:
            return len(self._in_flight)

    def _serve(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        loop.call_soon(self._ready.set)
        _logger.info("background_loop_started name=%s", self.name)
        try:
            loop.run_forever()
        finally:
            # Deferred commands still running at shutdown are abandoned.
            leftover = asyncio.all_tasks(loop)
            for task in leftover:
                task.cancel()
            loop.run_until_complete(asyncio.gather(*leftover, return_exceptions=True))
            loop.close()
            _logger.info(
                "background_loop_stopped name=%s cancelled=%d", self.name, len(leftover)
            )

    def start(self) -> bool:
        """Start the loop thread. Returns False if it was already running."""
        with self._lock:
            started = self._thread is None or not self._thread.is_alive()
            if started:
                self._ready.clear()
                self._thread = threading.Thread(
                    target=self._serve, name=self.name, daemon=True
                )
                self._thread.start()

        if not self._ready.wait(timeout=START_TIMEOUT_S):
            _logger.error("background_loop_start_timeout name=%s", self.name)
            return False
        return started

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and wait up to ``timeout`` seconds for the thread."""
        thread, loop = self._thread, self._loop
        if thread is None:
            return
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=timeout)
        if thread.is_alive():
            _logger.warning("background_loop_stop_timeout name=%s", self.name)

        with self._lock:
            self._thread = None
            self._loop = None
            self._in_flight.clear()

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        """Schedule ``coro`` on the loop without waiting for it.

        The loop is started on first use.
        """
        if self._loop is None:
            self.start()
        assert self._loop is not None

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._finished)
        return future

    def _finished(self, future: "concurrent.futures.Future") -> None:
        with self._lock:
            self._in_flight.discard(future)
        if not future.cancelled() and future.exception() is not None:
            _logger.error("background_task_failed err=%r", future.exception())

    def is_running(self) -> bool:
        loop = self._loop
        return loop is not None and loop.is_running()
