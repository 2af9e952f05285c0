"""
Change detection scheduling: dedicated watcher pool or ambient provider resources.

- WatcherPool: engine-owned threads (one per source at most) plus one watchdog observer,
  stopped gracefully then abandoned after a bounded wait.
- ChangeScheduler: subscribes every source and forwards notifications until shut down.
"""

import atexit
import itertools
import threading
import time
from typing import Callable, Iterable

import structlog
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from dynconfig.config.schemas import SourceDescriptor
from dynconfig.sources.base import SourceProvider, Subscription

logger = structlog.get_logger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT = 1.0
THREAD_NAME_PREFIX = "DynamicConfigFileWatcher"


class WatcherPool:
    """Threads and observer owned by one dynamic config build."""

    def __init__(self, size: int, daemon: bool = False, name_prefix: str = THREAD_NAME_PREFIX):
        self.size = size
        self.daemon = daemon
        self.name_prefix = name_prefix
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._observer: BaseObserver | None = None
        self._counter = itertools.count(1)
        self._closed = False

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def _name(self) -> str:
        return f"{self.name_prefix}-{next(self._counter)}"

    def submit(self, fn: Callable[[threading.Event], None]) -> threading.Thread:
        """Run fn(stop_event) on a new pool thread; fn must return once stop_event is set."""
        with self._lock:
            if self._closed:
                raise RuntimeError("watcher pool is shut down")
            if len(self._threads) >= self.size:
                raise RuntimeError(f"watcher pool exhausted ({self.size} workers)")
            thread = threading.Thread(target=fn, args=(self._stop,), name=self._name(), daemon=self.daemon)
            self._threads.append(thread)
        thread.start()
        return thread

    def observer(self) -> BaseObserver:
        """The pool's watchdog observer, started on first use."""
        with self._lock:
            if self._closed:
                raise RuntimeError("watcher pool is shut down")
            if self._observer is None:
                observer = Observer()
                observer.name = self._name()
                observer.daemon = self.daemon
                observer.start()
                self._observer = observer
            return self._observer

    def shutdown(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> bool:
        """
        Request stop, wait up to timeout seconds, then abandon what is still running.

        Returns:
            True if every worker stopped within the timeout.
        """
        with self._lock:
            if self._closed:
                return True
            self._closed = True
            workers: list[threading.Thread] = list(self._threads)
            if self._observer is not None:
                workers.append(self._observer)
        self._stop.set()
        if self._observer is not None:
            self._observer.stop()
        deadline = time.monotonic() + max(0.0, timeout)
        current = threading.current_thread()
        for worker in workers:
            if worker is current or not worker.is_alive():
                continue
            worker.join(max(0.0, deadline - time.monotonic()))
        alive = [w.name for w in workers if w is not current and w.is_alive()]
        if alive:
            # Threads cannot be killed; they are left to exit on their own and their
            # notifications are dropped by the closed scheduler.
            logger.warning("watcher_pool_forced_shutdown", alive=alive, timeout_seconds=timeout)
            return False
        logger.info("watcher_pool_shutdown", workers=len(workers))
        return True


class ChangeScheduler:
    """Drives change detection for a set of sources and forwards notifications."""

    def __init__(self, provider: SourceProvider, *, dedicated: bool = False, daemon: bool = False, size: int = 0):
        self._provider = provider
        self.pool = WatcherPool(size, daemon=daemon) if dedicated else None
        self._subscriptions: list[Subscription] = []
        self._closed = False
        self._exit_hook_registered = False
        if self.pool is not None and daemon:
            atexit.register(self._shutdown_at_exit)
            self._exit_hook_registered = True

    @property
    def owned(self) -> bool:
        """True when detection runs on resources this scheduler can stop."""
        return self.pool is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self, descriptors: Iterable[SourceDescriptor], on_change: Callable[[SourceDescriptor], None]) -> None:
        """Subscribe every descriptor; on_change runs on the notifying thread."""

        def forward(descriptor: SourceDescriptor) -> None:
            if self._closed:
                logger.debug("change_notification_dropped", source=str(descriptor.path))
                return
            on_change(descriptor)

        for descriptor in descriptors:
            self._subscriptions.append(self._provider.subscribe(descriptor, forward, pool=self.pool))
        logger.debug("change_scheduler_started", sources=len(self._subscriptions), owned=self.owned)

    def shutdown(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> bool:
        """Stop forwarding, cancel subscriptions, and stop the owned pool if any."""
        self._closed = True
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        if self._exit_hook_registered:
            atexit.unregister(self._shutdown_at_exit)
            self._exit_hook_registered = False
        if self.pool is None:
            return True
        return self.pool.shutdown(timeout)

    def _shutdown_at_exit(self) -> None:
        logger.info("change_scheduler_exit_hook")
        self.shutdown(DEFAULT_SHUTDOWN_TIMEOUT)
