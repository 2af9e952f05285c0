"""Tests for the watcher pool and change scheduler: ownership, bounded shutdown, exit hook."""

import threading
import time

import pytest

from dynconfig.config.schemas import SourceDescriptor
from dynconfig.engine import scheduler as scheduler_module
from dynconfig.engine.scheduler import ChangeScheduler, WatcherPool


def test_pool_runs_workers_until_stopped():
    pool = WatcherPool(2, daemon=True)
    started = threading.Event()

    def work(stop):
        started.set()
        stop.wait()

    thread = pool.submit(work)
    assert started.wait(2)
    assert thread.name.startswith("DynamicConfigFileWatcher-")
    assert thread.daemon is True
    assert pool.shutdown(1.0) is True
    assert not thread.is_alive()
    assert pool.is_shutdown


def test_pool_threads_not_daemon_by_default():
    pool = WatcherPool(1)
    thread = pool.submit(lambda stop: stop.wait())
    assert thread.daemon is False
    assert pool.shutdown() is True


def test_pool_forced_shutdown_after_timeout():
    """A worker that ignores the stop request is abandoned after the bounded wait."""
    pool = WatcherPool(1, daemon=True)
    release = threading.Event()
    pool.submit(lambda stop: release.wait(5))
    start = time.monotonic()
    assert pool.shutdown(0.1) is False
    assert time.monotonic() - start < 2
    release.set()


def test_pool_rejects_more_workers_than_size():
    pool = WatcherPool(1, daemon=True)
    pool.submit(lambda stop: stop.wait())
    with pytest.raises(RuntimeError):
        pool.submit(lambda stop: stop.wait())
    pool.shutdown()


def test_pool_rejects_work_after_shutdown():
    pool = WatcherPool(1, daemon=True)
    pool.shutdown()
    with pytest.raises(RuntimeError):
        pool.submit(lambda stop: None)
    with pytest.raises(RuntimeError):
        pool.observer()
    assert pool.shutdown() is True


def test_pool_observer_is_shared_and_stopped():
    pool = WatcherPool(0, daemon=True)
    observer = pool.observer()
    assert pool.observer() is observer
    assert observer.is_alive()
    assert pool.shutdown(2.0) is True
    assert not observer.is_alive()


def test_scheduler_forwards_until_shutdown(provider):
    descriptor = SourceDescriptor(path="a.properties")
    seen = []
    scheduler = ChangeScheduler(provider, dedicated=True, size=1)
    scheduler.start([descriptor], seen.append)
    assert scheduler.owned
    provider.change("a.properties")
    assert seen == [descriptor]
    _, forward = provider.subscribers["a.properties"][0]
    assert scheduler.shutdown() is True
    assert scheduler.closed
    forward(descriptor)
    assert seen == [descriptor]
    assert provider.subscriber_count() == 0


def test_ambient_scheduler_is_not_owned(provider):
    scheduler = ChangeScheduler(provider)
    assert scheduler.pool is None
    assert not scheduler.owned
    scheduler.start([SourceDescriptor(path="a.properties")], lambda d: None)
    assert scheduler.shutdown() is True
    assert provider.subscriber_count() == 0


def test_daemon_scheduler_registers_exit_hook(provider, monkeypatch):
    registered, unregistered = [], []
    monkeypatch.setattr(scheduler_module.atexit, "register", registered.append)
    monkeypatch.setattr(scheduler_module.atexit, "unregister", unregistered.append)
    scheduler = ChangeScheduler(provider, dedicated=True, daemon=True, size=1)
    assert registered == [scheduler._shutdown_at_exit]
    scheduler.shutdown()
    assert unregistered == [scheduler._shutdown_at_exit]


def test_exit_hook_runs_same_shutdown(provider, monkeypatch):
    monkeypatch.setattr(scheduler_module.atexit, "register", lambda fn: None)
    monkeypatch.setattr(scheduler_module.atexit, "unregister", lambda fn: None)
    scheduler = ChangeScheduler(provider, dedicated=True, daemon=True, size=1)
    scheduler.start([SourceDescriptor(path="a.properties")], lambda d: None)
    scheduler._shutdown_at_exit()
    assert scheduler.closed
    assert scheduler.pool.is_shutdown


def test_non_daemon_or_ambient_scheduler_has_no_exit_hook(provider, monkeypatch):
    registered = []
    monkeypatch.setattr(scheduler_module.atexit, "register", registered.append)
    ChangeScheduler(provider, dedicated=True, daemon=False, size=1).shutdown()
    ChangeScheduler(provider, dedicated=False, daemon=True).shutdown()
    assert registered == []
