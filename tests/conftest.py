"""Pytest fixtures: in-memory source provider, property file writer, wait helper, env isolation."""

import time
from pathlib import Path
from typing import Callable, Mapping

import pytest
import structlog

from dynconfig.config.loader import ENV_OVERRIDES
from dynconfig.engine import shared
from dynconfig.errors import SourceNotFoundError, SourceParseError
from dynconfig.sources.base import SourceProvider, Subscription


class FakeProvider(SourceProvider):
    """
    Sources held in memory, keyed by path string.

    change(path, data) replaces a source and fires its subscribers on the calling thread,
    which stands in for a watcher or poller thread.
    """

    def __init__(self, sources: Mapping[str, Mapping[str, str]] | None = None):
        self.sources: dict[str, dict[str, str]] = {k: dict(v) for k, v in (sources or {}).items()}
        self.directories: set[str] = set()
        self.broken: set[str] = set()
        self.subscribers: dict[str, list] = {}
        self.pools: list = []
        self.resolve_calls = 0

    def exists(self, path: Path) -> bool:
        return str(path) in self.sources

    def is_directory(self, path: Path) -> bool:
        return str(path) in self.directories

    def resolve(self, descriptor):
        self.resolve_calls += 1
        key = str(descriptor.path)
        if key in self.broken:
            raise SourceParseError(f"{key}: malformed")
        if key not in self.sources:
            raise SourceNotFoundError(key)
        return list(self.sources[key].items())

    def subscribe(self, descriptor, callback, pool=None):
        entry = (descriptor, callback)
        subs = self.subscribers.setdefault(str(descriptor.path), [])
        subs.append(entry)
        self.pools.append(pool)
        return Subscription(descriptor, lambda: subs.remove(entry))

    def change(self, path: str, data: Mapping[str, str] | None = None) -> None:
        if data is not None:
            self.sources[path] = dict(data)
        for descriptor, callback in list(self.subscribers.get(path, [])):
            callback(descriptor)

    def subscriber_count(self) -> int:
        return sum(len(v) for v in self.subscribers.values())


@pytest.fixture
def provider():
    """In-memory provider with sources a={x:1, y:2} and b={x:9, z:3}."""
    return FakeProvider({
        "a.properties": {"x": "1", "y": "2"},
        "b.properties": {"x": "9", "z": "3"},
    })


@pytest.fixture
def write_props() -> Callable[[Path, Mapping[str, str]], Path]:
    """Write a .properties file (key=value lines) and return its path."""

    def _write(path: Path, data: Mapping[str, str]) -> Path:
        lines = ["#Dynamic config test config properties"]
        lines += [f"{k}={v}" for k, v in data.items()]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.05) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_until():
    """Poll predicate until true or timeout; returns the final result."""
    return _wait_until


@pytest.fixture(autouse=True)
def isolated_settings_env(monkeypatch):
    """Keep DYNCONFIG_* variables of the developer shell out of the tests."""
    for name in (*ENV_OVERRIDES, "DYNCONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def isolated_structlog_config():
    """Undo structlog.configure() calls (e.g. by cli.main) that bind the per-test capture stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def shared_instance():
    """Fresh process-wide instance, reset after the test."""
    shared.reset_instance()
    yield shared.get_instance()
    shared.reset_instance()
