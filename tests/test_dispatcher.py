"""Tests for change handler dispatch: fresh instances, failure isolation."""

from dynconfig.engine.dispatcher import ChangeDispatcher, ChangeHandler


class RecordingHandler(ChangeHandler):
    created = 0
    seen: list = []

    def __init__(self):
        RecordingHandler.created += 1
        self.calls = 0

    def execute(self, config_map):
        self.calls += 1
        RecordingHandler.seen.append((id(self), self.calls, dict(config_map)))


class FailingHandler(ChangeHandler):
    def execute(self, config_map):
        raise RuntimeError("handler failed")


def _failing_factory():
    raise RuntimeError("cannot construct")


def setup_function():
    RecordingHandler.created = 0
    RecordingHandler.seen = []


def test_dispatch_builds_fresh_handler_each_time():
    """Handlers carry no state across calls: every dispatch constructs a new instance."""
    dispatcher = ChangeDispatcher([RecordingHandler])
    dispatcher.dispatch({"a": "1"})
    dispatcher.dispatch({"a": "2"})
    assert RecordingHandler.created == 2
    assert [calls for _, calls, _ in RecordingHandler.seen] == [1, 1]
    assert [m for _, _, m in RecordingHandler.seen] == [{"a": "1"}, {"a": "2"}]


def test_dispatch_isolates_failures():
    dispatcher = ChangeDispatcher([_failing_factory, FailingHandler, RecordingHandler])
    completed = dispatcher.dispatch({"k": "v"})
    assert completed == 1
    assert RecordingHandler.seen[0][2] == {"k": "v"}


def test_dispatch_accepts_closure_factories():
    received = []

    class Collect(ChangeHandler):
        def execute(self, config_map):
            received.append(config_map["k"])

    dispatcher = ChangeDispatcher([lambda: Collect()])
    assert dispatcher.dispatch({"k": "v"}) == 1
    assert received == ["v"]


def test_dispatch_without_handlers():
    assert ChangeDispatcher().dispatch({"k": "v"}) == 0
