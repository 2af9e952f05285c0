"""
Filesystem source provider: config files and mounted config directories.

- WATCH: watchdog observer events on the source (parent directory for a file source).
- POLL: content fingerprint compared every frequency interval.
- Without a dedicated pool, a process-wide daemon observer and daemon polling threads
  are used; they are shared and never stopped.
"""

import itertools
import os
import threading
from pathlib import Path

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from dynconfig.config.schemas import SourceDescriptor, Strategy
from dynconfig.errors import SourceNotFoundError, SourceParseError
from dynconfig.sources.base import ChangeCallback, SourceProvider, Subscription
from dynconfig.sources.parsers import fingerprint, read_directory, read_file

logger = structlog.get_logger(__name__)

# inotify reports reads too; they never change content.
_IGNORED_EVENT_TYPES = frozenset({"opened", "closed_no_write"})

_ambient_lock = threading.Lock()
_ambient_observer: BaseObserver | None = None
_ambient_counter = itertools.count(1)


def ambient_observer() -> BaseObserver:
    """Process-wide daemon observer shared by every subscription without a dedicated pool."""
    global _ambient_observer
    with _ambient_lock:
        if _ambient_observer is None or not _ambient_observer.is_alive():
            observer = Observer()
            observer.name = "dynconfig-ambient-watch"
            observer.daemon = True
            observer.start()
            _ambient_observer = observer
        return _ambient_observer


class SourceEventHandler(FileSystemEventHandler):
    """Forwards filesystem events that concern one source to the change callback."""

    def __init__(self, descriptor: SourceDescriptor, callback: ChangeCallback):
        super().__init__()
        self.descriptor = descriptor
        self.callback = callback
        self._target = os.path.abspath(descriptor.path)

    def concerns(self, event: FileSystemEvent) -> bool:
        if event.event_type in _IGNORED_EVENT_TYPES:
            return False
        if self.descriptor.is_directory:
            return True
        for raw in (event.src_path, getattr(event, "dest_path", "")):
            if not raw:
                continue
            p = os.path.abspath(os.fsdecode(raw))
            # Mounted volumes swap content through a ..data symlink next to the file.
            if p == self._target or os.path.basename(p).startswith(".."):
                return True
        return False

    def on_any_event(self, event: FileSystemEvent) -> None:
        if not self.concerns(event):
            return
        logger.debug("source_event", source=str(self.descriptor.path), event_type=event.event_type)
        try:
            self.callback(self.descriptor)
        except Exception:
            logger.exception("source_change_callback_failed", source=str(self.descriptor.path))


class FileSourceProvider(SourceProvider):
    """Reads properties/YAML/JSON files and config directories from the local filesystem."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def exists(self, path: Path) -> bool:
        return path.exists()

    def resolve(self, descriptor: SourceDescriptor) -> list[tuple[str, str]]:
        path = descriptor.path
        try:
            if descriptor.is_directory:
                pairs = read_directory(path, self.encoding)
            else:
                pairs = read_file(path, self.encoding)
        except FileNotFoundError as e:
            raise SourceNotFoundError(str(path)) from e
        except UnicodeDecodeError as e:
            raise SourceParseError(f"{path}: not valid {self.encoding}: {e}") from e
        except OSError as e:
            raise SourceNotFoundError(str(path), f"Config source cannot be read: {path} ({e})") from e
        logger.debug("source_resolved", source=str(path), keys=len(pairs))
        return list(pairs.items())

    def subscribe(self, descriptor, callback, pool=None) -> Subscription:
        if descriptor.strategy is Strategy.POLL:
            return self._subscribe_poll(descriptor, callback, pool)
        return self._subscribe_watch(descriptor, callback, pool)

    def _subscribe_watch(self, descriptor, callback, pool) -> Subscription:
        observer = pool.observer() if pool is not None else ambient_observer()
        path = Path(os.path.abspath(descriptor.path))
        watch_dir = path if descriptor.is_directory else path.parent
        handler = SourceEventHandler(descriptor, callback)
        watch = observer.schedule(
            handler,
            str(watch_dir),
            recursive=descriptor.is_directory,
        )
        logger.debug("source_watch_scheduled", source=str(descriptor.path), directory=str(watch_dir))
        # The watch may be shared with other sources in the same directory.
        return Subscription(descriptor, lambda: observer.remove_handler_for_watch(handler, watch))

    def _subscribe_poll(self, descriptor, callback, pool) -> Subscription:
        interval = descriptor.frequency.seconds
        cancelled = threading.Event()
        initial = fingerprint(descriptor.path)

        def poll(stop: threading.Event) -> None:
            last = initial
            while not (stop.wait(interval) or cancelled.is_set()):
                current = fingerprint(descriptor.path)
                if current == last:
                    continue
                last = current
                logger.debug("source_poll_changed", source=str(descriptor.path))
                try:
                    callback(descriptor)
                except Exception:
                    logger.exception("source_change_callback_failed", source=str(descriptor.path))

        if pool is not None:
            pool.submit(poll)
        else:
            thread = threading.Thread(
                target=poll,
                args=(cancelled,),
                name=f"dynconfig-ambient-poll-{next(_ambient_counter)}",
                daemon=True,
            )
            thread.start()
        logger.debug("source_poll_scheduled", source=str(descriptor.path), interval_seconds=interval)
        return Subscription(descriptor, cancelled.set)
