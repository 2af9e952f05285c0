"""
Abstract source provider: resolve a source into key/value pairs and report changes.

- resolve() returns ordered (key, value) string pairs for one descriptor.
- subscribe() arranges for a callback whenever the source content changes, using
  a dedicated WatcherPool when one is given, otherwise ambient shared resources.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Callable

import structlog

from dynconfig.config.schemas import SourceDescriptor

if TYPE_CHECKING:
    from dynconfig.engine.scheduler import WatcherPool

logger = structlog.get_logger(__name__)

ChangeCallback = Callable[[SourceDescriptor], None]


class Subscription:
    """Handle for one source subscription; cancel() stops delivering notifications."""

    def __init__(self, descriptor: SourceDescriptor, cancel: Callable[[], None] | None = None):
        self.descriptor = descriptor
        self._cancel = cancel
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._cancel is not None:
            try:
                self._cancel()
            except Exception as e:
                logger.warning("subscription_cancel_failed", source=str(self.descriptor.path), error=str(e))


class SourceProvider(ABC):
    """Reads configuration sources and detects their changes."""

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """True if path refers to an existing file or directory."""
        ...

    def is_directory(self, path: Path) -> bool:
        return path.is_dir()

    @abstractmethod
    def resolve(self, descriptor: SourceDescriptor) -> list[tuple[str, str]]:
        """
        Read one source.

        Returns:
            Ordered (key, value) pairs; keys are unique within one source.

        Raises:
            SourceNotFoundError: If the source disappeared.
            SourceParseError: If the content is malformed.
        """
        ...

    @abstractmethod
    def subscribe(
        self,
        descriptor: SourceDescriptor,
        callback: ChangeCallback,
        pool: "WatcherPool | None" = None,
    ) -> Subscription:
        """
        Call callback(descriptor) whenever the source changes, per descriptor.strategy.

        With a pool, work runs on threads the pool owns and stops with it; without one,
        the provider uses its own ambient resources.
        """
        ...
