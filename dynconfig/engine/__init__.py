"""Lifecycle, merge, change scheduling, dispatch and typed access."""

from dynconfig.engine.dispatcher import ChangeDispatcher, ChangeHandler
from dynconfig.engine.manager import Builder, DynamicConfig
from dynconfig.engine.merge import merge_sources
from dynconfig.engine.scheduler import ChangeScheduler, WatcherPool

__all__ = [
    "Builder",
    "ChangeDispatcher",
    "ChangeHandler",
    "ChangeScheduler",
    "DynamicConfig",
    "WatcherPool",
    "merge_sources",
]
