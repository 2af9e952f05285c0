"""Pydantic schemas for dynamic config initialization parameters."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, Field, field_validator

# Builds a fresh change handler (an object with execute(config_map)).
HandlerFactory = Callable[[], Any]


class Strategy(str, Enum):
    """How source changes are detected."""

    WATCH = "WATCH"
    POLL = "POLL"


class PollFrequency(str, Enum):
    """Polling interval modifiers: HIGH (2s), MEDIUM (10s), LOW (30s)."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def seconds(self) -> int:
        return _POLL_SECONDS[self]


_POLL_SECONDS = {PollFrequency.HIGH: 2, PollFrequency.MEDIUM: 10, PollFrequency.LOW: 30}


class LifecycleState(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZED = "INITIALIZED"
    TERMINATED = "TERMINATED"


class BuildStatus(str, Enum):
    """Outcome of a build call: performed, or skipped because already initialized."""

    INITIALIZED = "INITIALIZED"
    ALREADY_INITIALIZED = "ALREADY_INITIALIZED"


def _upper_enum_name(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


class SourceDescriptor(BaseModel):
    """One configuration origin (file or directory) with its detection strategy."""

    model_config = {"frozen": True}

    path: Path
    is_directory: bool = False
    strategy: Strategy = Strategy.WATCH
    frequency: PollFrequency = PollFrequency.MEDIUM


class InitParams(BaseModel):
    """Initialization parameters, frozen at build time."""

    model_config = {"frozen": True, "arbitrary_types_allowed": True, "extra": "forbid"}

    include_sys_env_props: bool = Field(False, description="Merge environment variables at lowest precedence")
    use_custom_executor: bool = Field(False, description="Own a dedicated watcher pool; required for terminate()")
    run_as_daemon: bool = Field(False, description="Dedicated pool threads are daemons with an exit hook")
    strategy: Strategy = Field(Strategy.WATCH, description="WATCH (event-driven) or POLL (fixed interval)")
    frequency: PollFrequency = Field(PollFrequency.MEDIUM, description="Poll interval; only used with POLL")
    sources: tuple[str, ...] = Field(default_factory=tuple, description="Source files/directories, highest precedence first")
    handlers: tuple[HandlerFactory, ...] = Field(default_factory=tuple, description="Change handler factories")

    @field_validator("strategy", mode="before")
    @classmethod
    def _default_strategy(cls, value: Any) -> Any:
        return Strategy.WATCH if value is None else _upper_enum_name(value)

    @field_validator("frequency", mode="before")
    @classmethod
    def _default_frequency(cls, value: Any) -> Any:
        return PollFrequency.MEDIUM if value is None else _upper_enum_name(value)

    @field_validator("sources", mode="before")
    @classmethod
    def _dedupe_sources(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, Path)):
            value = [value]
        # Order encodes precedence; keep the first occurrence of each path.
        return tuple(dict.fromkeys(str(v) for v in value))

    @field_validator("handlers", mode="before")
    @classmethod
    def _dedupe_handlers(cls, value: Any) -> Any:
        if value is None:
            return ()
        if callable(value):
            value = [value]
        seen: set[int] = set()
        out = []
        for factory in value:
            if factory is None or id(factory) in seen:
                continue
            if not callable(factory):
                raise ValueError(f"handler factory must be callable, got {factory!r}")
            seen.add(id(factory))
            out.append(factory)
        return tuple(out)

    @property
    def effective_frequency(self) -> PollFrequency | None:
        """Poll frequency in effect, or None under WATCH."""
        return self.frequency if self.strategy is Strategy.POLL else None
