"""Initialization parameters and settings file loading."""

from dynconfig.config.loader import load_init_params
from dynconfig.config.schemas import (
    BuildStatus,
    InitParams,
    LifecycleState,
    PollFrequency,
    SourceDescriptor,
    Strategy,
)

__all__ = [
    "BuildStatus",
    "InitParams",
    "LifecycleState",
    "PollFrequency",
    "SourceDescriptor",
    "Strategy",
    "load_init_params",
]
