"""Live configuration merged from mounted files and directories, reloaded on change."""

from dynconfig.config.schemas import BuildStatus, InitParams, LifecycleState, PollFrequency, Strategy
from dynconfig.engine.dispatcher import ChangeHandler
from dynconfig.engine.manager import Builder, DynamicConfig
from dynconfig.errors import (
    ConfigBuildError,
    DynamicConfigError,
    InvalidArgumentError,
    SourceNotFoundError,
    SourceParseError,
    TypeMismatchError,
    UninitializedError,
    UnsupportedTerminationError,
)

__version__ = "1.0.0"

__all__ = [
    "Builder",
    "BuildStatus",
    "ChangeHandler",
    "ConfigBuildError",
    "DynamicConfig",
    "DynamicConfigError",
    "InitParams",
    "InvalidArgumentError",
    "LifecycleState",
    "PollFrequency",
    "SourceNotFoundError",
    "SourceParseError",
    "Strategy",
    "TypeMismatchError",
    "UninitializedError",
    "UnsupportedTerminationError",
    "__version__",
]
