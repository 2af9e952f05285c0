"""Exception hierarchy for dynamic configuration.

All errors raised by the engine derive from DynamicConfigError. The builtin
base mixed into each class keeps callers that catch RuntimeError, ValueError
or TypeError working.
"""


class DynamicConfigError(Exception):
    """Base for every dynamic config error."""


class ConfigBuildError(DynamicConfigError):
    """Initialization failed; partially allocated resources were released."""


class SourceNotFoundError(ConfigBuildError):
    """A configured source path does not exist or cannot be read."""

    def __init__(self, path: str, message: str | None = None):
        self.path = path
        super().__init__(message or f"Config source not found: {path}")


class SourceParseError(DynamicConfigError):
    """A source exists but its content cannot be turned into key/value pairs."""


class UninitializedError(DynamicConfigError, RuntimeError):
    """Operation requires an initialized dynamic config."""


class UnsupportedTerminationError(DynamicConfigError, NotImplementedError):
    """Termination requested but the build did not use a dedicated executor."""


class TypeMismatchError(DynamicConfigError, ValueError):
    """A stored value cannot be coerced to the requested type."""

    def __init__(self, key: str, value: str, type_name: str):
        self.key = key
        self.value = value
        self.type_name = type_name
        super().__init__(f"Config property {key!r} value {value!r} cannot be converted to {type_name}")


class InvalidArgumentError(DynamicConfigError, TypeError):
    """Caller passed inconsistent arguments (e.g. default value of the wrong type)."""
