"""
Typed reads over the current snapshot.

- get_*_value(key): strict; raises UninitializedError / TypeMismatchError, None if the key is absent.
- get_config_value_or_default(key, default, value_type): never fails on data conditions.
"""

import re
from types import MappingProxyType
from typing import Any, Callable, Mapping, TypeVar

import structlog

from dynconfig.errors import DynamicConfigError, InvalidArgumentError, TypeMismatchError, UninitializedError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

INT_MIN, INT_MAX = -(2 ** 31), 2 ** 31 - 1
LONG_MIN, LONG_MAX = -(2 ** 63), 2 ** 63 - 1

_INTEGER = re.compile(r"^[+-]?\d+$")
_TRUE, _FALSE = "true", "false"


def to_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value == _TRUE:
        return True
    if value == _FALSE:
        return False
    raise TypeMismatchError(key, raw, "bool")


def _to_integer(key: str, raw: str, low: int, high: int, type_name: str) -> int:
    value = raw.strip()
    if not _INTEGER.match(value):
        raise TypeMismatchError(key, raw, type_name)
    number = int(value)
    if not low <= number <= high:
        raise TypeMismatchError(key, raw, type_name)
    return number


def to_int(key: str, raw: str) -> int:
    """32-bit signed integer."""
    return _to_integer(key, raw, INT_MIN, INT_MAX, "int")


def to_long(key: str, raw: str) -> int:
    """64-bit signed integer."""
    return _to_integer(key, raw, LONG_MIN, LONG_MAX, "long")


def to_float(key: str, raw: str) -> float:
    value = raw.strip()
    # float() also accepts digit separators, which config values never mean.
    if not value or "_" in value:
        raise TypeMismatchError(key, raw, "float")
    try:
        return float(value)
    except ValueError as e:
        raise TypeMismatchError(key, raw, "float") from e


def to_str(key: str, raw: str) -> str:
    return raw


# Coercion used by get_config_value_or_default, selected by value type.
COERCERS: dict[type, Callable[[str, str], Any]] = {
    str: to_str,
    bool: to_bool,
    int: to_long,
    float: to_float,
}


class TypedAccessor:
    """Read operations; the host class keeps the current snapshot in self._snapshot (None when uninitialized)."""

    _snapshot: Mapping[str, str] | None = None

    def _require_snapshot(self) -> Mapping[str, str]:
        snapshot = self._snapshot
        if snapshot is None:
            raise UninitializedError("Dynamic config is not initialized.")
        return snapshot

    def _get_property(self, key: str, coerce: Callable[[str, str], T]) -> T | None:
        snapshot = self._require_snapshot()
        if not key or not key.strip():
            return None
        raw = snapshot.get(key)
        value = None if raw is None else coerce(key, raw)
        logger.debug("config_property_read", key=key, value=value)
        return value

    def get_value(self, key: str) -> str | None:
        """String value of key, or None if the key is not defined."""
        return self._get_property(key, to_str)

    def get_boolean_value(self, key: str) -> bool | None:
        return self._get_property(key, to_bool)

    def get_int_value(self, key: str) -> int | None:
        return self._get_property(key, to_int)

    def get_double_value(self, key: str) -> float | None:
        return self._get_property(key, to_float)

    def get_long_value(self, key: str) -> int | None:
        return self._get_property(key, to_long)

    def get_config_value_or_default(self, key: str, default: Any, value_type: type | None = None) -> Any:
        """
        Value of key converted to value_type, or default.

        The default is returned when the config is not initialized, the key is absent,
        or the stored value cannot be converted. Without value_type the default's own
        type is used (str when default is None), and a blank stored string also yields
        the default; with an explicit value_type=str a blank value is returned as stored.

        Raises:
            InvalidArgumentError: If value_type is given and is not exactly type(default),
                or the type has no conversion.
        """
        blank_falls_back = value_type is None
        if value_type is None:
            value_type = str if default is None else type(default)
        elif type(default) is not value_type:
            raise InvalidArgumentError(
                f"Mismatch in type of default value ({type(default).__name__}) and specified type ({value_type.__name__})"
            )
        coerce = COERCERS.get(value_type)
        if coerce is None:
            raise InvalidArgumentError(f"Unsupported config value type: {value_type.__name__}")
        try:
            value = self._get_property(key, coerce)
        except DynamicConfigError as e:
            logger.debug("config_value_default_used", key=key, reason=str(e))
            return default
        if value is None or (blank_falls_back and value_type is str and not value.strip()):
            return default
        return value

    def get_config_as_map(self) -> Mapping[str, str]:
        """Immutable copy of the current snapshot (empty mapping when it has no entries)."""
        snapshot = self._require_snapshot()
        logger.debug("config_map_read", keys=len(snapshot))
        return MappingProxyType(dict(snapshot))
