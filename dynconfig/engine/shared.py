"""
Process-wide default DynamicConfig for code that expects a global.

Prefer constructing a DynamicConfig and passing it to consumers; these functions
only delegate to one lazily created default instance.
"""

import threading
from typing import Any, Mapping

from dynconfig.engine.manager import Builder, DynamicConfig

_default: DynamicConfig | None = None
_default_lock = threading.Lock()


def get_instance() -> DynamicConfig:
    """The process-wide DynamicConfig (created uninitialized on first call)."""
    global _default
    with _default_lock:
        if _default is None:
            _default = DynamicConfig()
        return _default


def reset_instance() -> None:
    """Drop the process-wide instance (for tests). Terminates it first when that is allowed."""
    global _default
    with _default_lock:
        instance, _default = _default, None
    if instance is not None and instance.is_initialized and instance.params.use_custom_executor:
        instance.terminate()


def builder() -> Builder:
    return get_instance().builder()


def terminate() -> None:
    get_instance().terminate()


def get_init_details() -> str:
    return get_instance().get_init_details()


def get_config_as_map() -> Mapping[str, str]:
    return get_instance().get_config_as_map()


def get_value(key: str) -> str | None:
    return get_instance().get_value(key)


def get_boolean_value(key: str) -> bool | None:
    return get_instance().get_boolean_value(key)


def get_int_value(key: str) -> int | None:
    return get_instance().get_int_value(key)


def get_double_value(key: str) -> float | None:
    return get_instance().get_double_value(key)


def get_long_value(key: str) -> int | None:
    return get_instance().get_long_value(key)


def get_config_value_or_default(key: str, default: Any, value_type: type | None = None) -> Any:
    return get_instance().get_config_value_or_default(key, default, value_type)
