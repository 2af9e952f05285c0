"""Tests for the process-wide default instance."""

import pytest

from dynconfig.engine import shared
from dynconfig.errors import UninitializedError


def test_get_instance_is_singleton(shared_instance):
    assert shared.get_instance() is shared_instance


def test_uninitialized_shared_defaults(shared_instance):
    assert shared.get_config_value_or_default("missing", "fallback") == "fallback"
    with pytest.raises(UninitializedError):
        shared.get_value("x")
    with pytest.raises(UninitializedError):
        shared.terminate()


def test_shared_delegates_to_instance(shared_instance, tmp_path, write_props):
    props = write_props(
        tmp_path / "app.properties",
        {"name": "svc", "enabled": "true", "port": "8080", "ratio": "0.25", "big": "4294967296"},
    )
    shared.builder().use_custom_executor().sources(str(props)).build()
    assert shared.get_value("name") == "svc"
    assert shared.get_boolean_value("enabled") is True
    assert shared.get_int_value("port") == 8080
    assert shared.get_double_value("ratio") == 0.25
    assert shared.get_long_value("big") == 4294967296
    assert shared.get_config_value_or_default("port", 1, int) == 8080
    assert shared.get_config_as_map()["name"] == "svc"
    assert "useCustomExecutor: true" in shared.get_init_details()
    shared.terminate()
    assert not shared_instance.is_initialized


def test_reset_instance_terminates_custom_executor(tmp_path, write_props):
    shared.reset_instance()
    props = write_props(tmp_path / "app.properties", {"k": "v"})
    instance = shared.get_instance()
    instance.builder().use_custom_executor().sources(str(props)).build()
    shared.reset_instance()
    assert not instance.is_initialized
    assert shared.get_instance() is not instance
    shared.reset_instance()
