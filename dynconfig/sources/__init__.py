"""Configuration source providers (files, directories, environment)."""

from dynconfig.sources.base import SourceProvider, Subscription
from dynconfig.sources.env import environment_values
from dynconfig.sources.files import FileSourceProvider

__all__ = ["FileSourceProvider", "SourceProvider", "Subscription", "environment_values"]
