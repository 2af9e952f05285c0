"""
Source merge: ordered sources -> one immutable snapshot.

Precedence: for a key defined by several sources the earliest-listed source wins;
later sources only fill keys still absent. Environment values, when included, are
applied last with the same fill-only rule. Every merge is a full rebuild.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

import structlog

from dynconfig.config.schemas import InitParams, SourceDescriptor
from dynconfig.errors import SourceNotFoundError
from dynconfig.sources.base import SourceProvider

logger = structlog.get_logger(__name__)

Snapshot = Mapping[str, str]

EMPTY_SNAPSHOT: Snapshot = MappingProxyType({})


def freeze(data: dict[str, str]) -> Snapshot:
    """Read-only view over a private copy of data."""
    return MappingProxyType(dict(data))


def describe_sources(params: InitParams, provider: SourceProvider) -> tuple[SourceDescriptor, ...]:
    """
    One descriptor per configured source, in precedence order.

    Raises:
        SourceNotFoundError: If a source path does not exist.
    """
    descriptors = []
    for raw in params.sources:
        path = Path(raw).expanduser()
        if not provider.exists(path):
            raise SourceNotFoundError(raw)
        descriptors.append(
            SourceDescriptor(
                path=path,
                is_directory=provider.is_directory(path),
                strategy=params.strategy,
                frequency=params.frequency,
            )
        )
    return tuple(descriptors)


def merge_sources(
    descriptors: Iterable[SourceDescriptor],
    provider: SourceProvider,
    environ: Mapping[str, str] | None = None,
) -> Snapshot:
    """
    Merge sources into a new snapshot.

    Args:
        descriptors: Sources, highest precedence first.
        provider: Resolves each descriptor to key/value pairs.
        environ: Environment values to fill remaining keys, or None to skip.

    Returns:
        Immutable mapping of key -> value.
    """
    merged: dict[str, str] = {}
    for descriptor in descriptors:
        for key, value in provider.resolve(descriptor):
            merged.setdefault(key, value)
    if environ is not None:
        for key, value in environ.items():
            merged.setdefault(key, value)
    return freeze(merged)
