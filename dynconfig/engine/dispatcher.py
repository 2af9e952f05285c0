"""Change handlers: contract and isolated dispatch after each reload."""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping

import structlog

from dynconfig.config.schemas import HandlerFactory

logger = structlog.get_logger(__name__)


class ChangeHandler(ABC):
    """Called with the latest merged configuration after every reload."""

    @abstractmethod
    def execute(self, config_map: Mapping[str, str]) -> None:
        ...


def _factory_name(factory: HandlerFactory) -> str:
    return getattr(factory, "__qualname__", None) or repr(factory)


class ChangeDispatcher:
    """
    Invokes every registered handler factory after a reload.

    A fresh handler is built for every dispatch, so no state carries across calls.
    A failing factory or handler is logged and skipped; the others still run.
    """

    def __init__(self, factories: Iterable[HandlerFactory] = ()):
        self.factories = tuple(factories)

    def dispatch(self, snapshot: Mapping[str, str]) -> int:
        """Run all handlers with snapshot; returns how many completed without error."""
        completed = 0
        for factory in self.factories:
            name = _factory_name(factory)
            try:
                handler = factory()
            except Exception as e:
                logger.error("change_handler_instantiation_failed", handler=name, error=str(e), exc_info=True)
                continue
            try:
                handler.execute(snapshot)
            except Exception as e:
                logger.error("change_handler_execution_failed", handler=name, error=str(e), exc_info=True)
                continue
            completed += 1
        logger.debug("change_handlers_dispatched", total=len(self.factories), completed=completed)
        return completed
