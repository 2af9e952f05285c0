"""
Lifecycle of one dynamic configuration: build, reload on change, terminate.

- build() and terminate() are serialized by a lifecycle lock.
- Reloads are serialized by a separate reload lock; readers take no lock and see
  whichever snapshot reference is current.
- A failed reload keeps the previous snapshot; unchanged content publishes nothing.
- Handlers run after the reload lock is released, so they may call terminate().

Example:
    config = DynamicConfig()
    config.builder().use_custom_executor().sources("app.properties", "/etc/app").build()
    timeout = config.get_int_value("http.timeout")
    config.terminate()
"""

import threading
from typing import Mapping

import structlog

from dynconfig.config.schemas import (
    BuildStatus,
    HandlerFactory,
    InitParams,
    LifecycleState,
    PollFrequency,
    SourceDescriptor,
    Strategy,
)
from dynconfig.engine.accessor import TypedAccessor
from dynconfig.engine.dispatcher import ChangeDispatcher
from dynconfig.engine.merge import describe_sources, merge_sources
from dynconfig.engine.scheduler import DEFAULT_SHUTDOWN_TIMEOUT, ChangeScheduler
from dynconfig.errors import ConfigBuildError, DynamicConfigError, UninitializedError, UnsupportedTerminationError
from dynconfig.sources.base import SourceProvider
from dynconfig.sources.env import environment_values
from dynconfig.sources.files import FileSourceProvider

logger = structlog.get_logger(__name__)


class DynamicConfig(TypedAccessor):
    """One continuously updated configuration view merged from ordered sources."""

    def __init__(self, provider: SourceProvider | None = None):
        self.provider = provider or FileSourceProvider()
        self._lifecycle_lock = threading.Lock()
        self._reload_lock = threading.Lock()
        self._state = LifecycleState.UNINITIALIZED
        self._params: InitParams | None = None
        self._descriptors: tuple[SourceDescriptor, ...] = ()
        self._scheduler: ChangeScheduler | None = None
        self._dispatcher = ChangeDispatcher()
        self._snapshot: Mapping[str, str] | None = None

    def builder(self) -> "Builder":
        return Builder(self)

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is LifecycleState.INITIALIZED

    @property
    def params(self) -> InitParams | None:
        return self._params

    def _merge(self, params: InitParams, descriptors: tuple[SourceDescriptor, ...]) -> Mapping[str, str]:
        environ = environment_values() if params.include_sys_env_props else None
        return merge_sources(descriptors, self.provider, environ)

    def build(self, params: InitParams | None = None) -> BuildStatus:
        """
        Initialize from params: merge all sources and start change detection.

        Returns:
            BuildStatus.INITIALIZED, or BuildStatus.ALREADY_INITIALIZED if this instance
            was already built (the call is then a no-op).

        Raises:
            SourceNotFoundError: If a source path does not exist.
            ConfigBuildError: On any other initialization failure. State stays uninitialized.
        """
        params = params or InitParams()
        with self._lifecycle_lock:
            if self._state is LifecycleState.INITIALIZED:
                logger.info("dynamic_config_already_initialized")
                return BuildStatus.ALREADY_INITIALIZED

            scheduler: ChangeScheduler | None = None
            try:
                descriptors = describe_sources(params, self.provider)
                logger.debug("dynamic_config_sources", sources=[str(d.path) for d in descriptors])
                scheduler = ChangeScheduler(
                    self.provider,
                    dedicated=params.use_custom_executor,
                    daemon=params.run_as_daemon,
                    size=len(descriptors),
                )
                # Subscribe before the first merge so no change falls between the two;
                # notifications wait here until the first snapshot is published.
                with self._reload_lock:
                    scheduler.start(descriptors, self._on_source_change)
                    snapshot = self._merge(params, descriptors)
                    self._params = params
                    self._descriptors = descriptors
                    self._dispatcher = ChangeDispatcher(params.handlers)
                    self._scheduler = scheduler
                    self._snapshot = snapshot
            except Exception as e:
                if scheduler is not None:
                    scheduler.shutdown(DEFAULT_SHUTDOWN_TIMEOUT)
                self._clear()
                logger.error("dynamic_config_initialization_failed", error=str(e))
                if isinstance(e, DynamicConfigError):
                    raise
                raise ConfigBuildError(f"Dynamic config initialization failed: {e}") from e

            self._state = LifecycleState.INITIALIZED
            logger.info(
                "dynamic_config_initialized",
                sources=len(descriptors),
                keys=len(snapshot),
                strategy=params.strategy.value,
                custom_executor=params.use_custom_executor,
            )
            logger.debug("dynamic_config_initial_map", config=dict(snapshot))
            return BuildStatus.INITIALIZED

    def terminate(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """
        Stop change detection and return to uninitialized; the instance can be built again.

        Raises:
            UninitializedError: If not initialized.
            UnsupportedTerminationError: If the build did not use a dedicated executor.
        """
        with self._lifecycle_lock:
            if self._state is not LifecycleState.INITIALIZED:
                raise UninitializedError("Dynamic config is not initialized.")
            if not self._params.use_custom_executor:
                raise UnsupportedTerminationError(
                    "Dynamic config termination is not allowed when use_custom_executor is set to false."
                )
            self._state = LifecycleState.TERMINATED
            stopped = self._scheduler.shutdown(timeout)
            with self._reload_lock:
                self._clear()
            self._state = LifecycleState.UNINITIALIZED
            logger.info("dynamic_config_terminated", clean_shutdown=stopped)

    def _clear(self) -> None:
        self._snapshot = None
        self._params = None
        self._descriptors = ()
        self._scheduler = None
        self._dispatcher = ChangeDispatcher()

    def _on_source_change(self, descriptor: SourceDescriptor) -> None:
        logger.info("config_change_detected", source=str(descriptor.path))
        self._refresh()

    def reload(self) -> bool:
        """
        Re-merge all sources now, as a change notification would.

        Returns:
            True if a new snapshot was published and handlers ran.

        Raises:
            UninitializedError: If not initialized.
        """
        self._require_snapshot()
        return self._refresh()

    def _refresh(self) -> bool:
        with self._reload_lock:
            params, descriptors, current = self._params, self._descriptors, self._snapshot
            if params is None or current is None:
                logger.debug("config_reload_skipped", reason="uninitialized")
                return False
            try:
                merged = self._merge(params, descriptors)
            except Exception as e:
                logger.error("config_reload_failed", error=str(e), exc_info=True)
                return False
            if dict(merged) == dict(current):
                logger.debug("config_reload_unchanged", keys=len(merged))
                return False
            self._snapshot = merged
            dispatcher = self._dispatcher
            logger.info("config_reloaded", keys=len(merged))
            logger.debug("config_reloaded_map", config=dict(merged))
        dispatcher.dispatch(merged)
        return True

    def get_init_details(self) -> str:
        """Summary of the active initialization parameters."""
        params = self._params
        if self._state is not LifecycleState.INITIALIZED or params is None:
            raise UninitializedError("Dynamic config is not initialized.")
        frequency = params.effective_frequency
        polling = "N/A" if frequency is None else f"{frequency.seconds} seconds"
        sources = ", ".join(params.sources)
        return (
            f"includeSysEnvProps: {str(params.include_sys_env_props).lower()}, "
            f"useCustomExecutor: {str(params.use_custom_executor).lower()}, "
            f"runAsDaemon: {str(params.run_as_daemon).lower()}, "
            f"Strategy: {params.strategy.value}, "
            f"pollingFrequency: {polling}, "
            f"configFileSources: [{sources}]"
        )


class Builder:
    """Fluent construction of InitParams, building the bound DynamicConfig."""

    def __init__(self, target: DynamicConfig):
        self._target = target
        self._include_sys_env_props = False
        self._use_custom_executor = False
        self._run_as_daemon = False
        self._sources: list[str] = []
        self._strategy: Strategy | None = None
        self._frequency: PollFrequency | None = None
        self._handlers: list[HandlerFactory] = []

    def include_sys_env_props(self) -> "Builder":
        """Merge environment variables at the lowest precedence."""
        self._include_sys_env_props = True
        return self

    def use_custom_executor(self) -> "Builder":
        """Watch on a dedicated pool; only such a build can be terminated."""
        self._use_custom_executor = True
        return self

    def run_as_daemon(self) -> "Builder":
        """Dedicated pool threads are daemons and are stopped at interpreter exit."""
        self._run_as_daemon = True
        return self

    def sources(self, *paths: str) -> "Builder":
        """Config files or directories; earlier sources take precedence over later ones."""
        self._sources = [str(p) for p in paths]
        return self

    def strategy(self, strategy: Strategy | None) -> "Builder":
        self._strategy = strategy
        return self

    def frequency(self, frequency: PollFrequency | None) -> "Builder":
        self._frequency = frequency
        return self

    def handler(self, factory: HandlerFactory) -> "Builder":
        self._handlers.append(factory)
        return self

    def handlers(self, *factories: HandlerFactory) -> "Builder":
        self._handlers.extend(factories)
        return self

    def params(self) -> InitParams:
        return InitParams(
            include_sys_env_props=self._include_sys_env_props,
            use_custom_executor=self._use_custom_executor,
            run_as_daemon=self._run_as_daemon,
            strategy=self._strategy,
            frequency=self._frequency,
            sources=self._sources,
            handlers=self._handlers,
        )

    def build(self) -> BuildStatus:
        return self._target.build(self.params())
