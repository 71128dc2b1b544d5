#!/usr/bin/env python3
"""
Mode Controller

Decides, at startup and continuously thereafter, which class of operations
may be attempted: documentation only, live content only, both, or live reads
with automatic degradation.

STATE MACHINE:
--------------
    initialize()
        forced by environment  -> forced mode (no fallback decision)
        preferred needs live   -> probe ok   -> preferred
                                  probe fail -> fallback (connection unreachable)
        preferred is docs_only -> docs_only

    switch_mode(target)
        target needs live and probe fails -> unchanged, returns False
        otherwise                         -> target (also the new preferred mode);
                                             health monitor runs while target needs live

    health monitor (every MODE_HEALTH_CHECK_INTERVAL_SECONDS)
        connection lost in hybrid / smart_fallback -> fallback
        connection regained while degraded         -> preferred

There is no terminal state: an unreachable source is re-probed on the next
health check, recovery attempt or manual switch.

Every mode change goes through _transition(); nothing else assigns the
current mode.
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from adaptive_cache.core.config.constants import ConnectionState, ServerMode, Stage
from adaptive_cache.core.config.settings import ModeSettings, get_settings
from adaptive_cache.core.exceptions import CapabilityDeniedError, ConfigurationError
from adaptive_cache.core.logging.logger import get_logger, log_stage
from adaptive_cache.infrastructure.cache.cache_manager import CacheManager
from adaptive_cache.infrastructure.cache.models import CacheStatistics
from adaptive_cache.infrastructure.monitoring import metrics_collector
from adaptive_cache.infrastructure.monitoring.instrumentation import PerformanceStats
from adaptive_cache.modes import capabilities

logger = get_logger(__name__)

Probe = Callable[[], Awaitable[bool] | bool]


class ConnectionStatus(BaseModel):
    """Result of the most recent connectivity probe."""

    state: ConnectionState = Field(default=ConnectionState.UNKNOWN)
    last_tested: datetime | None = Field(default=None, description="UTC time of the last probe")
    response_time_ms: float | None = Field(default=None, ge=0)
    error: str | None = Field(default=None)

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.REACHABLE


class ModeStats(BaseModel):
    """Snapshot returned by ModeController.get_stats()."""

    current_mode: ServerMode
    preferred_mode: ServerMode
    fallback_mode: ServerMode
    connection_status: ConnectionStatus
    reconnect_attempts: int = Field(ge=0)
    uptime_seconds: float = Field(ge=0)
    capabilities: list[str] = Field(default_factory=list)
    cache: CacheStatistics | None = None
    performance: PerformanceStats | None = None


class ModeController:
    """
    Operational mode state machine with capability gating.

    Usage:
        controller = ModeController(probe=drupal_client.ping, cache=cache_manager)
        await controller.initialize()

        if controller.is_capability_available("create_node"):
            ...

        await controller.switch_mode(ServerMode.HYBRID)
        stats = controller.get_stats()
        await controller.shutdown()
    """

    def __init__(
        self,
        probe: Probe | None = None,
        settings: ModeSettings | None = None,
        cache: CacheManager | None = None,
        instance: str = metrics_collector.DEFAULT_INSTANCE,
    ):
        """
        Args:
            probe: Connectivity check against the live source; returns True
                when reachable. Exceptions and timeouts count as unreachable.
            settings: Mode settings (default: get_settings().mode)
            cache: Cache manager whose statistics are reported by get_stats()
            instance: Label for this controller's current-mode gauge

        Raises:
            ConfigurationError: MODE_FALLBACK itself needs the live source
        """
        self._probe = probe
        self._settings = settings or get_settings().mode
        self._cache = cache
        self._instance = instance

        self._preferred_mode = ServerMode(self._settings.MODE_INITIAL)
        self._fallback_mode = ServerMode(self._settings.MODE_FALLBACK)
        if self._fallback_mode.requires_live_connection:
            raise ConfigurationError(
                "MODE_FALLBACK must not depend on the live source",
                details={"fallback_mode": self._fallback_mode.value},
            ).with_suggestion("Set MODE_FALLBACK=docs_only")
        self._current_mode = self._preferred_mode
        self._connection = ConnectionStatus()
        self._reconnect_attempts = 0
        self._started_at = time.monotonic()
        self._health_task: asyncio.Task | None = None

        metrics_collector.set_current_mode(self._current_mode, instance=self._instance)

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def current_mode(self) -> ServerMode:
        return self._current_mode

    @property
    def preferred_mode(self) -> ServerMode:
        return self._preferred_mode

    @property
    def fallback_mode(self) -> ServerMode:
        return self._fallback_mode

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection.model_copy()

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def is_degraded(self) -> bool:
        """True while running in the fallback mode instead of a live preferred mode."""
        return (
            self._current_mode == self._fallback_mode
            and self._preferred_mode != self._fallback_mode
            and self._preferred_mode.requires_live_connection
        )

    def forced_mode(self) -> ServerMode | None:
        """Mode forced by the environment, checked in order docs, live, hybrid."""
        if self._settings.DOCS_ONLY_MODE:
            return ServerMode.DOCS_ONLY
        if self._settings.FORCE_LIVE_MODE:
            return ServerMode.LIVE_ONLY
        if self._settings.FORCE_HYBRID_MODE:
            return ServerMode.HYBRID
        return None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self, start_monitoring: bool = True) -> ServerMode:
        """
        Determine the starting mode.

        STAGE-0.0: Mode controller initialization

        Args:
            start_monitoring: Start the background health monitor when the
                preferred mode depends on the live source

        Returns:
            The mode the controller settled in
        """
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Initializing mode controller",
            preferred_mode=self._preferred_mode.value,
            fallback_mode=self._fallback_mode.value,
        )

        forced = self.forced_mode()
        if forced is not None:
            self._preferred_mode = forced
            if forced.requires_live_connection:
                await self.probe()
            self._transition(forced, reason="environment override")
        elif self._preferred_mode.requires_live_connection:
            reachable = await self.probe()
            if reachable:
                self._transition(self._preferred_mode, reason="live source reachable")
            else:
                log_stage(
                    logger,
                    Stage.MODE_TRANSITION,
                    "Live connection failed, falling back",
                    level="warning",
                    fallback_mode=self._fallback_mode.value,
                    error=self._connection.error,
                )
                self._transition(self._fallback_mode, reason="live source unreachable")
        else:
            self._transition(self._preferred_mode, reason="configured")

        if start_monitoring and self._preferred_mode.requires_live_connection:
            self.start_health_monitoring()

        return self._current_mode

    async def shutdown(self) -> None:
        """Cancel background tasks."""
        await self.stop_health_monitoring()
        log_stage(logger, Stage.SHUTDOWN, "Mode controller shutdown", mode=self._current_mode.value)

    # -------------------------------------------------------------------------
    # Probing
    # -------------------------------------------------------------------------

    async def probe(self) -> bool:
        """
        Test the live source and record the result as the connection status.

        STAGE-M.1: Connectivity probe

        Returns:
            True if the live source answered within the connection timeout
        """
        if self._probe is None:
            self._record_probe(False, None, "No connectivity probe configured")
            return False

        timeout = self._settings.MODE_CONNECTION_TIMEOUT_SECONDS
        start_time = time.perf_counter()
        error = None

        try:
            reachable = bool(await asyncio.wait_for(self._invoke_probe(), timeout=timeout))
            if not reachable:
                error = "Probe reported the live source unreachable"
        except asyncio.TimeoutError:
            reachable = False
            error = f"Probe timed out after {timeout}s"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reachable = False
            error = str(e) or e.__class__.__name__

        response_time_ms = (time.perf_counter() - start_time) * 1000
        self._record_probe(reachable, response_time_ms if reachable else None, error)
        return reachable

    async def _invoke_probe(self) -> bool:
        result = self._probe()
        if inspect.isawaitable(result):
            result = await result
        return result

    def _record_probe(self, reachable: bool, response_time_ms: float | None, error: str | None) -> None:
        self._connection = ConnectionStatus(
            state=ConnectionState.REACHABLE if reachable else ConnectionState.UNREACHABLE,
            last_tested=datetime.now(timezone.utc),
            response_time_ms=response_time_ms,
            error=error,
        )
        metrics_collector.record_probe(reachable)
        log_stage(
            logger,
            Stage.MODE_PROBE,
            "Live source reachable" if reachable else "Live source unreachable",
            level="debug" if reachable else "warning",
            response_time_ms=None if response_time_ms is None else round(response_time_ms, 2),
            error=error,
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _transition(self, new_mode: ServerMode, reason: str) -> None:
        old_mode = self._current_mode
        self._current_mode = new_mode
        metrics_collector.set_current_mode(new_mode, instance=self._instance)

        if old_mode != new_mode:
            log_stage(
                logger,
                Stage.MODE_TRANSITION,
                "Mode switched",
                old_mode=old_mode.value,
                new_mode=new_mode.value,
                reason=reason,
            )

    async def switch_mode(self, target: ServerMode | str) -> bool:
        """
        Manual transition request.

        A target that needs the live source is only committed if a fresh
        probe succeeds; otherwise nothing changes.

        Returns:
            True if the transition was committed
        """
        target = ServerMode(target)
        log_stage(
            logger,
            Stage.MODE_TRANSITION,
            "Manual mode switch requested",
            current_mode=self._current_mode.value,
            target_mode=target.value,
        )

        if target.requires_live_connection:
            reachable = await self.probe()
            if not reachable:
                log_stage(
                    logger,
                    Stage.MODE_TRANSITION,
                    "Cannot switch mode, live connection unavailable",
                    level="warning",
                    target_mode=target.value,
                    error=self._connection.error,
                )
                return False

        self._transition(target, reason="manual switch")
        self._preferred_mode = target

        if target.requires_live_connection:
            self.start_health_monitoring()
        else:
            await self.stop_health_monitoring()
        return True

    async def attempt_recovery(self) -> bool:
        """
        Re-probe the live source and upgrade back to the preferred mode.

        STAGE-M.3: Connection recovery

        Gives up after MODE_MAX_RECOVERY_ATTEMPTS consecutive failures; the
        counter resets on the next successful probe.

        Returns:
            True if the live source is reachable again
        """
        if not self._settings.MODE_AUTO_RECOVERY:
            return False

        max_attempts = self._settings.MODE_MAX_RECOVERY_ATTEMPTS
        if self._reconnect_attempts >= max_attempts:
            log_stage(
                logger,
                Stage.MODE_RECOVERY,
                "Recovery attempts exhausted",
                level="warning",
                reconnect_attempts=self._reconnect_attempts,
            )
            return False

        log_stage(
            logger,
            Stage.MODE_RECOVERY,
            "Attempting connection recovery",
            attempt=self._reconnect_attempts + 1,
            max_attempts=max_attempts,
        )

        if await self.probe():
            self._recovered()
            return True

        self._reconnect_attempts += 1
        return False

    def _recovered(self) -> None:
        self._reconnect_attempts = 0
        if self.is_degraded and self._settings.MODE_AUTO_RECOVERY:
            self._transition(self._preferred_mode, reason="connection recovered")

    # -------------------------------------------------------------------------
    # Health monitoring
    # -------------------------------------------------------------------------

    def start_health_monitoring(self) -> None:
        if self._health_task is not None and not self._health_task.done():
            return
        self._health_task = asyncio.create_task(self._health_loop())

    async def stop_health_monitoring(self) -> None:
        if self._health_task is None:
            return

        self._health_task.cancel()
        try:
            await self._health_task
        except asyncio.CancelledError:
            pass
        self._health_task = None

    @property
    def is_monitoring(self) -> bool:
        return self._health_task is not None and not self._health_task.done()

    async def _health_loop(self) -> None:
        interval = self._settings.MODE_HEALTH_CHECK_INTERVAL_SECONDS
        while True:
            try:
                await asyncio.sleep(interval)
                await self.check_health()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Health check failed", stage=Stage.MODE_PROBE.value, error=str(e))

    async def check_health(self) -> bool:
        """
        One health-monitor pass: probe, then degrade or recover.

        Returns:
            Result of the probe
        """
        was_connected = self._connection.is_connected
        reachable = await self.probe()

        if reachable:
            self._recovered()
            return True

        if was_connected:
            if self._current_mode in (ServerMode.HYBRID, ServerMode.SMART_FALLBACK):
                log_stage(
                    logger,
                    Stage.MODE_TRANSITION,
                    "Live connection lost, falling back",
                    level="warning",
                    fallback_mode=self._fallback_mode.value,
                )
                self._transition(self._fallback_mode, reason="live connection lost")
            elif self._current_mode == ServerMode.LIVE_ONLY:
                log_stage(
                    logger,
                    Stage.MODE_TRANSITION,
                    "Live connection lost in live_only mode, live operations unavailable",
                    level="error",
                )
        elif self.is_degraded:
            self._reconnect_attempts += 1

        return False

    # -------------------------------------------------------------------------
    # Capability gating
    # -------------------------------------------------------------------------

    def is_capability_available(self, operation: str) -> bool:
        """Pure lookup against the current mode and connection status."""
        return capabilities.is_allowed(
            self._current_mode, operation, self._connection.is_connected
        )

    def require_capability(self, operation: str) -> None:
        """
        Raise CapabilityDeniedError unless operation is available right now.

        STAGE-1.0: Capability check
        """
        if self.is_capability_available(operation):
            return

        if operation in capabilities.capabilities_for(self._current_mode):
            message = f"'{operation}' requires a reachable live source"
            suggested = None
        else:
            message = f"'{operation}' is not available in {self._current_mode.value} mode"
            suggested = capabilities.suggest_mode(operation)

        log_stage(
            logger,
            Stage.CAPABILITY_CHECK,
            "Capability denied",
            level="warning",
            operation=operation,
            current_mode=self._current_mode.value,
            suggested_mode=suggested.value if suggested else None,
        )
        raise CapabilityDeniedError(
            message,
            operation=operation,
            current_mode=self._current_mode.value,
            suggested_mode=suggested.value if suggested else None,
        )

    def get_optimal_mode_for_tool(self, operation: str) -> str | None:
        return capabilities.optimal_mode_for_tool(operation, self._connection.is_connected)

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def get_stats(self) -> ModeStats:
        return ModeStats(
            current_mode=self._current_mode,
            preferred_mode=self._preferred_mode,
            fallback_mode=self._fallback_mode,
            connection_status=self.connection_status,
            reconnect_attempts=self._reconnect_attempts,
            uptime_seconds=time.monotonic() - self._started_at,
            capabilities=capabilities.capability_summary(self.is_capability_available),
            cache=self._cache.stats() if self._cache is not None else None,
            performance=self._cache.performance() if self._cache is not None else None,
        )
