"""
Unit Tests for ModeController

Tests initialization, manual switching, capability gating, health
monitoring and recovery.
"""

import asyncio

import pytest

from adaptive_cache.core.config.constants import ConnectionState, ServerMode
from adaptive_cache.core.exceptions import CapabilityDeniedError, ConfigurationError
from adaptive_cache.modes.mode_controller import ModeController
from tests.test_fixtures import CacheTestFactory, UpstreamTestFactory


def make_controller(probe=None, cache=None, **overrides) -> ModeController:
    return ModeController(
        probe=probe, settings=CacheTestFactory.mode_settings(**overrides), cache=cache
    )


@pytest.mark.unit
class TestInitialize:
    """Test starting-mode selection."""

    @pytest.mark.asyncio
    async def test_reachable_source_keeps_preferred_mode(self, probe):
        controller = make_controller(probe)

        assert await controller.initialize(start_monitoring=False) == ServerMode.SMART_FALLBACK
        assert controller.connection_status.state == ConnectionState.REACHABLE
        assert controller.connection_status.response_time_ms is not None
        assert probe.calls == 1

    @pytest.mark.asyncio
    async def test_unreachable_source_falls_back(self, failing_probe):
        controller = make_controller(failing_probe, MODE_INITIAL="hybrid")

        assert await controller.initialize(start_monitoring=False) == ServerMode.DOCS_ONLY
        assert controller.connection_status.state == ConnectionState.UNREACHABLE
        assert controller.preferred_mode == ServerMode.HYBRID
        assert controller.is_degraded

    @pytest.mark.asyncio
    async def test_probe_exception_counts_as_unreachable(self):
        probe = UpstreamTestFactory.probe(ConnectionError("refused"))
        controller = make_controller(probe)

        assert await controller.initialize(start_monitoring=False) == ServerMode.DOCS_ONLY
        assert controller.connection_status.error == "refused"

    @pytest.mark.asyncio
    async def test_probe_timeout_counts_as_unreachable(self):
        async def slow_probe():
            await asyncio.sleep(5)
            return True

        controller = make_controller(slow_probe, MODE_CONNECTION_TIMEOUT_SECONDS=0.05)

        assert await controller.initialize(start_monitoring=False) == ServerMode.DOCS_ONLY
        assert "timed out" in controller.connection_status.error

    @pytest.mark.asyncio
    async def test_missing_probe_counts_as_unreachable(self):
        controller = make_controller(None)

        assert await controller.initialize(start_monitoring=False) == ServerMode.DOCS_ONLY
        assert controller.connection_status.error == "No connectivity probe configured"

    @pytest.mark.asyncio
    async def test_docs_only_preference_skips_probe(self, probe):
        controller = make_controller(probe, MODE_INITIAL="docs_only")

        assert await controller.initialize() == ServerMode.DOCS_ONLY
        assert probe.calls == 0
        assert not controller.is_monitoring

    @pytest.mark.asyncio
    async def test_sync_probe_supported(self):
        controller = make_controller(lambda: True)

        assert await controller.initialize(start_monitoring=False) == ServerMode.SMART_FALLBACK

    @pytest.mark.parametrize("fallback", ["hybrid", "live_only", "smart_fallback"])
    def test_live_fallback_mode_rejected(self, probe, fallback):
        with pytest.raises(ConfigurationError) as exc_info:
            make_controller(probe, MODE_FALLBACK=fallback)

        assert exc_info.value.details["fallback_mode"] == fallback
        assert "suggestion" in exc_info.value.details


@pytest.mark.unit
class TestEnvironmentOverrides:
    """Test forced modes."""

    @pytest.mark.asyncio
    async def test_docs_only_flag_wins(self, probe):
        controller = make_controller(probe, MODE_INITIAL="hybrid", DOCS_ONLY_MODE=True, FORCE_LIVE_MODE=True)

        assert await controller.initialize(start_monitoring=False) == ServerMode.DOCS_ONLY
        assert probe.calls == 0

    @pytest.mark.asyncio
    async def test_forced_live_mode_bypasses_fallback(self, failing_probe):
        controller = make_controller(failing_probe, FORCE_LIVE_MODE=True)

        assert await controller.initialize(start_monitoring=False) == ServerMode.LIVE_ONLY
        assert controller.connection_status.state == ConnectionState.UNREACHABLE
        assert not controller.is_capability_available("get_node")

    @pytest.mark.asyncio
    async def test_forced_hybrid_mode(self, probe):
        controller = make_controller(probe, FORCE_HYBRID_MODE=True)

        assert await controller.initialize(start_monitoring=False) == ServerMode.HYBRID
        assert controller.is_capability_available("create_node")


@pytest.mark.unit
class TestSwitchMode:
    """Test manual transitions."""

    @pytest.mark.asyncio
    async def test_switch_fails_when_probe_fails(self):
        probe = UpstreamTestFactory.probe(False)
        controller = make_controller(probe, MODE_INITIAL="docs_only")
        await controller.initialize()

        assert await controller.switch_mode(ServerMode.HYBRID) is False
        assert controller.current_mode == ServerMode.DOCS_ONLY
        assert controller.preferred_mode == ServerMode.DOCS_ONLY

    @pytest.mark.asyncio
    async def test_switch_succeeds_when_probe_succeeds(self, probe):
        controller = make_controller(probe, MODE_INITIAL="docs_only")
        await controller.initialize()

        assert await controller.switch_mode("hybrid") is True
        assert controller.current_mode == ServerMode.HYBRID
        assert controller.preferred_mode == ServerMode.HYBRID
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_switch_into_live_mode_watches_connection(self):
        probe = UpstreamTestFactory.probe(True)
        controller = make_controller(
            probe, MODE_INITIAL="docs_only", MODE_HEALTH_CHECK_INTERVAL_SECONDS=0.01
        )
        await controller.initialize()
        assert not controller.is_monitoring

        assert await controller.switch_mode(ServerMode.HYBRID) is True
        assert controller.is_monitoring

        probe.set(False)
        for _ in range(100):
            if controller.current_mode == ServerMode.DOCS_ONLY:
                break
            await asyncio.sleep(0.01)
        await controller.shutdown()

        assert controller.current_mode == ServerMode.DOCS_ONLY
        assert not controller.is_capability_available("create_node")

    @pytest.mark.asyncio
    async def test_switch_to_docs_only_stops_monitoring(self, probe):
        controller = make_controller(probe)
        await controller.initialize()
        assert controller.is_monitoring

        assert await controller.switch_mode(ServerMode.DOCS_ONLY) is True
        assert not controller.is_monitoring

    @pytest.mark.asyncio
    async def test_switch_to_docs_only_needs_no_probe(self, probe):
        controller = make_controller(probe)
        await controller.initialize(start_monitoring=False)
        calls = probe.calls

        assert await controller.switch_mode(ServerMode.DOCS_ONLY) is True
        assert probe.calls == calls

    @pytest.mark.asyncio
    async def test_invalid_mode_rejected(self, probe):
        controller = make_controller(probe)

        with pytest.raises(ValueError):
            await controller.switch_mode("turbo")


@pytest.mark.unit
class TestCapabilityGating:
    """Test capability checks against mode and connectivity."""

    @pytest.mark.asyncio
    async def test_docs_only_denies_live_operations(self, failing_probe):
        controller = make_controller(failing_probe)
        await controller.initialize(start_monitoring=False)

        assert controller.is_capability_available("search_drupal_all")
        assert not controller.is_capability_available("get_node")
        assert not controller.is_capability_available("create_node")

    @pytest.mark.asyncio
    async def test_smart_fallback_allows_reads_only(self, probe):
        controller = make_controller(probe)
        await controller.initialize(start_monitoring=False)

        assert controller.is_capability_available("get_node")
        assert not controller.is_capability_available("create_node")

    @pytest.mark.asyncio
    async def test_require_capability_suggests_mode(self, failing_probe):
        controller = make_controller(failing_probe)
        await controller.initialize(start_monitoring=False)

        with pytest.raises(CapabilityDeniedError) as exc_info:
            controller.require_capability("create_node")

        error = exc_info.value
        assert error.operation == "create_node"
        assert error.current_mode == "docs_only"
        assert error.suggested_mode == "hybrid"

    @pytest.mark.asyncio
    async def test_require_capability_when_disconnected(self):
        probe = UpstreamTestFactory.probe(True, False)
        controller = make_controller(probe, MODE_INITIAL="live_only")
        await controller.initialize(start_monitoring=False)
        await controller.check_health()

        assert controller.current_mode == ServerMode.LIVE_ONLY
        with pytest.raises(CapabilityDeniedError) as exc_info:
            controller.require_capability("get_node")

        assert exc_info.value.suggested_mode is None
        assert "reachable live source" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_optimal_mode_for_tool(self, probe):
        controller = make_controller(probe)
        await controller.initialize(start_monitoring=False)

        assert controller.get_optimal_mode_for_tool("get_node") == "live"
        assert controller.get_optimal_mode_for_tool("search_drupal_hooks") == "docs"


@pytest.mark.unit
class TestHealthAndRecovery:
    """Test degradation and recovery."""

    @pytest.mark.asyncio
    async def test_connection_loss_degrades_then_recovers(self):
        probe = UpstreamTestFactory.probe(True)
        controller = make_controller(probe, MODE_INITIAL="hybrid")
        await controller.initialize(start_monitoring=False)

        probe.set(False)
        assert await controller.check_health() is False
        assert controller.current_mode == ServerMode.DOCS_ONLY

        probe.set(True)
        assert await controller.check_health() is True
        assert controller.current_mode == ServerMode.HYBRID

    @pytest.mark.asyncio
    async def test_live_only_does_not_degrade(self):
        probe = UpstreamTestFactory.probe(True, False)
        controller = make_controller(probe, MODE_INITIAL="live_only")
        await controller.initialize(start_monitoring=False)

        await controller.check_health()
        assert controller.current_mode == ServerMode.LIVE_ONLY

    @pytest.mark.asyncio
    async def test_no_upgrade_without_auto_recovery(self):
        probe = UpstreamTestFactory.probe(False)
        controller = make_controller(probe, MODE_AUTO_RECOVERY=False)
        await controller.initialize(start_monitoring=False)

        probe.set(True)
        await controller.check_health()
        assert controller.current_mode == ServerMode.DOCS_ONLY
        assert await controller.attempt_recovery() is False

    @pytest.mark.asyncio
    async def test_attempt_recovery_counts_failures_and_gives_up(self):
        probe = UpstreamTestFactory.probe(False)
        controller = make_controller(probe, MODE_MAX_RECOVERY_ATTEMPTS=2)
        await controller.initialize(start_monitoring=False)

        assert await controller.attempt_recovery() is False
        assert await controller.attempt_recovery() is False
        assert controller.reconnect_attempts == 2

        calls = probe.calls
        assert await controller.attempt_recovery() is False
        assert probe.calls == calls

    @pytest.mark.asyncio
    async def test_attempt_recovery_upgrades_to_preferred(self):
        probe = UpstreamTestFactory.probe(False)
        controller = make_controller(probe)
        await controller.initialize(start_monitoring=False)
        await controller.attempt_recovery()

        probe.set(True)
        assert await controller.attempt_recovery() is True
        assert controller.current_mode == ServerMode.SMART_FALLBACK
        assert controller.reconnect_attempts == 0

    @pytest.mark.asyncio
    async def test_background_monitor_detects_loss(self):
        probe = UpstreamTestFactory.probe(True)
        controller = make_controller(probe, MODE_HEALTH_CHECK_INTERVAL_SECONDS=0.01)
        await controller.initialize()
        assert controller.is_monitoring

        probe.set(False)
        for _ in range(100):
            if controller.current_mode == ServerMode.DOCS_ONLY:
                break
            await asyncio.sleep(0.01)
        await controller.shutdown()

        assert controller.current_mode == ServerMode.DOCS_ONLY
        assert not controller.is_monitoring


@pytest.mark.unit
class TestStats:
    """Test mode statistics."""

    @pytest.mark.asyncio
    async def test_stats_without_cache(self, probe):
        controller = make_controller(probe)
        await controller.initialize(start_monitoring=False)

        stats = controller.get_stats()
        assert stats.current_mode == ServerMode.SMART_FALLBACK
        assert stats.fallback_mode == ServerMode.DOCS_ONLY
        assert stats.connection_status.state == ConnectionState.REACHABLE
        assert stats.cache is None
        assert "content_management" in stats.capabilities

    @pytest.mark.asyncio
    async def test_stats_include_cache_and_performance(self, failing_probe, cache_manager):
        cache_manager.get("missing")
        controller = make_controller(failing_probe, cache=cache_manager)
        await controller.initialize(start_monitoring=False)

        stats = controller.get_stats()
        assert stats.cache.misses == 1
        assert stats.performance.requests_per_minute == 1
        assert stats.capabilities == ["documentation", "code_examples", "module_generation"]
