"""Tests for the connectivity monitor — probe threshold, host events, notifications."""

import httpx
import pytest

from mediasync.services.connectivity import ConnectivityState, HttpConnectivityMonitor


def _monitor(handler=None, failure_threshold=3):
    transport = httpx.MockTransport(handler or (lambda request: httpx.Response(200)))
    return HttpConnectivityMonitor(
        health_url="http://server.test/api/health",
        poll_interval=30,
        timeout=1.0,
        failure_threshold=failure_threshold,
        transport=transport,
    )


class TestInitialState:
    def test_unknown_counts_as_online(self):
        monitor = _monitor()
        assert monitor.state == ConnectivityState.UNKNOWN
        assert monitor.is_online() is True


class TestProbe:
    @pytest.mark.asyncio
    async def test_probe_success(self):
        assert await _monitor().probe() is True

    @pytest.mark.asyncio
    async def test_probe_non_200(self):
        assert await _monitor(lambda request: httpx.Response(502)).probe() is False

    @pytest.mark.asyncio
    async def test_probe_network_error(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        assert await _monitor(handler).probe() is False

    @pytest.mark.asyncio
    async def test_check_goes_online(self):
        monitor = _monitor()
        assert await monitor.check() is True
        assert monitor.state == ConnectivityState.ONLINE


class TestThreshold:
    def test_single_probe_failure_does_not_go_offline(self):
        monitor = _monitor()
        monitor.report(True, source="probe")
        monitor.report(False, source="probe")
        assert monitor.state == ConnectivityState.ONLINE

    def test_threshold_probe_failures_go_offline(self):
        monitor = _monitor()
        monitor.report(True, source="probe")
        for _ in range(3):
            monitor.report(False, source="probe")
        assert monitor.state == ConnectivityState.OFFLINE
        assert monitor.is_online() is False

    def test_success_resets_failures(self):
        monitor = _monitor()
        monitor.report(False, source="probe")
        monitor.report(False, source="probe")
        monitor.report(True, source="probe")
        monitor.report(False, source="probe")
        assert monitor.state == ConnectivityState.ONLINE

    def test_host_offline_event_is_immediate(self):
        monitor = _monitor()
        monitor.report(False)
        assert monitor.state == ConnectivityState.OFFLINE


class TestNotifications:
    def test_subscribers_see_changes_only(self):
        monitor = _monitor()
        seen = []
        monitor.subscribe(seen.append)

        monitor.report(False)
        monitor.report(False)
        monitor.report(True)
        monitor.report(True)

        assert seen == [False, True]

    def test_unsubscribe(self):
        monitor = _monitor()
        seen = []
        unsubscribe = monitor.subscribe(seen.append)
        unsubscribe()

        monitor.report(False)
        assert seen == []

    def test_to_dict(self):
        monitor = _monitor()
        monitor.report(True)
        d = monitor.to_dict()
        assert d["state"] == "online"
        assert "since" in d


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_probes_immediately(self):
        monitor = _monitor(lambda request: httpx.Response(503), failure_threshold=1)
        await monitor.start()
        try:
            assert monitor.state == ConnectivityState.OFFLINE
        finally:
            await monitor.stop()
        assert monitor._task is None
