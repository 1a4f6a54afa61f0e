"""Tests for network readiness detection."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import (
    LOCAL_ONLY,
    ONLINE,
    UNVALIDATED,
    FakeConnectivityProvider,
    drain_loop,
)
from PySide6.QtCore import QCoreApplication

from roonctrl.core.network import (
    NETWORK_TIMEOUT_MESSAGE,
    ConnectivityEvent,
    NetworkCapabilities,
    NetworkReadinessDetector,
    QtConnectivityProvider,
    Reachability,
    capabilities_for,
)
from roonctrl.models.network import NetworkState, NetworkStatus


def _mock_stream_pair() -> tuple[MagicMock, MagicMock]:
    reader = MagicMock()
    writer = MagicMock()
    writer.close = MagicMock()
    writer.wait_closed = AsyncMock()
    return reader, writer


@pytest.fixture
def detector(provider: FakeConnectivityProvider) -> NetworkReadinessDetector:
    """Return a detector with a fast poll interval."""
    return NetworkReadinessDetector(provider, poll_interval=0.01, probe_timeout=0.1)


class TestCapabilitiesFor:
    """Test reachability mapping."""

    def test_disconnected_has_no_network(self) -> None:
        """Test Disconnected maps to no active network."""
        assert capabilities_for(Reachability.Disconnected) is None

    def test_local_has_no_internet(self) -> None:
        """Test Local maps to a network without internet."""
        assert capabilities_for(Reachability.Local) == LOCAL_ONLY

    def test_online_is_validated(self) -> None:
        """Test Online maps to a validated internet network."""
        assert capabilities_for(Reachability.Online) == ONLINE

    @pytest.mark.parametrize("reachability", [Reachability.Site, Reachability.Unknown])
    def test_unconfirmed_needs_probe(self, reachability: Reachability) -> None:
        """Test Site and Unknown defer validation to the probe."""
        assert capabilities_for(reachability) == UNVALIDATED


class TestGetCurrentState:
    """Test one-shot state classification."""

    @pytest.mark.asyncio
    async def test_no_network(self, provider: FakeConnectivityProvider) -> None:
        """Test no active network is NOT_AVAILABLE."""
        provider.network = None
        detector = NetworkReadinessDetector(provider)
        assert await detector.get_current_state() == NetworkState.not_available()

    @pytest.mark.asyncio
    async def test_no_internet_capability(self, provider: FakeConnectivityProvider) -> None:
        """Test a network without internet is CONNECTING."""
        provider.network = LOCAL_ONLY
        detector = NetworkReadinessDetector(provider)
        assert await detector.get_current_state() == NetworkState.connecting()

    @pytest.mark.asyncio
    async def test_validated_network_skips_probe(
        self, detector: NetworkReadinessDetector
    ) -> None:
        """Test a validated network is AVAILABLE without probing."""
        with patch("roonctrl.core.network.asyncio.open_connection") as mock_open:
            state = await detector.get_current_state()

        assert state.is_available
        mock_open.assert_not_called()

    @pytest.mark.asyncio
    async def test_unvalidated_network_probe_succeeds(
        self, provider: FakeConnectivityProvider
    ) -> None:
        """Test a successful probe makes an unvalidated network AVAILABLE."""
        provider.network = UNVALIDATED
        detector = NetworkReadinessDetector(provider, probe_host="1.1.1.1", probe_port=53)
        reader, writer = _mock_stream_pair()

        with patch(
            "roonctrl.core.network.asyncio.open_connection",
            new=AsyncMock(return_value=(reader, writer)),
        ) as mock_open:
            state = await detector.get_current_state()

        assert state.is_available
        mock_open.assert_awaited_once_with("1.1.1.1", 53)
        writer.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_unvalidated_network_probe_fails(
        self, provider: FakeConnectivityProvider
    ) -> None:
        """Test a failed probe leaves the network CONNECTING."""
        provider.network = UNVALIDATED
        detector = NetworkReadinessDetector(provider)

        with patch(
            "roonctrl.core.network.asyncio.open_connection",
            new=AsyncMock(side_effect=OSError("Network is unreachable")),
        ):
            state = await detector.get_current_state()

        assert state == NetworkState.connecting()

    @pytest.mark.asyncio
    async def test_probe_timeout(self, provider: FakeConnectivityProvider) -> None:
        """Test a hanging probe times out and reports CONNECTING."""
        provider.network = UNVALIDATED
        detector = NetworkReadinessDetector(provider, probe_timeout=0.01)

        async def hang(*_args: object) -> None:
            await asyncio.sleep(10)

        with patch("roonctrl.core.network.asyncio.open_connection", new=hang):
            state = await detector.get_current_state()

        assert state.status is NetworkStatus.CONNECTING

    @pytest.mark.asyncio
    async def test_provider_failure_is_error(self, provider: FakeConnectivityProvider) -> None:
        """Test a provider exception becomes an ERROR state."""
        provider.fail_with = RuntimeError("backend gone")
        detector = NetworkReadinessDetector(provider)

        state = await detector.get_current_state()

        assert state.status is NetworkStatus.ERROR
        assert "backend gone" in state.message


class TestWaitForReady:
    """Test polling for readiness."""

    @pytest.mark.asyncio
    async def test_immediately_available(self, detector: NetworkReadinessDetector) -> None:
        """Test an available network returns at once."""
        state = await detector.wait_for_ready(timeout=1.0)
        assert state.is_available

    @pytest.mark.asyncio
    async def test_becomes_available(self, provider: FakeConnectivityProvider) -> None:
        """Test polling returns once the network comes up."""
        provider.network = None
        detector = NetworkReadinessDetector(provider, poll_interval=0.01)

        async def bring_up() -> None:
            await asyncio.sleep(0.03)
            provider.network = ONLINE

        task = asyncio.create_task(bring_up())
        state = await detector.wait_for_ready(timeout=2.0)
        await task

        assert state.is_available

    @pytest.mark.asyncio
    async def test_timeout_returns_error(self, provider: FakeConnectivityProvider) -> None:
        """Test expiry returns ERROR with the timeout message."""
        provider.network = None
        detector = NetworkReadinessDetector(provider, poll_interval=0.01)

        state = await detector.wait_for_ready(timeout=0.05)

        assert state.status is NetworkStatus.ERROR
        assert state.message == NETWORK_TIMEOUT_MESSAGE

    @pytest.mark.asyncio
    async def test_hanging_first_probe_bounded_by_timeout(
        self, provider: FakeConnectivityProvider
    ) -> None:
        """Test a slow first probe cannot outlast the overall timeout."""
        provider.network = UNVALIDATED
        detector = NetworkReadinessDetector(provider, poll_interval=0.01, probe_timeout=2.0)

        async def hang(*_args: object) -> None:
            await asyncio.sleep(10)

        loop = asyncio.get_running_loop()
        with patch("roonctrl.core.network.asyncio.open_connection", new=hang):
            started = loop.time()
            state = await detector.wait_for_ready(timeout=0.1)
            elapsed = loop.time() - started

        assert state == NetworkState.error(NETWORK_TIMEOUT_MESSAGE)
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_error_states_keep_polling(self, provider: FakeConnectivityProvider) -> None:
        """Test ERROR states during polling do not end the wait."""
        provider.fail_with = RuntimeError("flaky")
        detector = NetworkReadinessDetector(provider, poll_interval=0.01)

        async def recover() -> None:
            await asyncio.sleep(0.03)
            provider.fail_with = None

        task = asyncio.create_task(recover())
        state = await detector.wait_for_ready(timeout=2.0)
        await task

        assert state.is_available


class TestSubscribe:
    """Test push notifications of network changes."""

    @pytest.mark.asyncio
    async def test_subscribe_registers_with_provider(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test subscribing registers exactly one provider callback."""
        detector.subscribe(lambda state: None)

        assert detector.is_subscribed
        assert len(provider.callbacks) == 1

    @pytest.mark.asyncio
    async def test_lost_delivered_synchronously(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test LOST reports NOT_AVAILABLE without recomputing."""
        received: list[NetworkState] = []
        detector.subscribe(received.append)

        provider.emit(ConnectivityEvent.LOST)

        assert received == [NetworkState.not_available()]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event", [ConnectivityEvent.AVAILABLE, ConnectivityEvent.CAPABILITIES_CHANGED]
    )
    async def test_other_events_recompute(
        self,
        detector: NetworkReadinessDetector,
        provider: FakeConnectivityProvider,
        event: ConnectivityEvent,
    ) -> None:
        """Test non-LOST events deliver a recomputed state."""
        received: list[NetworkState] = []
        detector.subscribe(received.append)

        provider.emit(event)
        assert received == []
        await drain_loop()

        assert received == [NetworkState.available()]

    @pytest.mark.asyncio
    async def test_resubscribe_replaces_previous(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test a second subscribe replaces the first."""
        first: list[NetworkState] = []
        second: list[NetworkState] = []
        detector.subscribe(first.append)
        detector.subscribe(second.append)

        provider.emit(ConnectivityEvent.LOST)

        assert len(provider.callbacks) == 1
        assert first == []
        assert second == [NetworkState.not_available()]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_notifications(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test unsubscribe removes the provider callback."""
        received: list[NetworkState] = []
        detector.subscribe(received.append)
        detector.unsubscribe()

        provider.emit(ConnectivityEvent.LOST)

        assert not detector.is_subscribed
        assert provider.callbacks == []
        assert received == []

    @pytest.mark.asyncio
    async def test_unsubscribe_when_not_subscribed(
        self, detector: NetworkReadinessDetector
    ) -> None:
        """Test unsubscribe without a subscription is a no-op."""
        detector.unsubscribe()
        assert not detector.is_subscribed

    @pytest.mark.asyncio
    async def test_unsubscribe_cancels_pending_recompute(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test an in-flight recomputation is cancelled and never delivered."""
        provider.network = UNVALIDATED
        release = asyncio.Event()

        async def slow_probe() -> bool:
            await release.wait()
            return True

        received: list[NetworkState] = []
        with patch.object(detector, "_probe_reachability", new=slow_probe):
            detector.subscribe(received.append)
            provider.emit(ConnectivityEvent.AVAILABLE)
            await drain_loop()

            tasks = list(detector._tasks)
            assert len(tasks) == 1

            detector.unsubscribe()
            release.set()
            await drain_loop()

        assert tasks[0].cancelled()
        assert received == []

    @pytest.mark.asyncio
    async def test_stale_generation_not_delivered(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test a recompute scheduled before resubscribe goes nowhere."""
        first: list[NetworkState] = []
        second: list[NetworkState] = []
        detector.subscribe(first.append)
        provider.emit(ConnectivityEvent.AVAILABLE)
        detector.subscribe(second.append)
        await drain_loop()

        assert first == []
        assert second == []

    def test_event_after_loop_closed_is_dropped(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test an event racing a closed subscriber loop does not raise."""
        loop = asyncio.new_event_loop()
        received: list[NetworkState] = []
        detector.subscribe(received.append, loop=loop)
        loop.close()

        provider.emit(ConnectivityEvent.AVAILABLE)

        assert received == []
        detector.unsubscribe()

    @pytest.mark.asyncio
    async def test_subscribe_with_explicit_loop(
        self, detector: NetworkReadinessDetector, provider: FakeConnectivityProvider
    ) -> None:
        """Test recomputations run on the given loop."""
        received: list[NetworkState] = []
        detector.subscribe(received.append, loop=asyncio.get_running_loop())

        provider.emit(ConnectivityEvent.CAPABILITIES_CHANGED)
        await drain_loop()

        assert received == [NetworkState.available()]


class TestQtConnectivityProvider:
    """Test the QNetworkInformation-backed provider."""

    def test_without_backend_is_unknown(self, qapp: QCoreApplication) -> None:
        """Test a provider without backend reports Unknown reachability."""
        provider = QtConnectivityProvider(load_backend=False)

        assert provider.reachability() == Reachability.Unknown
        assert provider.active_network() == UNVALIDATED

    def test_events_from_reachability_changes(self, qapp: QCoreApplication) -> None:
        """Test reachability transitions map to connectivity events."""
        provider = QtConnectivityProvider(load_backend=False)
        events: list[ConnectivityEvent] = []
        provider.register(events.append)

        provider._on_reachability_changed(Reachability.Disconnected)
        provider._on_reachability_changed(Reachability.Online)
        provider._on_reachability_changed(Reachability.Site)

        assert events == [
            ConnectivityEvent.LOST,
            ConnectivityEvent.AVAILABLE,
            ConnectivityEvent.CAPABILITIES_CHANGED,
        ]

    def test_register_is_idempotent(self, qapp: QCoreApplication) -> None:
        """Test registering the same callback twice delivers once."""
        provider = QtConnectivityProvider(load_backend=False)
        events: list[ConnectivityEvent] = []
        provider.register(events.append)
        provider.register(events.append)

        provider._on_reachability_changed(Reachability.Disconnected)

        assert events == [ConnectivityEvent.LOST]

    def test_unregister(self, qapp: QCoreApplication) -> None:
        """Test unregistered callbacks receive nothing."""
        provider = QtConnectivityProvider(load_backend=False)
        events: list[ConnectivityEvent] = []
        provider.register(events.append)
        provider.unregister(events.append)
        provider.unregister(events.append)

        provider._on_reachability_changed(Reachability.Disconnected)

        assert events == []

    @pytest.mark.asyncio
    async def test_drives_detector(self, qapp: QCoreApplication) -> None:
        """Test the provider works as a detector source."""
        provider = QtConnectivityProvider(load_backend=False)
        detector = NetworkReadinessDetector(provider)
        received: list[NetworkState] = []
        detector.subscribe(received.append)

        provider._on_reachability_changed(Reachability.Disconnected)

        assert received == [NetworkState.not_available()]
        assert isinstance(provider.active_network(), NetworkCapabilities)
        detector.unsubscribe()
