"""Network readiness detection.

Classifies whether the device network is usable before a connection is
attempted. The platform's connectivity state comes from a
``ConnectivityProvider``; on desktop this is Qt's ``QNetworkInformation``
reachability, supplemented by a timed TCP probe to a well-known host when
the platform has not confirmed internet access itself.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from PySide6.QtCore import QObject
from PySide6.QtNetwork import QNetworkInformation

from roonctrl.models.network import NetworkState

logger = logging.getLogger(__name__)

DEFAULT_PROBE_HOST = "8.8.8.8"
DEFAULT_PROBE_PORT = 53
DEFAULT_PROBE_TIMEOUT = 3.0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_READY_TIMEOUT = 30.0

NETWORK_TIMEOUT_MESSAGE = "network check timed out"

NetworkChangeHandler = Callable[[NetworkState], None]


class ConnectivityEvent(Enum):
    """Platform connectivity notifications."""

    AVAILABLE = "available"
    LOST = "lost"
    CAPABILITIES_CHANGED = "capabilities_changed"


ConnectivityCallback = Callable[[ConnectivityEvent], None]


@dataclass(frozen=True, slots=True)
class NetworkCapabilities:
    """Capabilities of the active network.

    Attributes:
        has_internet: The network claims general internet access.
        validated: The platform has verified that internet access works.
    """

    has_internet: bool
    validated: bool


class ConnectivityProvider(Protocol):
    """Source of platform network state and change notifications."""

    def active_network(self) -> NetworkCapabilities | None:
        """Return capabilities of the active network, or None without one."""
        ...

    def register(self, callback: ConnectivityCallback) -> None:
        """Start delivering connectivity events to ``callback``."""
        ...

    def unregister(self, callback: ConnectivityCallback) -> None:
        """Stop delivering connectivity events to ``callback``."""
        ...


Reachability = QNetworkInformation.Reachability


def capabilities_for(reachability: Reachability) -> NetworkCapabilities | None:
    """Map Qt reachability onto network capabilities.

    Unknown and Site reachability leave validation to the TCP probe.
    """
    if reachability == Reachability.Disconnected:
        return None
    if reachability == Reachability.Local:
        return NetworkCapabilities(has_internet=False, validated=False)
    if reachability == Reachability.Online:
        return NetworkCapabilities(has_internet=True, validated=True)
    return NetworkCapabilities(has_internet=True, validated=False)


class QtConnectivityProvider(QObject):
    """ConnectivityProvider backed by ``QNetworkInformation``.

    Must be created in the Qt main thread. Events are delivered from the
    thread that owns this object.

    Example:
        provider = QtConnectivityProvider()
        detector = NetworkReadinessDetector(provider)
    """

    def __init__(self, parent: QObject | None = None, *, load_backend: bool = True) -> None:
        """Initialize the provider.

        Args:
            parent: Optional parent QObject.
            load_backend: Load the platform reachability backend. Without a
                backend reachability is reported as Unknown.
        """
        super().__init__(parent)
        self._callbacks: list[ConnectivityCallback] = []
        self._info: QNetworkInformation | None = None

        if load_backend:
            if QNetworkInformation.instance() is None and not QNetworkInformation.loadDefaultBackend():
                logger.warning("No network information backend available, relying on TCP probe")
            self._info = QNetworkInformation.instance()

        self._last_reachability = self.reachability()
        if self._info is not None:
            self._info.reachabilityChanged.connect(self._on_reachability_changed)
            logger.debug("Using network information backend: %s", self._info.backendName())

    def reachability(self) -> Reachability:
        """Return the current platform reachability."""
        if self._info is None:
            return Reachability.Unknown
        return self._info.reachability()

    def active_network(self) -> NetworkCapabilities | None:
        """Return capabilities of the active network."""
        return capabilities_for(self.reachability())

    def register(self, callback: ConnectivityCallback) -> None:
        """Register a connectivity callback."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister(self, callback: ConnectivityCallback) -> None:
        """Unregister a connectivity callback."""
        with suppress(ValueError):
            self._callbacks.remove(callback)

    def _on_reachability_changed(self, reachability: Reachability) -> None:
        """Translate a reachability change into a connectivity event."""
        previous = self._last_reachability
        self._last_reachability = reachability

        if reachability == Reachability.Disconnected:
            event = ConnectivityEvent.LOST
        elif previous == Reachability.Disconnected:
            event = ConnectivityEvent.AVAILABLE
        else:
            event = ConnectivityEvent.CAPABILITIES_CHANGED

        logger.debug("Reachability %s -> %s (%s)", previous, reachability, event.value)
        for callback in list(self._callbacks):
            callback(event)


class NetworkReadinessDetector:
    """Decides whether the network is ready for a Core connection.

    Can be polled (``wait_for_ready``) or subscribed to (``subscribe``).
    Only one subscription is live at a time; subscribing again replaces
    the previous one and cancels its pending recomputations.

    Example:
        detector = NetworkReadinessDetector(QtConnectivityProvider())
        state = await detector.wait_for_ready(timeout=30.0)
        if state.is_available:
            ...
    """

    def __init__(
        self,
        provider: ConnectivityProvider,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        probe_host: str = DEFAULT_PROBE_HOST,
        probe_port: int = DEFAULT_PROBE_PORT,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
    ) -> None:
        """Initialize the detector.

        Args:
            provider: Platform connectivity source.
            poll_interval: Seconds between polls in ``wait_for_ready``.
            probe_host: Host for the reachability probe.
            probe_port: Port for the reachability probe.
            probe_timeout: Timeout of one probe connect in seconds.
        """
        self._provider = provider
        self._poll_interval = poll_interval
        self._probe_host = probe_host
        self._probe_port = probe_port
        self._probe_timeout = probe_timeout

        self._on_change: NetworkChangeHandler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def is_subscribed(self) -> bool:
        """Return True while a subscription is live."""
        return self._on_change is not None

    async def get_current_state(self) -> NetworkState:
        """Classify the current network state.

        Returns:
            NOT_AVAILABLE without an active network, CONNECTING while the
            network is not usable yet, AVAILABLE once internet access is
            confirmed, ERROR if inspecting the platform failed.
        """
        try:
            network = self._provider.active_network()
            if network is None:
                return NetworkState.not_available()
            if not network.has_internet:
                return NetworkState.connecting()
            if not network.validated:
                if await self._probe_reachability():
                    return NetworkState.available()
                return NetworkState.connecting()
            return NetworkState.available()
        except Exception as e:
            logger.exception("Failed to read network state")
            return NetworkState.error(f"Network state check failed: {e}")

    async def _probe_reachability(self) -> bool:
        """Try a timed TCP connect to the probe host."""
        try:
            _reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self._probe_host, self._probe_port),
                timeout=self._probe_timeout,
            )
        except (OSError, TimeoutError) as e:
            logger.debug(
                "Reachability probe to %s:%d failed: %s", self._probe_host, self._probe_port, e
            )
            return False

        writer.close()
        with suppress(OSError, TimeoutError):
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
        return True

    async def wait_for_ready(self, timeout: float = DEFAULT_READY_TIMEOUT) -> NetworkState:
        """Wait until the network is available.

        Args:
            timeout: Maximum time to wait in seconds.

        Returns:
            AVAILABLE, or ERROR("network check timed out") on expiry.
        """
        logger.debug("Checking network readiness")
        # Deadline covers the first check, which may probe
        try:
            return await asyncio.wait_for(self._poll_until_available(), timeout=timeout)
        except TimeoutError:
            logger.warning("Network readiness check timed out after %.1fs", timeout)
            return NetworkState.error(NETWORK_TIMEOUT_MESSAGE)

    async def _poll_until_available(self) -> NetworkState:
        while True:
            state = await self.get_current_state()
            if state.is_available:
                logger.info("Network ready")
                return state
            if state.message:
                logger.warning("Network check error: %s", state.message)
            else:
                logger.debug("Network %s, waiting...", state.status.value)
            await asyncio.sleep(self._poll_interval)

    def subscribe(
        self,
        on_change: NetworkChangeHandler,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Push network state changes to ``on_change``.

        Recomputations run as tasks on ``loop``; call from that loop's
        thread, or pass the loop explicitly.

        Args:
            on_change: Called with every recomputed state.
            loop: Event loop for recomputation tasks (default: running loop).
        """
        self.unsubscribe()
        self._loop = loop or asyncio.get_running_loop()
        self._on_change = on_change
        self._generation += 1
        self._provider.register(self._on_connectivity_event)
        logger.debug("Subscribed to network changes")

    def unsubscribe(self) -> None:
        """Stop notifications and cancel pending recomputations."""
        if self._on_change is None:
            return
        self._provider.unregister(self._on_connectivity_event)
        self._on_change = None
        self._loop = None
        self._generation += 1
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        logger.debug("Unsubscribed from network changes")

    def _on_connectivity_event(self, event: ConnectivityEvent) -> None:
        on_change = self._on_change
        loop = self._loop
        if on_change is None or loop is None:
            return

        if event is ConnectivityEvent.LOST:
            logger.info("Network lost")
            on_change(NetworkState.not_available())
            return

        logger.debug("Network event %s, recomputing state", event.value)
        try:
            loop.call_soon_threadsafe(self._spawn_recompute, self._generation)
        except RuntimeError:
            # Loop closed between unsubscribe and this event
            logger.debug("Event loop closed, dropping network event %s", event.value)

    def _spawn_recompute(self, generation: int) -> None:
        if generation != self._generation:
            return
        task = asyncio.ensure_future(self._recompute(generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _recompute(self, generation: int) -> None:
        state = await self.get_current_state()
        on_change = self._on_change
        if generation == self._generation and on_change is not None:
            on_change(state)
