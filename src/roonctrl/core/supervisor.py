"""Connection supervisor: network gate plus bounded, backed-off retries.

One ``connect`` call waits for the network, then makes strictly
sequential handshake attempts through a ``ConnectionValidator``.
Transient failures are retried with exponential backoff; an endpoint
that answers but is not a Core ends the sequence immediately.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from roonctrl.api.validator import ConnectionValidator
from roonctrl.core.config import ConnectionSettings
from roonctrl.core.network import NetworkChangeHandler, NetworkReadinessDetector
from roonctrl.models.connection import ConnectionOutcome, ConnectionResult, OutcomeKind
from roonctrl.models.network import NetworkState, NetworkStatus

logger = logging.getLogger(__name__)

StatusHandler = Callable[[str], None]
SleepFunc = Callable[[float], Awaitable[None]]


class ConnectionSupervisor:
    """Orchestrates readiness gating and retrying connection attempts.

    Callers should run at most one ``connect`` per session at a time,
    typically behind an ``InFlightGuard``.

    Example:
        supervisor = ConnectionSupervisor(detector, RoonConnectionValidator())
        result = await supervisor.connect("192.168.1.20", 9330, on_status=print)
        if not result.is_success and result.can_retry:
            ...
    """

    def __init__(
        self,
        detector: NetworkReadinessDetector,
        validator: ConnectionValidator,
        settings: ConnectionSettings | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the supervisor.

        Args:
            detector: Network readiness gate.
            validator: Single-attempt handshake implementation.
            settings: Retry and timeout tuning (defaults if omitted).
            sleep: Coroutine used for backoff delays.
        """
        self._detector = detector
        self._validator = validator
        self._settings = settings or ConnectionSettings()
        self._sleep = sleep

    @property
    def settings(self) -> ConnectionSettings:
        """Return the active connection settings."""
        return self._settings

    async def connect(
        self,
        host: str,
        port: int | None = None,
        on_status: StatusHandler | None = None,
    ) -> ConnectionResult:
        """Connect to a Core with network gating and retries.

        Args:
            host: Core hostname or IP.
            port: Core port (default from settings).
            on_status: Receives human-readable progress strings.

        Returns:
            SUCCESS, FAILED (with can_retry), or NETWORK_NOT_READY.
        """
        settings = self._settings
        port = settings.default_port if port is None else port

        def status(message: str) -> None:
            if on_status is None:
                return
            try:
                on_status(message)
            except Exception:
                logger.exception("Status handler failed")

        status("Checking network connection...")
        logger.info("Starting connect to %s:%d", host, port)

        try:
            network_state = await self._detector.wait_for_ready(settings.network_timeout)
        except Exception as e:
            logger.exception("Network readiness check failed")
            network_state = NetworkState.error(str(e))
        if network_state.status is NetworkStatus.NOT_AVAILABLE:
            status("Network unavailable. Please check your connection.")
            return ConnectionResult.network_not_ready("Network is unavailable")
        if network_state.status is NetworkStatus.ERROR:
            status(f"Network check failed: {network_state.message}")
            return ConnectionResult.network_not_ready(network_state.message)
        if network_state.status is NetworkStatus.CONNECTING:
            status("Network connecting, waiting...")
        else:
            status("Network ready. Connecting...")

        last_error = ""
        retry_delay = settings.initial_delay
        max_attempts = settings.max_attempts

        for attempt in range(1, max_attempts + 1):
            status(f"Connecting... (attempt {attempt}/{max_attempts})")
            logger.debug("Connection attempt %d/%d to %s:%d", attempt, max_attempts, host, port)

            try:
                outcome = await self._validator.validate_connection(host, port)
            except Exception as e:
                logger.exception("Unexpected error validating %s:%d", host, port)
                outcome = ConnectionOutcome.network_error(f"Unexpected error: {e}")

            if outcome.is_success:
                status("Connected.")
                logger.info("Connected to %s:%d", host, port)
                return ConnectionResult.success()

            if outcome.kind is OutcomeKind.INVALID_CORE:
                logger.error("Invalid Roon Core at %s:%d: %s", host, port, outcome.message)
                status(f"Connection failed: {outcome.message}")
                return ConnectionResult.failed(outcome.message, can_retry=False)

            last_error = outcome.message
            logger.warning(
                "Attempt %d/%d to %s:%d failed (%s): %s",
                attempt,
                max_attempts,
                host,
                port,
                outcome.kind.value,
                last_error,
            )

            if attempt < max_attempts:
                reason = (
                    "Connection timed out" if outcome.kind is OutcomeKind.TIMEOUT else "Connection failed"
                )
                status(f"{reason}. Retrying in {int(retry_delay)}s...")
                await self._sleep(retry_delay)
                retry_delay = min(retry_delay * 2, settings.max_delay)

        status("Connection failed. Max retries reached.")
        logger.error("All %d attempts to %s:%d failed: %s", max_attempts, host, port, last_error)
        return ConnectionResult.failed(f"Connection failed: {last_error}", can_retry=True)

    def register_network_monitoring(self, on_change: NetworkChangeHandler) -> None:
        """Subscribe to network state changes (replaces any previous one)."""
        self._detector.subscribe(on_change)

    def unregister_network_monitoring(self) -> None:
        """Cancel the network state subscription."""
        self._detector.unsubscribe()
