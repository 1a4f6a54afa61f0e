"""QThread worker running the connection supervisor in a Qt application.

The supervisor is asyncio-based. This worker runs an event loop in a
background thread, guards connects so only one runs at a time, and
bridges results to the main thread via Qt signals.
"""

import asyncio
import logging
import threading

from PySide6.QtCore import QThread, Signal

from roonctrl.core.config import ConfigManager
from roonctrl.core.guard import InFlightGuard
from roonctrl.core.reconnect import now_ms
from roonctrl.core.supervisor import ConnectionSupervisor
from roonctrl.models.connection import ConnectionResult
from roonctrl.models.network import NetworkState

logger = logging.getLogger(__name__)


class ConnectionWorker(QThread):
    """Background thread worker for supervised Core connections.

    Example:
        worker = ConnectionWorker(supervisor, config)
        worker.status_changed.connect(print)
        worker.connection_finished.connect(on_result)
        worker.start()
        worker.wait_until_running()
        worker.request_connect("192.168.1.20", 9330)
    """

    status_changed = Signal(str)  # Human-readable progress
    connection_finished = Signal(object)  # ConnectionResult
    network_state_changed = Signal(object)  # NetworkState

    # Internal: delivered to the main thread, where the config lives
    _connected = Signal(str, int)

    def __init__(
        self,
        supervisor: ConnectionSupervisor,
        config: ConfigManager | None = None,
        monitor_network: bool = True,
    ) -> None:
        """Initialize the worker.

        Args:
            supervisor: Connection supervisor to run.
            config: Where successful connections are recorded.
            monitor_network: Subscribe to network changes while running.
        """
        super().__init__()
        self._supervisor = supervisor
        self._config = config
        self._monitor_network = monitor_network
        self._guard = InFlightGuard()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._running = threading.Event()
        self._connected.connect(self._record_connection)

    @property
    def is_connecting(self) -> bool:
        """Return True while a connect is in progress."""
        return self._guard.is_in_progress()

    def wait_until_running(self, timeout: float = 5.0) -> bool:
        """Block until the event loop accepts requests.

        Returns:
            True if the loop is running.
        """
        return self._running.wait(timeout)

    def request_connect(self, host: str, port: int | None = None) -> bool:
        """Start a supervised connect.

        Thread-safe call from main thread.

        Args:
            host: Core hostname or IP.
            port: Core port (default from settings).

        Returns:
            False if the loop is not running or a connect is already in progress.
        """
        loop = self._loop
        if loop is None or not loop.is_running():
            logger.warning("Cannot connect: worker loop is not running")
            return False
        if not self._guard.try_start():
            logger.info("Connect to %s ignored: another connect is in progress", host)
            return False
        coro = self._connect(host, port)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError:
            coro.close()
            self._guard.finish()
            logger.warning("Cannot connect: worker loop closed")
            return False
        # Released here too in case the loop stops before _connect runs
        future.add_done_callback(lambda _future: self._guard.finish())
        return True

    def stop(self) -> None:
        """Signal the worker to stop (called from main thread)."""
        loop = self._loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(loop.stop)

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop

        try:
            if self._monitor_network:
                loop.call_soon(self._supervisor.register_network_monitoring, self._on_network_change)
            loop.call_soon(self._running.set)
            loop.run_forever()
        finally:
            self._running.clear()
            self._supervisor.unregister_network_monitoring()
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            self._loop = None
            self._guard.finish()

    async def _connect(self, host: str, port: int | None) -> None:
        port = self._supervisor.settings.default_port if port is None else port
        try:
            result = await self._supervisor.connect(host, port, on_status=self.status_changed.emit)
        except Exception as e:
            logger.exception("Unexpected error while connecting to %s:%d", host, port)
            result = ConnectionResult.failed(f"Unexpected error: {e}", can_retry=True)
        finally:
            self._guard.finish()

        if result.is_success:
            self._connected.emit(host, port)
        self.connection_finished.emit(result)

    def _record_connection(self, host: str, port: int) -> None:
        if self._config is not None:
            self._config.record_successful_connection(host, port, now_ms())

    def _on_network_change(self, state: NetworkState) -> None:
        logger.debug("Network state changed: %s", state)
        self.network_state_changed.emit(state)
