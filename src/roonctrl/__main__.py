"""Main entry point for the RoonCtrl connection client."""

import argparse
import logging
import sys

from PySide6.QtCore import QCoreApplication

from roonctrl.api.validator import RoonConnectionValidator
from roonctrl.core.config import ConfigManager
from roonctrl.core.network import NetworkReadinessDetector, QtConnectivityProvider
from roonctrl.core.reconnect import ReconnectPolicy
from roonctrl.core.supervisor import ConnectionSupervisor
from roonctrl.core.worker import ConnectionWorker
from roonctrl.models.connection import ConnectionResult
from roonctrl.models.network import NetworkState

logger = logging.getLogger(__name__)


def auto_reconnect_target(
    config: ConfigManager,
    policy: ReconnectPolicy,
    now: int | None = None,
) -> tuple[str, int] | None:
    """Return the last Core to reconnect to, if the policy allows it.

    Args:
        config: Where the last connection is stored.
        policy: Reconnect policy.
        now: Current epoch ms (defaults to the wall clock).

    Returns:
        Tuple of (host, port), or None.
    """
    if not config.get_auto_reconnect_enabled():
        logger.info("Auto-reconnect disabled")
        return None

    host = config.get_last_host()
    port = config.get_last_port()
    decision = policy.decide(host, port, config.get_last_connection_time(), now)
    if not decision.should_reconnect or host is None:
        logger.warning("Not reconnecting to last Core: %s", decision.reason.value)
        return None

    logger.info("Reconnecting to last Core %s:%d (%s)", host, port, decision.reason.value)
    return host, port


def build_parser() -> argparse.ArgumentParser:
    """Return the command line parser."""
    parser = argparse.ArgumentParser(
        prog="roonctrl",
        description="RoonCtrl: connect to a Roon Core",
    )
    parser.add_argument(
        "host", nargs="?", default=None, help="Core hostname or IP",
    )
    parser.add_argument(
        "port", nargs="?", type=int, default=None, help="Core port (default: 9330)",
    )
    parser.add_argument(
        "--host", dest="host_flag", default=None, help="Core hostname or IP",
    )
    parser.add_argument(
        "--port", dest="port_flag", type=int, default=None, help="Core port",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the RoonCtrl client.

    Returns:
        Exit code (0 when connected).
    """
    parsed = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    QCoreApplication.setApplicationName("RoonCtrl")
    QCoreApplication.setOrganizationName("RoonCtrl")
    app = QCoreApplication(sys.argv[:1])

    config = ConfigManager()
    settings = config.get_connection_settings()

    host: str | None = parsed.host_flag or parsed.host
    port: int | None = parsed.port_flag if parsed.port_flag is not None else parsed.port

    if not host:
        target = auto_reconnect_target(config, ReconnectPolicy())
        if target is None:
            logger.error("No Core address given. Usage: roonctrl <host> [port]")
            return 1
        host, port = target

    detector = NetworkReadinessDetector(
        QtConnectivityProvider(),
        poll_interval=settings.poll_interval,
        probe_host=settings.probe_host,
        probe_port=settings.probe_port,
        probe_timeout=settings.probe_timeout,
    )
    supervisor = ConnectionSupervisor(detector, RoonConnectionValidator(), settings)
    worker = ConnectionWorker(supervisor, config)

    exit_code = 1

    def on_status(message: str) -> None:
        logger.info(message)

    def on_network_state(state: object) -> None:
        if isinstance(state, NetworkState):
            logger.info("Network: %s", state)

    def on_finished(result: object) -> None:
        nonlocal exit_code
        if isinstance(result, ConnectionResult):
            if result.is_success:
                exit_code = 0
            else:
                hint = " (retry possible)" if result.can_retry else ""
                logger.error("%s%s", result.message, hint)
        app.quit()

    worker.status_changed.connect(on_status)
    worker.network_state_changed.connect(on_network_state)
    worker.connection_finished.connect(on_finished)

    worker.start()
    try:
        if not worker.wait_until_running() or not worker.request_connect(host, port):
            logger.error("Connection worker did not start")
            return 1
        app.exec()
    finally:
        worker.stop()
        worker.wait()
        config.sync()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
