"""Policy deciding whether to reconnect automatically to the last Core."""

import ipaddress
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

_HOSTNAME_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9_-]{0,61}[a-zA-Z0-9])?"
_HOST_RE = re.compile(rf"^{_HOSTNAME_LABEL}(?:\.{_HOSTNAME_LABEL})*$")

DEFAULT_VALID_WINDOW = timedelta(days=7)


class ReconnectReason(Enum):
    """Why a reconnect decision was made."""

    MISSING_HOST = "missing_host"
    INVALID_PORT = "invalid_port"
    INVALID_HOST = "invalid_host"
    STALE_CONNECTION = "stale_connection"
    RECENT_SUCCESS = "recent_success"


@dataclass(frozen=True, slots=True)
class ReconnectDecision:
    """Outcome of ``ReconnectPolicy.decide``.

    Attributes:
        should_reconnect: Whether an automatic reconnect should be tried.
        reason: The check that produced the decision.
    """

    should_reconnect: bool
    reason: ReconnectReason


def is_valid_host(host: str) -> bool:
    """Return True for an IP literal or an RFC 1123 hostname."""
    host = host.strip()
    if not host:
        return False
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    return len(host) <= 253 and _HOST_RE.match(host) is not None  # noqa: PLR2004


def now_ms() -> int:
    """Return the current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ReconnectPolicy:
    """Pure decision function for auto-reconnect.

    Checks run in a fixed order and the first failing one wins. A last
    connection exactly ``valid_window`` old counts as stale.

    Example:
        policy = ReconnectPolicy()
        decision = policy.decide("192.168.1.20", 9330, last_ms)
        if decision.should_reconnect:
            ...
    """

    def __init__(self, valid_window: timedelta = DEFAULT_VALID_WINDOW) -> None:
        """Initialize the policy.

        Args:
            valid_window: How long a successful connection stays fresh.
        """
        self._valid_window_ms = int(valid_window.total_seconds() * 1000)

    @property
    def valid_window_ms(self) -> int:
        """Return the freshness window in milliseconds."""
        return self._valid_window_ms

    def decide(
        self,
        last_host: str | None,
        last_port: int,
        last_connection_time: int,
        now: int | None = None,
        is_valid_host: Callable[[str], bool] = is_valid_host,
    ) -> ReconnectDecision:
        """Decide whether to reconnect.

        Args:
            last_host: Host of the last successful connection.
            last_port: Port of the last successful connection.
            last_connection_time: Epoch ms of the last successful connection.
            now: Current epoch ms (defaults to the wall clock).
            is_valid_host: Host validity predicate.

        Returns:
            The decision and the reason for it.
        """
        if last_host is None or not last_host.strip():
            return ReconnectDecision(False, ReconnectReason.MISSING_HOST)
        if last_port <= 0:
            return ReconnectDecision(False, ReconnectReason.INVALID_PORT)
        if not is_valid_host(last_host):
            return ReconnectDecision(False, ReconnectReason.INVALID_HOST)

        current = now_ms() if now is None else now
        if current - last_connection_time >= self._valid_window_ms:
            return ReconnectDecision(False, ReconnectReason.STALE_CONNECTION)

        return ReconnectDecision(True, ReconnectReason.RECENT_SUCCESS)
