"""Configuration manager using QSettings for persistent storage."""

import logging
from dataclasses import dataclass

from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)

# Last connection
_KEY_LAST_HOST = "connection/last_host"
_KEY_LAST_PORT = "connection/last_port"
_KEY_LAST_CONNECTION_TIME = "connection/last_connection_time"
_KEY_AUTO_RECONNECT = "connection/auto_reconnect"

# Connection tuning
_KEY_MAX_ATTEMPTS = "connection/max_attempts"
_KEY_INITIAL_DELAY = "connection/initial_delay"
_KEY_MAX_DELAY = "connection/max_delay"
_KEY_NETWORK_TIMEOUT = "connection/network_timeout"
_KEY_POLL_INTERVAL = "network/poll_interval"
_KEY_PROBE_HOST = "network/probe_host"
_KEY_PROBE_PORT = "network/probe_port"
_KEY_PROBE_TIMEOUT = "network/probe_timeout"
_KEY_DEFAULT_PORT = "connection/default_port"

# Roon Core websocket port
DEFAULT_CORE_PORT = 9330
MAX_PORT = 65535


@dataclass(frozen=True, slots=True)
class ConnectionSettings:
    """Tuning for network gating and connection retries.

    Attributes:
        max_attempts: Handshake attempts per connect.
        initial_delay: First backoff delay in seconds.
        max_delay: Backoff cap in seconds.
        network_timeout: Overall network readiness timeout in seconds.
        poll_interval: Seconds between readiness polls.
        probe_host: Host of the reachability probe.
        probe_port: Port of the reachability probe.
        probe_timeout: Timeout of one probe connect in seconds.
        default_port: Port used when a connect does not name one.
    """

    max_attempts: int = 5
    initial_delay: float = 1.0
    max_delay: float = 15.0
    network_timeout: float = 30.0
    poll_interval: float = 1.0
    probe_host: str = "8.8.8.8"
    probe_port: int = 53
    probe_timeout: float = 3.0
    default_port: int = DEFAULT_CORE_PORT


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    Also serves as the string key-value store behind ``ZoneConfigStore``.

    QSettings stores config in platform-specific locations:
    - Windows: HKEY_CURRENT_USER\\Software\\RoonCtrl\\RoonCtrl
    - macOS: ~/Library/Preferences/com.RoonCtrl.RoonCtrl.plist
    - Linux: ~/.config/RoonCtrl/RoonCtrl.conf

    Example:
        config = ConfigManager()
        config.record_successful_connection("192.168.1.20", 9330)
        settings = config.get_connection_settings()
    """

    def __init__(self, organization: str = "RoonCtrl", application: str = "RoonCtrl") -> None:
        """Initialize the config manager.

        Args:
            organization: Organization name for QSettings.
            application: Application name for QSettings.
        """
        self._settings = QSettings(organization, application)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    # -- Key-value store -------------------------------------------------------

    def get_string(self, key: str) -> str | None:
        """Return a stored string, or None if the key is absent."""
        if not self._settings.contains(key):
            return None
        value = self._settings.value(key, None, str)
        return str(value) if value is not None else None

    def set_string(self, key: str, value: str) -> None:
        """Store a string value."""
        self._settings.setValue(key, value)

    def remove(self, key: str) -> None:
        """Delete a key."""
        self._settings.remove(key)

    def contains(self, key: str) -> bool:
        """Return True if the key is present."""
        return self._settings.contains(key)

    # -- Last connection -------------------------------------------------------

    def get_last_host(self) -> str | None:
        """Return the host of the last successful connection."""
        value = self._settings.value(_KEY_LAST_HOST, "", str)
        return str(value) if value else None

    def get_last_port(self) -> int:
        """Return the port of the last successful connection (0 if unknown)."""
        value = self._settings.value(_KEY_LAST_PORT, 0, int)
        return int(value)  # type: ignore[arg-type]

    def get_last_connection_time(self) -> int:
        """Return epoch ms of the last successful connection (0 if never)."""
        # Stored as a string: epoch milliseconds overflow a 32-bit QVariant int
        raw = self._settings.value(_KEY_LAST_CONNECTION_TIME, "0", str)
        try:
            return int(str(raw))
        except ValueError:
            logger.warning("Ignoring invalid last connection time: %r", raw)
            return 0

    def record_successful_connection(self, host: str, port: int, when_ms: int) -> None:
        """Remember a successful connection for auto-reconnect.

        Args:
            host: Core host.
            port: Core port.
            when_ms: Epoch milliseconds of the connection.
        """
        self._settings.setValue(_KEY_LAST_HOST, host)
        self._settings.setValue(_KEY_LAST_PORT, port)
        self._settings.setValue(_KEY_LAST_CONNECTION_TIME, str(when_ms))

    def get_auto_reconnect_enabled(self) -> bool:
        """Return whether auto-reconnect on startup is enabled (default True)."""
        return bool(self._settings.value(_KEY_AUTO_RECONNECT, True, bool))

    def set_auto_reconnect_enabled(self, enabled: bool) -> None:
        """Enable or disable auto-reconnect on startup."""
        self._settings.setValue(_KEY_AUTO_RECONNECT, enabled)

    # -- Connection tuning -----------------------------------------------------

    def _float_value(self, key: str, default: float, low: float, high: float) -> float:
        value = self._settings.value(key, default, float)
        return _clamp(float(value), low, high)  # type: ignore[arg-type]

    def _int_value(self, key: str, default: int, low: int, high: int) -> int:
        value = self._settings.value(key, default, int)
        return int(_clamp(int(value), low, high))  # type: ignore[arg-type]

    def get_connection_settings(self) -> ConnectionSettings:
        """Return connection tuning with out-of-range values clamped.

        Returns:
            ConnectionSettings built from stored values and defaults.
        """
        d = ConnectionSettings()
        initial_delay = self._float_value(_KEY_INITIAL_DELAY, d.initial_delay, 0.1, 60.0)
        probe_host = self._settings.value(_KEY_PROBE_HOST, d.probe_host, str)

        return ConnectionSettings(
            max_attempts=self._int_value(_KEY_MAX_ATTEMPTS, d.max_attempts, 1, 20),
            initial_delay=initial_delay,
            # The cap never drops below the first delay
            max_delay=self._float_value(_KEY_MAX_DELAY, d.max_delay, initial_delay, 300.0),
            network_timeout=self._float_value(_KEY_NETWORK_TIMEOUT, d.network_timeout, 1.0, 300.0),
            poll_interval=self._float_value(_KEY_POLL_INTERVAL, d.poll_interval, 0.1, 30.0),
            probe_host=str(probe_host) if probe_host else d.probe_host,
            probe_port=self._int_value(_KEY_PROBE_PORT, d.probe_port, 1, MAX_PORT),
            probe_timeout=self._float_value(_KEY_PROBE_TIMEOUT, d.probe_timeout, 0.5, 30.0),
            default_port=self._int_value(_KEY_DEFAULT_PORT, d.default_port, 1, MAX_PORT),
        )

    def save_connection_settings(self, settings: ConnectionSettings) -> None:
        """Persist connection tuning.

        Args:
            settings: Values to store.
        """
        s = self._settings
        s.setValue(_KEY_MAX_ATTEMPTS, settings.max_attempts)
        s.setValue(_KEY_INITIAL_DELAY, settings.initial_delay)
        s.setValue(_KEY_MAX_DELAY, settings.max_delay)
        s.setValue(_KEY_NETWORK_TIMEOUT, settings.network_timeout)
        s.setValue(_KEY_POLL_INTERVAL, settings.poll_interval)
        s.setValue(_KEY_PROBE_HOST, settings.probe_host)
        s.setValue(_KEY_PROBE_PORT, settings.probe_port)
        s.setValue(_KEY_PROBE_TIMEOUT, settings.probe_timeout)
        s.setValue(_KEY_DEFAULT_PORT, settings.default_port)

    # -- General settings ------------------------------------------------------

    def clear(self) -> None:
        """Clear all settings (useful for testing or reset)."""
        self._settings.clear()

    def sync(self) -> None:
        """Force settings to be written to disk."""
        self._settings.sync()
