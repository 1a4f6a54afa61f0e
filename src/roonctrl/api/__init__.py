"""Server-facing surfaces: the settings service and the handshake validator."""

from roonctrl.api.settings import SettingsReconciler
from roonctrl.api.validator import ConnectionValidator, RoonConnectionValidator

__all__ = [
    "ConnectionValidator",
    "RoonConnectionValidator",
    "SettingsReconciler",
]
