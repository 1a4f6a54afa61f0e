"""Core business logic layer.

Connection resilience (network readiness gate, supervised retries,
reconnect policy) and zone reconciliation (selection rules, persisted
configuration), plus the Qt classes that host them.

Classes:
    ConfigManager: QSettings wrapper for configuration.
    ConnectionSupervisor: Network-gated connect with backoff.
    ConnectionWorker: QThread worker running the supervisor.
    InFlightGuard: Prevents overlapping runs of one operation.
    NetworkReadinessDetector: Classifies network readiness.
    ReconnectPolicy: Decides whether to auto-reconnect.
    ZoneConfigStore: Persists output and zone ids.
    ZoneSelectionUseCase: Picks the authoritative zone.
    ZoneState: Live zone cache with Qt signals.
"""

from roonctrl.core.config import ConfigManager, ConnectionSettings
from roonctrl.core.guard import InFlightGuard
from roonctrl.core.network import NetworkReadinessDetector, QtConnectivityProvider
from roonctrl.core.reconnect import ReconnectDecision, ReconnectPolicy, ReconnectReason
from roonctrl.core.state import ZoneState
from roonctrl.core.supervisor import ConnectionSupervisor
from roonctrl.core.worker import ConnectionWorker
from roonctrl.core.zone_selection import (
    ZoneSelectionDecision,
    ZoneSelectionReason,
    ZoneSelectionUseCase,
)
from roonctrl.core.zone_store import ZoneConfigStore

__all__ = [
    "ConfigManager",
    "ConnectionSettings",
    "ConnectionSupervisor",
    "ConnectionWorker",
    "InFlightGuard",
    "NetworkReadinessDetector",
    "QtConnectivityProvider",
    "ReconnectDecision",
    "ReconnectPolicy",
    "ReconnectReason",
    "ZoneConfigStore",
    "ZoneSelectionDecision",
    "ZoneSelectionReason",
    "ZoneSelectionUseCase",
    "ZoneState",
]
