"""Data models for network readiness, connection outcomes, and zones."""

from roonctrl.models.connection import (
    ConnectionOutcome,
    ConnectionResult,
    OutcomeKind,
    ResultKind,
)
from roonctrl.models.network import NetworkState, NetworkStatus
from roonctrl.models.zone import Output, Zone, ZoneMap, ZoneRecord, zone_outputs

__all__ = [
    "ConnectionOutcome",
    "ConnectionResult",
    "NetworkState",
    "NetworkStatus",
    "OutcomeKind",
    "Output",
    "ResultKind",
    "Zone",
    "ZoneMap",
    "ZoneRecord",
    "zone_outputs",
]
