"""Decides which zone is authoritative given the live zone list."""

from dataclasses import dataclass
from enum import Enum

from roonctrl.models.zone import Zone, ZoneMap

STALE_ZONE_MESSAGE = "Configured zone is unavailable, falling back to an available zone"


class ZoneSelectionReason(Enum):
    """Why a zone was (or was not) selected."""

    NO_ZONES = "no zones available"
    STORED = "stored configuration"
    STALE_FALLBACK = "stale configuration fallback"
    CURRENT = "current selection"
    AUTOMATIC = "automatic selection"


@dataclass(frozen=True, slots=True)
class ZoneSelectionDecision:
    """Outcome of ``ZoneSelectionUseCase.select_zone``.

    Attributes:
        zone_id: Selected zone, or None.
        reason: Which rule produced the selection.
        persist: Whether the selection should be saved as configured zone.
        status_message: User-facing warning for fallback cases.
    """

    zone_id: str | None
    reason: ZoneSelectionReason
    persist: bool
    status_message: str | None = None


class ZoneSelectionUseCase:
    """Pure zone selection rules, evaluated in order.

    Only the automatic choice is marked for persistence; a stale stored
    zone is bridged with a fallback but left in place so it wins again
    once the zone comes back.
    """

    def select_zone(
        self,
        available_zones: ZoneMap,
        stored_zone_id: str | None,
        current_zone_id: str | None,
    ) -> ZoneSelectionDecision:
        """Select the authoritative zone.

        Args:
            available_zones: Live zones keyed by zone id.
            stored_zone_id: Persisted configured zone.
            current_zone_id: Zone currently in use.

        Returns:
            The selection decision.
        """
        if not available_zones:
            return ZoneSelectionDecision(None, ZoneSelectionReason.NO_ZONES, persist=False)

        if stored_zone_id is not None:
            if stored_zone_id in available_zones:
                return ZoneSelectionDecision(stored_zone_id, ZoneSelectionReason.STORED, persist=False)
            return ZoneSelectionDecision(
                auto_select_zone_id(available_zones),
                ZoneSelectionReason.STALE_FALLBACK,
                persist=False,
                status_message=STALE_ZONE_MESSAGE,
            )

        if current_zone_id is not None and current_zone_id in available_zones:
            return ZoneSelectionDecision(current_zone_id, ZoneSelectionReason.CURRENT, persist=False)

        return ZoneSelectionDecision(
            auto_select_zone_id(available_zones),
            ZoneSelectionReason.AUTOMATIC,
            persist=True,
        )


def auto_select_zone_id(available_zones: ZoneMap) -> str | None:
    """Pick a zone: playing with now-playing, then any now-playing, then first."""
    zones = [Zone.from_dict(zone_id, data) for zone_id, data in available_zones.items()]

    for zone in zones:
        if zone.is_playing:
            return zone.id
    for zone in zones:
        if zone.has_now_playing:
            return zone.id
    return zones[0].id if zones else None
