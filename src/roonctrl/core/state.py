"""Live zone state with Qt signals.

Holds the zone map reported by the Core and keeps the selected zone in
line with the configured one. UI code connects to the signals; the
settings reconciler reads ``zones`` and reports explicit selections
through ``apply_configured_zone``.
"""

import logging
from collections.abc import Callable, Mapping

from PySide6.QtCore import QObject, Signal

from roonctrl.core.zone_selection import ZoneSelectionDecision, ZoneSelectionUseCase
from roonctrl.core.zone_store import ZoneConfigStore
from roonctrl.models.zone import Zone, ZoneRecord

logger = logging.getLogger(__name__)


class ZoneState(QObject):
    """Zone cache emitting Qt signals on changes.

    Example:
        state = ZoneState(zone_store, get_host_input=lambda: host)
        state.zone_selected.connect(lambda zone_id: print(zone_id))
        state.update_zones(zones_from_core)
    """

    zones_changed = Signal(object)  # dict[str, ZoneRecord]
    zone_selected = Signal(object)  # str | None
    status_message = Signal(str)

    def __init__(
        self,
        zone_store: ZoneConfigStore,
        get_host_input: Callable[[], str],
        selection: ZoneSelectionUseCase | None = None,
    ) -> None:
        """Initialize with no zones.

        Args:
            zone_store: Persistence for the configured zone.
            get_host_input: Returns the host string the user connected with.
            selection: Zone selection rules.
        """
        super().__init__()
        self._zone_store = zone_store
        self._get_host_input = get_host_input
        self._selection = selection or ZoneSelectionUseCase()
        self._zones: dict[str, ZoneRecord] = {}
        self._current_zone_id: str | None = None

    @property
    def zones(self) -> dict[str, ZoneRecord]:
        """Return the live zone map."""
        return self._zones

    @property
    def current_zone_id(self) -> str | None:
        """Return the selected zone id."""
        return self._current_zone_id

    def get_zone(self, zone_id: str) -> Zone | None:
        """Return a parsed zone by id, or None."""
        data = self._zones.get(zone_id)
        return Zone.from_dict(zone_id, data) if data is not None else None

    def update_zones(self, zones: Mapping[str, ZoneRecord]) -> ZoneSelectionDecision:
        """Replace the zone map and reselect.

        Args:
            zones: Zones keyed by zone id, as reported by the Core.

        Returns:
            The selection decision that was applied.
        """
        changed = dict(zones) != self._zones
        self._zones = dict(zones)
        if changed:
            self.zones_changed.emit(self._zones)
        return self.reselect()

    def reselect(self) -> ZoneSelectionDecision:
        """Apply the selection rules to the current zone map."""
        stored = self._zone_store.load_zone_configuration(
            self._get_host_input().strip(),
            self._resolve_zone_id,
        )
        decision = self._selection.select_zone(self._zones, stored, self._current_zone_id)
        logger.debug("Zone selection: %s (%s)", decision.zone_id, decision.reason.value)

        if decision.persist and decision.zone_id is not None:
            self._zone_store.save_zone_configuration(decision.zone_id)
        if decision.status_message:
            logger.warning(decision.status_message)
            self.status_message.emit(decision.status_message)

        self._set_current(decision.zone_id)
        return decision

    def apply_configured_zone(self, zone_id: str | None) -> None:
        """Select a zone chosen in the settings dialog."""
        logger.info("Configured zone changed: %s", zone_id)
        self._set_current(zone_id)

    def clear(self) -> None:
        """Forget all zones (e.g. on disconnect)."""
        self._zones = {}
        self.zones_changed.emit(self._zones)
        self._set_current(None)

    def _set_current(self, zone_id: str | None) -> None:
        if zone_id != self._current_zone_id:
            self._current_zone_id = zone_id
            self.zone_selected.emit(zone_id)

    def _resolve_zone_id(self, output_id: str) -> str | None:
        return ZoneConfigStore.find_zone_id_by_output_id(output_id, self._zones)
