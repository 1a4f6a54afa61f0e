"""Persistence of the configured output and zone, with legacy key migration."""

import logging
from collections.abc import Callable
from typing import Protocol

from roonctrl.models.zone import ZoneMap, zone_outputs

logger = logging.getLogger(__name__)

OUTPUT_ID_KEY = "roon_output_id"
ZONE_CONFIG_KEY = "configured_zone"

# Legacy keys, read only during migration
_LEGACY_OUTPUT_KEY = "roon_zone_id_{host}"
_LEGACY_CORE_ID_KEY = "roon_core_id_{host}"
_LEGACY_ZONE_KEY = "configured_zone_{core_id}"

ZoneResolver = Callable[[str], str | None]


class KeyValueStore(Protocol):
    """Simple persistent string store."""

    def get_string(self, key: str) -> str | None: ...

    def set_string(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def contains(self, key: str) -> bool: ...


class ZoneConfigStore:
    """Stores the canonical output id and zone id.

    Older releases kept these under per-host and per-core keys. Reads
    fall back to those keys and move values into the canonical keys.

    Example:
        store = ZoneConfigStore(ConfigManager())
        zone_id = store.load_zone_configuration("192.168.1.20:9330", resolver)
    """

    def __init__(self, store: KeyValueStore) -> None:
        """Initialize the façade.

        Args:
            store: Backing key-value store.
        """
        self._store = store

    def save_zone_configuration(self, zone_id: str) -> None:
        """Persist the canonical zone id."""
        self._store.set_string(ZONE_CONFIG_KEY, zone_id)

    def save_output_id(self, output_id: str) -> None:
        """Persist the canonical output id."""
        self._store.set_string(OUTPUT_ID_KEY, output_id)

    def get_stored_zone_id(self) -> str | None:
        """Return the canonical zone id without migration."""
        return self._store.get_string(ZONE_CONFIG_KEY)

    def get_stored_output_id(self, host_input: str) -> str | None:
        """Return the output id, preferring the canonical key.

        Args:
            host_input: Host string the user entered (scopes legacy keys).

        Returns:
            The stored output id, or None.
        """
        output_id = self._store.get_string(OUTPUT_ID_KEY)
        if output_id is not None:
            return output_id
        if host_input.strip():
            return self._store.get_string(_LEGACY_OUTPUT_KEY.format(host=host_input))
        return None

    def load_zone_configuration(self, host_input: str, resolve_zone_id: ZoneResolver) -> str | None:
        """Return the configured zone id, migrating legacy state.

        Order: canonical zone key; legacy core-scoped zone key (moved to
        the canonical key and deleted); stored output id resolved through
        ``resolve_zone_id`` (persisted when it resolves).

        Args:
            host_input: Host string the user entered (scopes legacy keys).
            resolve_zone_id: Maps an output id to a live zone id.

        Returns:
            The zone id, or None if nothing resolves.
        """
        existing = self._store.get_string(ZONE_CONFIG_KEY)
        if existing is not None:
            return existing

        if host_input.strip():
            core_id = self._store.get_string(_LEGACY_CORE_ID_KEY.format(host=host_input))
            if core_id is not None:
                legacy_key = _LEGACY_ZONE_KEY.format(core_id=core_id)
                legacy_zone = self._store.get_string(legacy_key)
                if legacy_zone is not None:
                    self._store.set_string(ZONE_CONFIG_KEY, legacy_zone)
                    self._store.remove(legacy_key)
                    logger.info("Migrated zone configuration from %s", legacy_key)
                    return legacy_zone

        output_id = self.get_stored_output_id(host_input)
        if output_id is not None:
            zone_id = resolve_zone_id(output_id)
            if zone_id is not None:
                self.save_zone_configuration(zone_id)
                logger.info("Resolved stored output %s to zone %s", output_id, zone_id)
                return zone_id

        return None

    @staticmethod
    def find_zone_id_by_output_id(output_id: str, zones: ZoneMap) -> str | None:
        """Return the id of the zone containing ``output_id``.

        The first match wins; zone iteration order is not meaningful.
        """
        for zone_id, zone in zones.items():
            for output in zone_outputs(zone):
                if output.get("output_id") == output_id:
                    return zone_id
        return None
