"""Settings service exposed to the Roon Core's settings dialog.

The Core renders the settings UI and talks to this extension through two
requests, ``get_settings`` and ``save_settings``. Over time the payloads
have arrived in several envelopes (values at the top level, nested under
``settings`` or under ``body``) with different dry-run flag spellings,
and the selection itself under ``output``, ``zone`` or a bare
``output_id``. All of them are normalized into one values record where
``output`` and ``zone`` hold the same selection.
"""

import copy
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, cast

from roonctrl.core.zone_store import ZoneConfigStore
from roonctrl.models.zone import ZoneMap

logger = logging.getLogger(__name__)

REQUEST_GET_SETTINGS = "get_settings"
REQUEST_SAVE_SETTINGS = "save_settings"

KEY_SETTINGS = "settings"
KEY_VALUES = "values"
KEY_BODY = "body"
KEY_LAYOUT = "layout"
KEY_HAS_ERROR = "has_error"
KEY_OUTPUT = "output"
KEY_ZONE = "zone"
KEY_OUTPUT_ID = "output_id"
KEY_DISPLAY_NAME = "display_name"

# First match wins within a container
DRY_RUN_KEYS = ("is_dry_run", "dry_run", "isDryRun")

ZONE_SETTING = KEY_ZONE
ZONE_CONTROL_TITLE = "Output zone"
SAVED_ZONE_NAME = "Saved Zone"

SettingsValues = dict[str, Any]
Layout = dict[str, Any]
Container = Mapping[str, Any]
ZoneChangeHandler = Callable[[str | None], None]


def _as_mapping(value: Any) -> Container | None:
    return cast(Container, value) if isinstance(value, Mapping) else None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _non_blank(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def looks_like_settings_values(candidate: Container) -> bool:
    """Return True if ``candidate`` carries a selection field."""
    return KEY_OUTPUT in candidate or KEY_ZONE in candidate or KEY_OUTPUT_ID in candidate


# -- Envelope extraction ---------------------------------------------------------
#
# Containers are searched in order: the payload itself, then ``body``, then
# ``settings``. Within a container the values extractors below run in order.


def _top_level(payload: Container) -> Container | None:
    return payload


def _body(payload: Container) -> Container | None:
    return _as_mapping(payload.get(KEY_BODY))


def _settings(payload: Container) -> Container | None:
    return _as_mapping(payload.get(KEY_SETTINGS))


CONTAINER_LOCATORS: list[Callable[[Container], Container | None]] = [_top_level, _body, _settings]


def _values_in_settings(container: Container) -> Container | None:
    settings = _as_mapping(container.get(KEY_SETTINGS))
    return _as_mapping(settings.get(KEY_VALUES)) if settings is not None else None


def _settings_as_values(container: Container) -> Container | None:
    settings = _as_mapping(container.get(KEY_SETTINGS))
    if settings is not None and looks_like_settings_values(settings):
        return settings
    return None


def _values_key(container: Container) -> Container | None:
    return _as_mapping(container.get(KEY_VALUES))


def _container_as_values(container: Container) -> Container | None:
    return container if looks_like_settings_values(container) else None


VALUES_EXTRACTORS: list[Callable[[Container], Container | None]] = [
    _values_in_settings,
    _settings_as_values,
    _values_key,
    _container_as_values,
]


def extract_settings_values(payload: Container | None) -> SettingsValues:
    """Find the values record in any supported envelope and normalize it.

    Returns:
        Normalized values, or an empty dict if no envelope matched.
    """
    if payload is None:
        return {}
    for locate in CONTAINER_LOCATORS:
        container = locate(payload)
        if container is None:
            continue
        for extract in VALUES_EXTRACTORS:
            values = extract(container)
            if values is not None:
                return normalize_settings_values(values)
    return {}


def extract_dry_run(payload: Container | None) -> bool:
    """Find the dry-run flag in any supported envelope (default False)."""
    if payload is None:
        return False
    for locate in CONTAINER_LOCATORS:
        container = locate(payload)
        if container is None:
            continue
        for key in DRY_RUN_KEYS:
            if key in container:
                return _as_bool(container[key])
    return False


# -- Normalization ---------------------------------------------------------------


def normalize_settings_values(values: Container) -> SettingsValues:
    """Make ``output`` and ``zone`` hold the same selection.

    ``zone`` wins on conflict because it is the setting the layout control
    is bound to. A bare ``output_id`` synthesizes both. After this either
    both keys are absent or both are present and equal. Idempotent.

    Args:
        values: Raw values record.

    Returns:
        A new, normalized values record.
    """
    normalized: SettingsValues = copy.deepcopy(dict(values))
    zone = _as_mapping(normalized.get(KEY_ZONE))
    output = _as_mapping(normalized.get(KEY_OUTPUT))

    selection: Container | None
    if zone is not None and _non_blank(zone.get(KEY_OUTPUT_ID)):
        selection = zone
    elif output is not None and _non_blank(output.get(KEY_OUTPUT_ID)):
        selection = output
    else:
        selection = zone if zone is not None else output

    if selection is None:
        normalized.pop(KEY_ZONE, None)
        normalized.pop(KEY_OUTPUT, None)
        direct_output_id = _non_blank(normalized.get(KEY_OUTPUT_ID))
        if direct_output_id is not None:
            selection = {KEY_OUTPUT_ID: direct_output_id}

    if selection is not None:
        normalized[KEY_ZONE] = copy.deepcopy(dict(selection))
        normalized[KEY_OUTPUT] = copy.deepcopy(dict(selection))

    return normalized


def extract_output_id(values: Container) -> str | None:
    """Return the selected output id from a values record."""
    selection = _as_mapping(values.get(KEY_ZONE)) or _as_mapping(values.get(KEY_OUTPUT))
    if selection is not None:
        output_id = _non_blank(selection.get(KEY_OUTPUT_ID))
        if output_id is not None:
            return output_id
    return _non_blank(values.get(KEY_OUTPUT_ID))


def make_layout(settings: Container) -> Layout:
    """Build the layout object returned to the Core.

    The zone control is always present; the Core owns its option list.
    Values carry only ``zone``, the key the control reads.
    """
    normalized = normalize_settings_values(settings)
    values: SettingsValues = {}
    if KEY_ZONE in normalized:
        values[KEY_ZONE] = copy.deepcopy(normalized[KEY_ZONE])

    return {
        KEY_VALUES: values,
        KEY_LAYOUT: [
            {
                "type": "zone",
                "title": ZONE_CONTROL_TITLE,
                "setting": ZONE_SETTING,
            }
        ],
        KEY_HAS_ERROR: False,
    }


def error_response(message: str) -> dict[str, Any]:
    """Build the error envelope for a request that could not be handled."""
    return {
        "status": "Error",
        "error": message,
        KEY_SETTINGS: {
            KEY_VALUES: {},
            KEY_LAYOUT: [],
            KEY_HAS_ERROR: True,
        },
    }


class SettingsReconciler:
    """Settings service state and request handling.

    The in-memory settings are only replaced wholesale by a committed
    (non dry-run) save. Calls are serialized with a lock.

    Example:
        reconciler = SettingsReconciler(
            zone_store,
            get_host_input=lambda: "192.168.1.20:9330",
            get_available_zones=lambda: zone_state.zones,
            on_zone_config_changed=zone_state.apply_configured_zone,
        )
        response = reconciler.handle_request("get_settings", None)
    """

    def __init__(
        self,
        zone_store: ZoneConfigStore,
        get_host_input: Callable[[], str],
        get_available_zones: Callable[[], ZoneMap],
        on_zone_config_changed: ZoneChangeHandler,
    ) -> None:
        """Initialize and seed settings from persisted state.

        Args:
            zone_store: Persistence for output and zone ids.
            get_host_input: Returns the host string the user connected with.
            get_available_zones: Returns the live zone map.
            on_zone_config_changed: Called with the newly configured zone id.
        """
        self._zone_store = zone_store
        self._get_host_input = get_host_input
        self._get_available_zones = get_available_zones
        self._on_zone_config_changed = on_zone_config_changed
        self._lock = threading.RLock()
        self._current_settings: SettingsValues = {}
        self._load_saved_settings()

    @property
    def current_settings(self) -> SettingsValues:
        """Return a copy of the committed settings."""
        with self._lock:
            return copy.deepcopy(self._current_settings)

    @staticmethod
    def get_service_info() -> dict[str, bool]:
        """Return the requests this service answers."""
        return {REQUEST_GET_SETTINGS: True, REQUEST_SAVE_SETTINGS: True}

    def get_settings(self) -> Layout:
        """Handle ``get_settings``."""
        with self._lock:
            layout = make_layout(self._current_settings)
        logger.debug("get_settings -> %s", layout)
        return layout

    def save_settings(self, values: Container, is_dry_run: bool) -> Layout:
        """Handle ``save_settings``.

        The layout is always computed and returned. Only a committed save
        replaces the settings, persists them and notifies the zone change.

        Args:
            values: Values record (any supported shape of selection).
            is_dry_run: If True, validate only.

        Returns:
            The layout for the (would-be) saved values.
        """
        normalized = normalize_settings_values(values)
        logger.debug("save_settings dry_run=%s values=%s", is_dry_run, normalized)
        layout = make_layout(normalized)

        if is_dry_run:
            return layout

        with self._lock:
            self._current_settings = copy.deepcopy(normalized)
            self._persist_settings(normalized)

        output_id = extract_output_id(normalized)
        if output_id is None:
            logger.warning("save_settings committed without output_id: %s", normalized)
            return layout

        zone_id = self._find_zone_id(output_id)
        if zone_id is None:
            logger.warning("Output selected but zone not available yet: %s", output_id)
        else:
            logger.info("Zone selected: %s (from output %s)", zone_id, output_id)
            self._on_zone_config_changed(zone_id)
        return layout

    def handle_request(self, request_kind: str, payload: Any) -> dict[str, Any]:
        """Dispatch a settings request, never raising.

        Args:
            request_kind: ``get_settings`` or ``save_settings``.
            payload: Request payload in any supported envelope.

        Returns:
            A layout, or the error envelope.
        """
        try:
            if request_kind == REQUEST_GET_SETTINGS:
                return self.get_settings()
            if request_kind == REQUEST_SAVE_SETTINGS:
                if payload is not None and not isinstance(payload, Mapping):
                    logger.warning("Malformed save_settings payload: %r", payload)
                    return error_response("Malformed settings payload")
                container = _as_mapping(payload)
                return self.save_settings(
                    extract_settings_values(container),
                    extract_dry_run(container),
                )
            logger.warning("Unknown settings request: %s", request_kind)
            return error_response(f"Unknown request type: {request_kind}")
        except Exception as e:
            logger.exception("Error handling settings request %s", request_kind)
            return error_response(f"Settings processing error: {e}")

    def handle_message(self, message: Any) -> dict[str, Any]:
        """Handle a ``{"request": ..., "body": ...}`` message."""
        container = _as_mapping(message)
        if container is None:
            return error_response("Malformed settings message")
        request_kind = str(container.get("request", ""))
        return self.handle_request(request_kind, container.get(KEY_BODY))

    def handle_service_request(self, service_path: str, payload: Any) -> dict[str, Any]:
        """Handle a request addressed by settings service path.

        The request kind comes from the path suffix, else from the
        payload's ``request`` field, defaulting to ``get_settings``.
        """
        if service_path.endswith("/" + REQUEST_GET_SETTINGS):
            request_kind = REQUEST_GET_SETTINGS
        elif service_path.endswith("/" + REQUEST_SAVE_SETTINGS):
            request_kind = REQUEST_SAVE_SETTINGS
        else:
            container = _as_mapping(payload) or {}
            request_kind = str(container.get("request", REQUEST_GET_SETTINGS))

        if request_kind not in (REQUEST_GET_SETTINGS, REQUEST_SAVE_SETTINGS):
            logger.warning("Unsupported settings request %s (path=%s)", request_kind, service_path)
            return self.get_settings()
        return self.handle_request(request_kind, payload)

    def load_zone_configuration(self) -> str | None:
        """Return the configured zone id, migrating legacy keys."""
        zone_id = self._zone_store.load_zone_configuration(
            self._get_host_input().strip(),
            self._find_zone_id,
        )
        logger.debug("Loaded zone configuration: %s", zone_id)
        return zone_id

    def _find_zone_id(self, output_id: str) -> str | None:
        return ZoneConfigStore.find_zone_id_by_output_id(output_id, self._get_available_zones())

    def _persist_settings(self, values: Container) -> None:
        output_id = extract_output_id(values)
        if output_id is None:
            return
        zone_id = self._find_zone_id(output_id)
        if zone_id is not None:
            self._zone_store.save_zone_configuration(zone_id)
            logger.debug("Saved zone configuration: %s", zone_id)
        self._zone_store.save_output_id(output_id)
        logger.debug("Saved output setting: %s", output_id)

    def _load_saved_settings(self) -> None:
        saved_output = self._zone_store.get_stored_output_id(self._get_host_input().strip())
        if saved_output is None:
            return

        output = {KEY_OUTPUT_ID: saved_output, KEY_DISPLAY_NAME: SAVED_ZONE_NAME}
        self._current_settings = {KEY_OUTPUT: output, KEY_ZONE: dict(output)}
        # Rewrite under the canonical key so legacy host-scoped keys stop being read
        self._zone_store.save_output_id(saved_output)
        logger.debug("Loaded saved output: %s", saved_output)
