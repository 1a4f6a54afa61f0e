"""Zone and output models parsed from the Core's zone records."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, cast

# Zone records are kept as parsed JSON in the live cache
ZoneRecord = Mapping[str, Any]
ZoneMap = Mapping[str, ZoneRecord]


@dataclass(frozen=True, slots=True)
class Output:
    """An audio output belonging to a zone.

    Attributes:
        id: Output identifier (``output_id``).
        display_name: Human-readable name.
    """

    id: str
    display_name: str = ""


@dataclass(frozen=True, slots=True)
class Zone:
    """A Roon zone (group of outputs playing the same audio).

    Attributes:
        id: Zone identifier (``zone_id``).
        display_name: Human-readable zone name.
        state: Playback state tag, e.g. "playing", "paused", "stopped".
        has_now_playing: Whether the zone reports a now-playing item.
        outputs: Outputs in this zone, in server order.
    """

    id: str
    display_name: str = ""
    state: str = ""
    has_now_playing: bool = False
    outputs: list[Output] = field(default_factory=list)

    @property
    def is_playing(self) -> bool:
        """Return True if the zone is playing something."""
        return self.state == "playing" and self.has_now_playing

    @property
    def output_ids(self) -> list[str]:
        """Return the output ids of this zone."""
        return [o.id for o in self.outputs]

    @classmethod
    def from_dict(cls, zone_id: str, data: ZoneRecord) -> "Zone":
        """Build a Zone from a raw zone record."""
        outputs: list[Output] = []
        for raw in zone_outputs(data):
            outputs.append(
                Output(
                    id=str(raw.get("output_id", "")),
                    display_name=str(raw.get("display_name", "")),
                )
            )
        return cls(
            id=zone_id,
            display_name=str(data.get("display_name", "")),
            state=str(data.get("state", "")),
            has_now_playing=isinstance(data.get("now_playing"), Mapping),
            outputs=outputs,
        )


def zone_outputs(zone: ZoneRecord) -> list[Mapping[str, Any]]:
    """Return the output records of a raw zone, skipping malformed entries."""
    raw_outputs = zone.get("outputs")
    if not isinstance(raw_outputs, list):
        return []
    return [cast(Mapping[str, Any], o) for o in cast(list[Any], raw_outputs) if isinstance(o, Mapping)]
