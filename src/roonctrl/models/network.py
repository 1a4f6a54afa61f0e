"""Network readiness state model."""

from dataclasses import dataclass
from enum import Enum


class NetworkStatus(Enum):
    """Classified readiness of the device network."""

    NOT_AVAILABLE = "not_available"
    CONNECTING = "connecting"
    AVAILABLE = "available"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class NetworkState:
    """Snapshot of network readiness.

    Attributes:
        status: Classified readiness.
        message: Error description (only set for ERROR).
    """

    status: NetworkStatus
    message: str = ""

    @classmethod
    def not_available(cls) -> "NetworkState":
        """Return the no-network state."""
        return cls(NetworkStatus.NOT_AVAILABLE)

    @classmethod
    def connecting(cls) -> "NetworkState":
        """Return the network-present-but-not-usable state."""
        return cls(NetworkStatus.CONNECTING)

    @classmethod
    def available(cls) -> "NetworkState":
        """Return the ready state."""
        return cls(NetworkStatus.AVAILABLE)

    @classmethod
    def error(cls, message: str) -> "NetworkState":
        """Return an error state carrying a message."""
        return cls(NetworkStatus.ERROR, message)

    @property
    def is_available(self) -> bool:
        """Return True if the network is ready for use."""
        return self.status is NetworkStatus.AVAILABLE

    def __str__(self) -> str:
        if self.message:
            return f"{self.status.value}: {self.message}"
        return self.status.value
