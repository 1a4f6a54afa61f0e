"""Connection attempt outcomes and supervisor results."""

from dataclasses import dataclass
from enum import Enum


class OutcomeKind(Enum):
    """Classification of a single handshake attempt."""

    SUCCESS = "success"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    INVALID_CORE = "invalid_core"


@dataclass(frozen=True, slots=True)
class ConnectionOutcome:
    """Result of one validator attempt.

    Attributes:
        kind: Outcome classification.
        message: Human-readable detail (empty on success).
    """

    kind: OutcomeKind
    message: str = ""

    @classmethod
    def success(cls) -> "ConnectionOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def network_error(cls, message: str) -> "ConnectionOutcome":
        return cls(OutcomeKind.NETWORK_ERROR, message)

    @classmethod
    def timeout(cls, message: str) -> "ConnectionOutcome":
        return cls(OutcomeKind.TIMEOUT, message)

    @classmethod
    def invalid_core(cls, message: str) -> "ConnectionOutcome":
        return cls(OutcomeKind.INVALID_CORE, message)

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def is_retryable(self) -> bool:
        """Return True for failures worth another attempt."""
        return self.kind in (OutcomeKind.NETWORK_ERROR, OutcomeKind.TIMEOUT)


class ResultKind(Enum):
    """Classification of a whole supervised connect."""

    SUCCESS = "success"
    FAILED = "failed"
    NETWORK_NOT_READY = "network_not_ready"


@dataclass(frozen=True, slots=True)
class ConnectionResult:
    """Final result of ``ConnectionSupervisor.connect``.

    Attributes:
        kind: Result classification.
        message: Error or readiness message (empty on success).
        can_retry: Whether offering a manual retry makes sense.
    """

    kind: ResultKind
    message: str = ""
    can_retry: bool = False

    @classmethod
    def success(cls) -> "ConnectionResult":
        return cls(ResultKind.SUCCESS)

    @classmethod
    def failed(cls, error: str, can_retry: bool = True) -> "ConnectionResult":
        return cls(ResultKind.FAILED, error, can_retry)

    @classmethod
    def network_not_ready(cls, message: str) -> "ConnectionResult":
        return cls(ResultKind.NETWORK_NOT_READY, message)

    @property
    def is_success(self) -> bool:
        """Return True if the connection was established."""
        return self.kind is ResultKind.SUCCESS
