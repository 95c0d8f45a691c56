"""Error taxonomy shared by the registry client, the stores and the bookmark engine."""

from typing import Any, Dict, Optional


class TourmarkError(RuntimeError):
    """Base error carrying enough structure to build a user-facing message."""

    kind = "error"

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.code is not None:
            payload["code"] = self.code
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        return payload


class ConfigurationError(TourmarkError):
    """Raised when mandatory configuration is missing."""

    kind = "configuration"


class TransportError(TourmarkError):
    """Raised when the registry answers with a non-2xx HTTP status."""

    kind = "transport"


class DomainError(TourmarkError):
    """Raised when the registry envelope reports a non-success result code."""

    kind = "domain"


class RegistryFailure(TourmarkError):
    """Wraps any other failure raised while talking to the registry."""

    kind = "failure"


class InvalidInput(TourmarkError):
    kind = "invalid_input"


class UnresolvedIdentity(TourmarkError):
    """The identity token has no matching durable user row, or the lookup failed."""

    kind = "unresolved_identity"


class StoreConflict(TourmarkError):
    """Uniqueness violation reported by the durable store."""

    kind = "conflict"


class StoreError(TourmarkError):
    kind = "store"
