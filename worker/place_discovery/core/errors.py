"""Error taxonomy shared by the pipeline, the stores and the HTTP layer."""

from typing import Any, Dict, Optional


class PlaceDiscoveryError(RuntimeError):
    """Base error carrying a machine-readable ``kind`` and an HTTP status."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str = "", *, details: Optional[Any] = None) -> None:
        super().__init__(message or self.kind)
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.kind}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(PlaceDiscoveryError):
    """Raised when a request is malformed or out of range."""

    kind = "invalid_input"
    status_code = 400


class MissingCredentialError(PlaceDiscoveryError):
    """Raised when the caller has no usable Google Places key."""

    kind = "missing_google_places_key"
    status_code = 400


class ProviderError(PlaceDiscoveryError):
    """Raised when the place-search provider fails or returns malformed data."""

    kind = "provider_error"
    status_code = 502


class PersistenceError(PlaceDiscoveryError):
    """Raised when the job store or the registry cannot be read or written."""

    kind = "persistence_error"
    status_code = 500


class JobNotFoundError(PlaceDiscoveryError):
    kind = "not_found"
    status_code = 404


class CodecError(PlaceDiscoveryError):
    kind = "invalid_snapshot"
    status_code = 500
