"""Core data models shared by the discovery pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_LIMIT = 50
DEFAULT_REGISTRY_STATUS = "not_contacted"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed forward transitions; terminal states have none.
TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass(slots=True)
class PlaceRecord:
    """Normalized snapshot of a business returned by the place-search provider."""

    name: Optional[str]
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    locality: Optional[str] = None
    opening_hours: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    source_ids: Dict[str, str] = field(default_factory=dict)
    sources: List[str] = field(default_factory=list)

    @property
    def is_keyable(self) -> bool:
        return bool(self.name) and bool(self.address) and self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self):
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class SearchParams:
    query: str
    lat: float
    lng: float
    radius_m: int
    limit: Optional[int] = None
    name: Optional[str] = None
    categories: Optional[List[str]] = None

    @property
    def effective_limit(self) -> int:
        return self.limit if self.limit is not None else DEFAULT_LIMIT

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchParams":
        return cls(
            query=data["query"],
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            radius_m=int(data["radius_m"]),
            limit=int(data["limit"]) if data.get("limit") is not None else None,
            name=data.get("name"),
            categories=data.get("categories"),
        )


@dataclass
class Job:
    id: str
    status: JobStatus
    params: SearchParams
    created_at: datetime
    name: Optional[str] = None
    progress: int = 0
    error: Optional[str] = None
    snapshot: Optional[str] = field(default=None, repr=False)

    def summary(self, include_params: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "progress": self.progress,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_params:
            data["params"] = self.params.to_dict()
        return data


@dataclass(frozen=True)
class RegistryRecord:
    """Row submitted to the customer registry on import."""

    name: str
    locality: Optional[str] = None
    category: Optional[str] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    status: str = DEFAULT_REGISTRY_STATUS
