"""
Result types for fan-out storage operations.

A BackendOutcome is the per-backend record of one fan-out call: either a
success carrying a payload, or a failure carrying a message. An
AggregateResult reduces the outcomes of one client-facing call; backend
name (not position) is the correlation key.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class BackendOutcome(Generic[T]):
    """Outcome of one operation on one backend."""
    backend: str
    success: bool
    value: Optional[T] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, backend: str, value: T, message: Optional[str] = None) -> "BackendOutcome[T]":
        return cls(backend=backend, success=True, value=value, message=message)

    @classmethod
    def failed(cls, backend: str, message: str) -> "BackendOutcome[T]":
        return cls(backend=backend, success=False, value=None, message=message)


@dataclass(frozen=True)
class AggregateResult(Generic[T]):
    """All backend outcomes for one client-facing call."""
    file_name: str
    prefix: str = ""
    outcomes: Tuple[BackendOutcome[T], ...] = ()
    elapsed_ms: int = 0

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failure_count(self) -> int:
        return self.total - self.success_count

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def fully_successful(self) -> bool:
        """True when every targeted backend succeeded."""
        return all(outcome.success for outcome in self.outcomes)

    @property
    def backends(self) -> List[str]:
        return [outcome.backend for outcome in self.outcomes]

    def successful_values(self) -> List[T]:
        return [outcome.value for outcome in self.outcomes if outcome.success]


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata of one object as reported by one backend."""
    url: str
    size: int
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


@dataclass(frozen=True)
class FileInfoResult:
    """
    Per-backend existence of one object.

    Outcomes whose value is None (object absent) or that failed both count
    as "does not exist" on that backend.
    """
    file_name: str
    outcomes: Tuple[BackendOutcome[Optional[ObjectInfo]], ...] = ()

    @staticmethod
    def _exists(outcome: BackendOutcome[Optional[ObjectInfo]]) -> bool:
        return outcome.success and outcome.value is not None

    @property
    def exists_in_any_service(self) -> bool:
        return any(self._exists(outcome) for outcome in self.outcomes)

    @property
    def exists_in_all_services(self) -> bool:
        return bool(self.outcomes) and all(self._exists(outcome) for outcome in self.outcomes)

    @property
    def representative(self) -> Optional[ObjectInfo]:
        """Metadata from the first backend that has the object."""
        for outcome in self.outcomes:
            if self._exists(outcome):
                return outcome.value
        return None


@dataclass(frozen=True)
class FileItem:
    """One entry of a listing page."""
    file_name: str
    size: int
    last_modified: Optional[datetime]
    available_urls: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FileListResult:
    """One page of a single-backend listing."""
    files: List[FileItem]
    has_more: bool = False
    next_token: Optional[str] = None

    @property
    def total_count(self) -> int:
        return len(self.files)
