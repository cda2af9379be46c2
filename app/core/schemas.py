from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SkippedSlot(BaseModel):
    """A slot a bulk operation could not bind, with the typed error code as reason."""

    period_id: UUID
    source_period_id: Optional[UUID] = None
    day: str
    period_name: str
    reason: str
    message: str


class BulkAssignmentResult(BaseModel, ABC):
    """
    Outcome of replaying many assignments. Partial success is a normal result, not an error.

    Subclasses name the success counter for their operation.
    """

    timetable_id: Optional[UUID] = None
    skipped: List[SkippedSlot] = Field(default_factory=list)

    @property
    @abstractmethod
    def committed_count(self) -> int: ...

    @abstractmethod
    def record_committed(self) -> None: ...


class CloneResult(BulkAssignmentResult):
    cloned_count: int = 0

    @property
    def committed_count(self) -> int:
        return self.cloned_count

    def record_committed(self) -> None:
        self.cloned_count += 1


class ApplyTemplateResult(BulkAssignmentResult):
    assigned_count: int = 0

    @property
    def committed_count(self) -> int:
        return self.assigned_count

    def record_committed(self) -> None:
        self.assigned_count += 1
