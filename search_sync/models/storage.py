"""
Storage models for row reads and reconciliation results.

Handles row query parameters, index documents, and per-batch outcome tracking.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, computed_field


RowId = Union[str, int]
DocumentKey = Union[str, int]
IndexDocument = Dict[str, Any]


class OperationStatus(Enum):
    """Status of a reconciliation batch"""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class RowQuery(BaseModel):
    """Parameters for a row read"""
    model_config = ConfigDict(frozen=True)

    # None means all fields
    fields: Optional[List[str]] = None
    filter: Dict[str, Any] = Field(default_factory=dict)

    # Paging
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)


class ReconcileResult(BaseModel):
    """Outcome of reconciling one batch of ids against one index"""

    # Operation details
    operation: str  # update, delete
    collection: str
    index_name: str

    # Counters
    requested: int = 0
    upserted: int = 0
    deleted: int = 0
    failed: int = 0

    # Error handling
    errors: List[str] = Field(default_factory=list)

    # Timing
    started_at: datetime = Field(default_factory=datetime.now)
    processing_time_ms: float = 0.0

    @computed_field
    @property
    def status(self) -> OperationStatus:
        if self.failed == 0 and not self.errors:
            return OperationStatus.SUCCESS
        if self.upserted or self.deleted:
            return OperationStatus.PARTIAL
        return OperationStatus.FAILED

    def record_error(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)
