from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

JOB_TYPE_BULK_UPLOAD = "bulk_upload"
JOB_TYPE_BULK_METADATA_UPDATE = "bulk_metadata_update"
JOB_TYPE_BULK_DELETE = "bulk_delete"

JOB_STATUS_PENDING = "pending"
JOB_STATUS_RUNNING = "running"
JOB_STATUS_COMPLETED = "completed"
JOB_STATUS_FAILED = "failed"

TERMINAL_STATUSES = frozenset({JOB_STATUS_COMPLETED, JOB_STATUS_FAILED})


@dataclass
class Job:
    """Progress of one bulk operation. Mutated only through JobRegistry."""

    id: str
    job_type: str
    total: int
    created_by: str
    created_at: datetime
    status: str = JOB_STATUS_PENDING
    completed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        """Shape returned to clients polling a job."""
        return {
            "id": self.id,
            "job_type": self.job_type,
            "status": self.status,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "errors": list(self.errors),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def receipt(self) -> dict[str, Any]:
        """Shape returned when a job is accepted."""
        return {"job_id": self.id, "total": self.total}
