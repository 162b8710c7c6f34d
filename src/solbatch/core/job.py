"""
Transaction job and batch report models.

A TransactionJob tracks one transfer group from building to its terminal
state. A BatchReport is the read-only summary of every job of one run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from solbatch.core.transfer import TransferGroup
from solbatch.node.interface import Checkpoint


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Status of a transaction job."""
    PENDING = "pending"           # Waiting to be built
    BUILT = "built"               # Transaction built and signed
    SUBMITTED = "submitted"       # Sent to the network, awaiting confirmation
    SUCCEEDED = "succeeded"       # Confirmed at the requested commitment
    FAILED = "failed"             # Build, submission or confirmation failed


@dataclass
class TransactionJob:
    """
    One transfer group bound to a checkpoint.

    Built once and submitted once; there is no resubmission.

    Attributes:
        group: The transfer group this job sends
        checkpoint: Blockhash shared by every job of the batch
        status: Current processing status
        tx_id: Transaction signature once known
        error_message: Cause of failure
    """

    group: TransferGroup
    checkpoint: Checkpoint
    status: JobStatus = JobStatus.PENDING
    raw_transaction: Optional[bytes] = field(default=None, repr=False)
    tx_id: Optional[str] = None
    error_message: Optional[str] = None

    created_at: datetime = field(default_factory=_utcnow)
    submitted_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None

    @property
    def group_index(self) -> int:
        """Get the index of the group this job sends."""
        return self.group.index

    @property
    def is_settled(self) -> bool:
        """Check if the job reached a terminal state."""
        return self.status in (JobStatus.SUCCEEDED, JobStatus.FAILED)

    def mark_built(self, raw_transaction: bytes, tx_id: str) -> None:
        """Mark job as built with its serialized transaction."""
        self.status = JobStatus.BUILT
        self.raw_transaction = raw_transaction
        self.tx_id = tx_id

    def mark_submitted(self) -> None:
        """Mark job as submitted."""
        self.status = JobStatus.SUBMITTED
        self.submitted_at = _utcnow()

    def mark_succeeded(self, tx_id: str) -> None:
        """Mark job as confirmed."""
        self.status = JobStatus.SUCCEEDED
        self.tx_id = tx_id
        self.settled_at = _utcnow()

    def mark_failed(self, error: str) -> None:
        """Mark job as failed."""
        self.status = JobStatus.FAILED
        self.error_message = error
        self.settled_at = _utcnow()

    def __repr__(self) -> str:
        return f"TransactionJob(group={self.group_index}, status={self.status.value})"


@dataclass(frozen=True)
class FailedGroup:
    """A group whose transaction did not succeed."""

    group_index: int
    cause: str
    tx_id: Optional[str] = None


@dataclass(frozen=True)
class BatchReport:
    """
    Outcome of one batch run.

    Attributes:
        succeeded: Signatures of confirmed transactions, in group order
        failed: Failed groups with their cause, in group order
    """

    succeeded: Tuple[str, ...] = ()
    failed: Tuple[FailedGroup, ...] = ()

    @classmethod
    def from_jobs(cls, jobs: Iterable[TransactionJob]) -> "BatchReport":
        """
        Build a report from settled jobs.

        Raises:
            ValueError: If a job has not settled
        """
        succeeded: List[str] = []
        failed: List[FailedGroup] = []

        for job in sorted(jobs, key=lambda j: j.group_index):
            if job.status == JobStatus.SUCCEEDED:
                succeeded.append(job.tx_id)
            elif job.status == JobStatus.FAILED:
                failed.append(FailedGroup(job.group_index, job.error_message or "unknown error", job.tx_id))
            else:
                raise ValueError(f"Job for group {job.group_index} has not settled: {job.status.value}")

        return cls(succeeded=tuple(succeeded), failed=tuple(failed))

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "succeeded": list(self.succeeded),
            "failed": [
                {"group_index": f.group_index, "cause": f.cause, "tx_id": f.tx_id}
                for f in self.failed
            ],
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
        }
