"""
In-memory job queue for QuickBooks work items.

The queue is the system of record for pending, in-flight and finished work.
Jobs move ``pending -> processing -> done | error`` and never backward, and at
most one job is ``processing`` at a time.
"""
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATUSES = (JobStatus.DONE, JobStatus.ERROR)


class JobType(str, Enum):
    """QuickBooks operations the bridge knows how to request."""

    CUSTOMER_ADD = "CustomerAdd"
    CUSTOMER_QUERY = "CustomerQuery"
    ITEM_ADD = "ItemAdd"
    ITEM_QUERY = "ItemQuery"
    ITEM_GROUP_QUERY = "ItemGroupQuery"
    INVOICE_ADD = "InvoiceAdd"
    INVOICE_QUERY = "InvoiceQuery"

    @classmethod
    def parse(cls, value) -> Optional["JobType"]:
        """Return the member for ``value`` or None when it is not recognised."""
        try:
            return cls(value)
        except ValueError:
            return None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Job:
    id: str
    type: str
    payload: Dict[str, Any]
    status: JobStatus = JobStatus.PENDING
    metadata: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)
    completed_at: Optional[str] = None
    error_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view used by the REST front door."""
        data = {
            "id": self.id,
            "type": self.type,
            "status": self.status.value,
            "payload": self.payload,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata
        if self.status == JobStatus.DONE:
            data["result"] = self.result
            data["completedAt"] = self.completed_at
        if self.status == JobStatus.ERROR:
            data["error"] = self.error
            data["errorAt"] = self.error_at
        return data


class JobQueue:
    """Ordered collection of jobs guarded by a single lock."""

    def __init__(self):
        self._jobs: List[Job] = []
        self._lock = threading.Lock()
        self._seq = itertools.count(1)

    def __len__(self):
        with self._lock:
            return len(self._jobs)

    def _new_id(self) -> str:
        # Millisecond timestamp keeps ids time-ordered, the sequence keeps them unique
        return f"{int(time.time() * 1000)}-{next(self._seq)}"

    def _find(self, job_id) -> Optional[Job]:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def enqueue(self, job_type, payload, metadata=None) -> Job:
        """Append a new pending job and return it."""
        if not isinstance(payload, Mapping):
            raise ValueError(f"Job payload must be an object, got {type(payload).__name__}")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise ValueError(f"Job metadata must be an object, got {type(metadata).__name__}")

        type_name = job_type.value if isinstance(job_type, JobType) else str(job_type)
        with self._lock:
            job = Job(
                id=self._new_id(),
                type=type_name,
                payload=dict(payload),
                metadata=dict(metadata) if metadata is not None else None,
            )
            self._jobs.append(job)
        logger.info(f"Job queued: {job.id} ({job.type})")
        return job

    def next_pending(self) -> Optional[Job]:
        """
        Claim the oldest pending job.

        Flips the job to ``processing`` and returns it. Returns None when
        nothing is pending, or when another job is still in flight.
        """
        with self._lock:
            in_flight = next((j for j in self._jobs if j.status == JobStatus.PROCESSING), None)
            if in_flight is not None:
                logger.warning(f"Job {in_flight.id} is still processing; not handing out another job")
                return None
            job = next((j for j in self._jobs if j.status == JobStatus.PENDING), None)
            if job is None:
                return None
            job.status = JobStatus.PROCESSING
            job.updated_at = _utc_now()
        logger.info(f"Job now processing: {job.id} ({job.type})")
        return job

    def mark_done(self, job_id, result=None):
        with self._lock:
            job = self._find(job_id)
            if job is None:
                logger.debug(f"mark_done: unknown job id {job_id}, ignoring")
                return
            if job.is_terminal:
                logger.warning(f"mark_done: job {job_id} already {job.status.value}, ignoring")
                return
            now = _utc_now()
            job.status = JobStatus.DONE
            job.result = result if result is not None else {}
            job.completed_at = now
            job.updated_at = now
        logger.info(f"Job completed: {job_id}")

    def mark_error(self, job_id, message):
        with self._lock:
            job = self._find(job_id)
            if job is None:
                logger.debug(f"mark_error: unknown job id {job_id}, ignoring")
                return
            if job.is_terminal:
                logger.warning(f"mark_error: job {job_id} already {job.status.value}, ignoring")
                return
            now = _utc_now()
            job.status = JobStatus.ERROR
            job.error = str(message)
            job.error_at = now
            job.updated_at = now
        logger.error(f"Job error: {job_id} - {message}")

    def abandon(self, job_id, message) -> Optional[Job]:
        """Fail a job left in ``processing`` by a dropped connector round."""
        with self._lock:
            job = self._find(job_id)
            if job is None or job.status != JobStatus.PROCESSING:
                return None
        self.mark_error(job_id, message)
        return job

    def has_pending(self) -> bool:
        with self._lock:
            return any(j.status == JobStatus.PENDING for j in self._jobs)

    def get(self, job_id) -> Optional[Job]:
        with self._lock:
            return self._find(job_id)

    def list_jobs(self, status=None) -> List[Job]:
        """Snapshot of jobs in insertion order, optionally filtered by status."""
        with self._lock:
            if status is None:
                return list(self._jobs)
            status = JobStatus(status)
            return [j for j in self._jobs if j.status == status]

    def counts(self) -> Dict[str, int]:
        with self._lock:
            counts = {s.value: 0 for s in JobStatus}
            for job in self._jobs:
                counts[job.status.value] += 1
            return counts

    def prune_finished(self) -> int:
        """Drop done and errored jobs; returns how many were removed."""
        with self._lock:
            kept = [j for j in self._jobs if not j.is_terminal]
            removed = len(self._jobs) - len(kept)
            self._jobs = kept
        if removed:
            logger.info(f"Pruned {removed} finished job(s) from the queue")
        return removed
