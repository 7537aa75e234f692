"""
Sync Jobs
Tagged job payloads carried by the product sync queue.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ..errors import JobPayloadError


class JobKind(str, Enum):
    INDEX = "index"
    DELETE = "delete"
    REINDEX = "reindex"


@dataclass(frozen=True)
class IndexJob:
    """Project the current catalog state of one product into the index."""

    product_id: str

    kind = JobKind.INDEX

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "product_id": self.product_id}


@dataclass(frozen=True)
class DeleteJob:
    """Remove one product document from the index."""

    product_id: str

    kind = JobKind.DELETE

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "product_id": self.product_id}


@dataclass(frozen=True)
class ReindexJob:
    """
    Rebuild the whole index.

    requested_at identifies the run: it names the versioned index and the
    resume checkpoint.
    """

    requested_at: str
    batch_size: Optional[int] = None

    kind = JobKind.REINDEX

    @classmethod
    def now(cls, batch_size: Optional[int] = None) -> "ReindexJob":
        return cls(requested_at=datetime.now(timezone.utc).isoformat(), batch_size=batch_size)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind.value, "requested_at": self.requested_at}
        if self.batch_size is not None:
            payload["batch_size"] = self.batch_size
        return payload


SyncJob = Union[IndexJob, DeleteJob, ReindexJob]


def _required_str(payload: Mapping[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise JobPayloadError(f"Sync job payload missing '{name}': {dict(payload)}")
    return value.strip()


def parse_job(payload: Any) -> SyncJob:
    """
    Parse a queue payload into a job.

    Raises:
        JobPayloadError: If the payload is not a mapping, has an unknown
            kind or is missing required fields
    """
    if not isinstance(payload, Mapping):
        raise JobPayloadError(f"Sync job payload must be an object, got {type(payload).__name__}")

    try:
        kind = JobKind(payload.get("kind"))
    except ValueError:
        raise JobPayloadError(f"Unknown sync job kind: {payload.get('kind')!r}")

    if kind is JobKind.INDEX:
        return IndexJob(product_id=_required_str(payload, "product_id"))
    if kind is JobKind.DELETE:
        return DeleteJob(product_id=_required_str(payload, "product_id"))

    batch_size = payload.get("batch_size")
    if batch_size is not None and (not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1):
        raise JobPayloadError(f"Invalid reindex batch_size: {batch_size!r}")
    return ReindexJob(requested_at=_required_str(payload, "requested_at"), batch_size=batch_size)


def describe(job: SyncJob) -> str:
    """Short label for logs."""
    if isinstance(job, ReindexJob):
        return f"reindex({job.requested_at})"
    return f"{job.kind.value}({job.product_id})"
