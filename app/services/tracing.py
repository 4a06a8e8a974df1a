from __future__ import annotations

import time
from datetime import datetime, timezone

from app.models import OperationRecord


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def trace_start(conversation_id: str, kind: str) -> tuple[OperationRecord, float]:
    record = OperationRecord(
        conversation_id=conversation_id,
        kind=kind,
        status="queued",
        started_at=utc_now_iso(),
    )
    return record, time.perf_counter()


def trace_end(
    record: OperationRecord,
    t0: float,
    *,
    status: str = "completed",
    error: str | None = None,
) -> int:
    duration_ms = int((time.perf_counter() - t0) * 1000)
    record.status = status
    record.finished_at = utc_now_iso()
    record.duration_ms = duration_ms
    record.error = error
    return duration_ms
