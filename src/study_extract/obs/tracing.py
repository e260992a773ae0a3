"""Per-run extraction traces and aggregate metrics."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(slots=True)
class ExtractionTrace:
    trace_id: str
    timestamp_utc: str
    task: str
    source_name: str
    chunk_count: int
    generated_chunks: int
    fallback_chunks: int
    record_count: int
    coverage_percentage: float | None
    supplemented: bool
    dispatch_attempts: int
    endpoints: list[str] = field(default_factory=list)
    latency_ms: float = 0.0


class TraceStore:
    """Bounded in-memory log of extraction runs, oldest evicted first."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, ExtractionTrace] = {}
        self._max_records = max_records

    def create_record(
        self,
        *,
        task: str,
        source_name: str,
        chunk_count: int,
        generated_chunks: int,
        fallback_chunks: int,
        record_count: int,
        coverage_percentage: float | None,
        supplemented: bool,
        dispatch_attempts: int,
        endpoints: list[str],
        latency_ms: float,
    ) -> ExtractionTrace:
        record = ExtractionTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            task=task,
            source_name=source_name,
            chunk_count=chunk_count,
            generated_chunks=generated_chunks,
            fallback_chunks=fallback_chunks,
            record_count=record_count,
            coverage_percentage=coverage_percentage,
            supplemented=supplemented,
            dispatch_attempts=dispatch_attempts,
            endpoints=endpoints,
            latency_ms=latency_ms,
        )
        self._records[record.trace_id] = record
        while len(self._records) > self._max_records:
            del self._records[next(iter(self._records))]
        return record

    def __len__(self) -> int:
        return len(self._records)

    def get(self, trace_id: str) -> ExtractionTrace:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[ExtractionTrace]:
        if limit <= 0:
            return []
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Latency, fallback and coverage aggregates over the stored runs."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_runs": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "fallback_chunk_ratio": 0.0,
                "avg_coverage": 0.0,
                "supplemented_runs": 0,
                "total_records": 0,
                "total_dispatch_attempts": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        total_chunks = sum(record.chunk_count for record in records)
        fallback_chunks = sum(record.fallback_chunks for record in records)
        coverages = [
            record.coverage_percentage
            for record in records
            if record.coverage_percentage is not None
        ]

        return {
            "total_runs": total,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "fallback_chunk_ratio": fallback_chunks / total_chunks if total_chunks else 0.0,
            "avg_coverage": sum(coverages) / len(coverages) if coverages else 0.0,
            "supplemented_runs": sum(1 for record in records if record.supplemented),
            "total_records": sum(record.record_count for record in records),
            "total_dispatch_attempts": sum(record.dispatch_attempts for record in records),
        }


class Timer:
    """Simple context timer used by the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
