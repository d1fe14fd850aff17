"""Structured logging and metrics for extraction runs.

This module provides a standardized logging interface that emits JSON-formatted
log events for parsing by monitoring systems and CI log scrapers.

Key features:
- JSON-structured log events for machine parsing
- Per-unit resolution events with status, attempts and duration
- Trace ID correlation across a shard run
- Phase-based event categorization (selection, extraction, persistence)
- Built-in outcome aggregation (success rate, error counts, durations)

Usage:
    from src.shared.structured_logging import StructuredLogger, OutcomeMetrics

    logger = StructuredLogger(shard='1/4')
    logger.log_phase_start(Phase.EXTRACTION.value)

    start = time.time()
    outcome = await orchestrator.resolve(unit)
    logger.log_unit_resolved(outcome, (time.time() - start) * 1000)

    metrics = OutcomeMetrics()
    metrics.add_outcome(outcome, duration_ms=1520.0)
    summary = metrics.get_summary()
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from src.shared.record_schema import ExtractionOutcome, Status

__all__ = [
    'EventType',
    'LogEvent',
    'OutcomeMetrics',
    'Phase',
    'StructuredLogger',
]


class EventType(str, Enum):
    """Standard event types for structured logging."""
    UNIT_RESOLVED = 'unit_resolved'
    BATCH_COMPLETE = 'batch_complete'
    ERROR = 'error'
    PHASE_START = 'phase_start'
    PHASE_END = 'phase_end'
    CHECKPOINT = 'checkpoint'
    RETRY = 'retry'


class Phase(str, Enum):
    """Shard run phases."""
    INITIALIZATION = 'initialization'
    SELECTION = 'selection'
    EXTRACTION = 'extraction'
    PERSISTENCE = 'persistence'
    CLEANUP = 'cleanup'


@dataclass
class LogEvent:
    """Standard log event structure.

    All timestamps are in ISO 8601 format (UTC).

    Attributes:
        timestamp: ISO 8601 timestamp (UTC)
        trace_id: Unique ID for this shard run (8-char UUID)
        shard: Shard label, e.g. "2/4"
        phase: Current run phase
        event: Event type
        unit: "zipcode/state" of the unit concerned (optional)
        status: Outcome status (optional)
        duration_ms: Duration in milliseconds (optional)
        retry_count: Attempt number or attempts used (optional)
        unit_count: Number of units concerned (optional)
        error: Error message (optional)
        metadata: Additional context data (optional)
    """
    timestamp: str
    trace_id: str
    shard: str
    phase: str
    event: str
    unit: Optional[str] = None
    status: Optional[str] = None
    duration_ms: Optional[float] = None
    retry_count: Optional[int] = None
    unit_count: Optional[int] = None
    error: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_json(self) -> str:
        """Serialize event to JSON string, omitting empty fields."""
        return json.dumps(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class StructuredLogger:
    """Emit structured JSON log events for a shard run.

    Attributes:
        shard: Shard label for this logger instance
        trace_id: Unique run identifier (8-char UUID)
        logger: Underlying Python logger instance
    """

    def __init__(
        self,
        shard: str,
        trace_id: Optional[str] = None,
        logger_name: Optional[str] = None
    ):
        self.shard = shard
        self.trace_id = trace_id or str(uuid.uuid4())[:8]
        self.logger = logging.getLogger(logger_name or 'structured')
        self._phase_start_times: Dict[str, float] = {}

    def _create_event(self, phase: str, event: str, **kwargs) -> LogEvent:
        return LogEvent(
            timestamp=datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            trace_id=self.trace_id,
            shard=self.shard,
            phase=phase,
            event=event,
            **kwargs
        )

    def log_unit_resolved(self, outcome: ExtractionOutcome, duration_ms: float) -> None:
        """Log the terminal outcome of a unit.

        Valid outcomes are logged at debug level, Not Found at info and Error
        at warning.
        """
        event = self._create_event(
            phase=Phase.EXTRACTION.value,
            event=EventType.UNIT_RESOLVED.value,
            unit=f"{outcome.zipcode}/{outcome.state}",
            status=outcome.status.value,
            duration_ms=round(duration_ms, 2),
            retry_count=outcome.attempts if outcome.attempts > 1 else None,
            error=outcome.error_detail,
            metadata={'search_term': outcome.search_term} if outcome.search_term else None,
        )

        if outcome.status is Status.VALID:
            self.logger.debug(event.to_json())
        elif outcome.status is Status.NOT_FOUND:
            self.logger.info(event.to_json())
        else:
            self.logger.warning(event.to_json())

    def log_batch(self, batch_number: int, total_batches: int, unit_count: int) -> None:
        event = self._create_event(
            phase=Phase.EXTRACTION.value,
            event=EventType.BATCH_COMPLETE.value,
            unit_count=unit_count,
            metadata={'batch': batch_number, 'total_batches': total_batches},
        )
        self.logger.debug(event.to_json())

    def log_retry(self, unit: str, attempt: int, max_attempts: int, reason: str) -> None:
        """Log an outer retry of a unit.

        Args:
            unit: "zipcode/state" of the unit
            attempt: Attempt that failed (1-indexed)
            max_attempts: Total attempts allowed
            reason: Fault message of the failed attempt
        """
        event = self._create_event(
            phase=Phase.EXTRACTION.value,
            event=EventType.RETRY.value,
            unit=unit,
            retry_count=attempt,
            metadata={'max_attempts': max_attempts, 'reason': reason},
        )
        self.logger.warning(event.to_json())

    def log_error(self, error_message: str, phase: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        event = self._create_event(
            phase=phase,
            event=EventType.ERROR.value,
            error=error_message,
            metadata=metadata,
        )
        self.logger.error(event.to_json())

    def log_phase_start(self, phase: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._phase_start_times[phase] = time.time()
        event = self._create_event(
            phase=phase,
            event=EventType.PHASE_START.value,
            metadata=metadata,
        )
        self.logger.info(event.to_json())

    def log_phase_end(
        self,
        phase: str,
        unit_count: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log completion of a run phase, with its duration if the start was logged."""
        if phase in self._phase_start_times:
            duration_ms = (time.time() - self._phase_start_times[phase]) * 1000
            if metadata is None:
                metadata = {}
            metadata['duration_ms'] = round(duration_ms, 2)

        event = self._create_event(
            phase=phase,
            event=EventType.PHASE_END.value,
            unit_count=unit_count,
            metadata=metadata,
        )
        self.logger.info(event.to_json())

    def log_checkpoint(self, path: str, unit_count: int, dropped: int = 0) -> None:
        event = self._create_event(
            phase=Phase.PERSISTENCE.value,
            event=EventType.CHECKPOINT.value,
            unit_count=unit_count,
            metadata={'path': path, 'dropped': dropped},
        )
        self.logger.info(event.to_json())


@dataclass
class OutcomeMetrics:
    """Aggregate outcome counts for the run summary.

    Attributes:
        total_units: Number of units resolved
        valid_count: Units resolved with a valid address
        not_found_count: Units with no valid address for any term
        error_count: Units that ended in Error after all attempts
        durations: Per-unit durations in milliseconds
        attempt_counts: Outer attempts used per unit
        failed_units: "zipcode/state" of units that ended in Error
    """

    total_units: int = 0
    valid_count: int = 0
    not_found_count: int = 0
    error_count: int = 0
    durations: List[float] = field(default_factory=list)
    attempt_counts: List[int] = field(default_factory=list)
    failed_units: List[str] = field(default_factory=list)

    def add_outcome(self, outcome: ExtractionOutcome, duration_ms: float = 0.0) -> None:
        self.total_units += 1
        self.durations.append(duration_ms)
        self.attempt_counts.append(outcome.attempts)

        if outcome.status is Status.VALID:
            self.valid_count += 1
        elif outcome.status is Status.NOT_FOUND:
            self.not_found_count += 1
        else:
            self.error_count += 1
            self.failed_units.append(f"{outcome.zipcode}/{outcome.state}")

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary.

        Returns:
            Dictionary with counts, success rate, average/p95 duration and
            retry statistics
        """
        if not self.total_units:
            return {
                'total_units': 0,
                'valid': 0,
                'not_found': 0,
                'errors': 0,
                'success_rate_pct': 0.0,
                'avg_duration_ms': 0.0,
                'p95_duration_ms': 0.0,
                'units_retried': 0,
            }

        sorted_durations = sorted(self.durations)
        p95_index = min(int(len(sorted_durations) * 0.95), len(sorted_durations) - 1)

        return {
            'total_units': self.total_units,
            'valid': self.valid_count,
            'not_found': self.not_found_count,
            'errors': self.error_count,
            'success_rate_pct': round(self.valid_count / self.total_units * 100, 2),
            'avg_duration_ms': round(sum(self.durations) / len(self.durations), 2),
            'p95_duration_ms': round(sorted_durations[p95_index], 2),
            'units_retried': sum(1 for attempts in self.attempt_counts if attempts > 1),
        }
