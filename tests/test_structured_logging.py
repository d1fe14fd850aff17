"""Tests for structured logging and outcome metrics."""

import json
import logging
from dataclasses import replace

import pytest

from src.shared.record_schema import ExtractionOutcome, WorkUnit
from src.shared.structured_logging import (
    EventType,
    LogEvent,
    OutcomeMetrics,
    Phase,
    StructuredLogger,
)


UNIT = WorkUnit(zipcode='10001', state='NY')


class TestLogEvent:
    """Tests for LogEvent dataclass."""

    def test_log_event_to_json(self):
        """LogEvent.to_json() should serialize to valid JSON."""
        event = LogEvent(
            timestamp='2026-02-04T12:00:00Z',
            trace_id='abc123',
            shard='1/4',
            phase='extraction',
            event='unit_resolved',
            unit='10001/NY',
            status='valid',
            duration_ms=150.5,
        )

        parsed = json.loads(event.to_json())

        assert parsed['shard'] == '1/4'
        assert parsed['unit'] == '10001/NY'
        assert parsed['status'] == 'valid'
        assert parsed['duration_ms'] == 150.5

    def test_log_event_to_json_filters_none_values(self):
        """LogEvent.to_json() should omit None values."""
        event = LogEvent(
            timestamp='2026-02-04T12:00:00Z',
            trace_id='abc123',
            shard='1/1',
            phase='selection',
            event='phase_start',
        )

        parsed = json.loads(event.to_json())

        assert 'timestamp' in parsed
        assert 'unit' not in parsed
        assert 'error' not in parsed
        assert 'metadata' not in parsed


class TestStructuredLogger:
    """Tests for StructuredLogger events."""

    def test_trace_id_generated(self):
        """A trace ID is generated when none is given."""
        assert len(StructuredLogger(shard='1/1').trace_id) == 8
        assert StructuredLogger(shard='1/1', trace_id='fixed').trace_id == 'fixed'

    def test_unit_resolved_levels(self, caplog):
        """Errors log at warning, Not Found at info, Valid at debug."""
        logger = StructuredLogger(shard='1/2', trace_id='t1', logger_name='test.structured')

        with caplog.at_level(logging.DEBUG, logger='test.structured'):
            logger.log_unit_resolved(ExtractionOutcome.valid(UNIT, '1 A St', 'New York', 'post office'), 12.3)
            logger.log_unit_resolved(ExtractionOutcome.not_found(UNIT), 20.0)
            logger.log_unit_resolved(ExtractionOutcome.error(UNIT, 'timeout'), 30.0)

        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.DEBUG, logging.INFO, logging.WARNING]

        valid, _, error = (json.loads(record.getMessage()) for record in caplog.records)
        assert valid['event'] == EventType.UNIT_RESOLVED.value
        assert valid['metadata'] == {'search_term': 'post office'}
        assert error['error'] == 'timeout'
        assert error['trace_id'] == 't1'

    def test_phase_end_includes_duration(self, caplog):
        """phase_end carries the duration since the matching phase_start."""
        logger = StructuredLogger(shard='1/1', logger_name='test.phases')

        with caplog.at_level(logging.INFO, logger='test.phases'):
            logger.log_phase_start(Phase.SELECTION.value)
            logger.log_phase_end(Phase.SELECTION.value, unit_count=5)

        end = json.loads(caplog.records[-1].getMessage())
        assert end['event'] == EventType.PHASE_END.value
        assert end['unit_count'] == 5
        assert 'duration_ms' in end['metadata']

    def test_retry_and_checkpoint_events(self, caplog):
        """Retry and checkpoint events carry their context."""
        logger = StructuredLogger(shard='1/1', logger_name='test.events')

        with caplog.at_level(logging.INFO, logger='test.events'):
            logger.log_retry('10001/NY', 1, 2, 'timeout')
            logger.log_checkpoint('data/out.csv', 10, dropped=1)

        retry, checkpoint = (json.loads(record.getMessage()) for record in caplog.records)
        assert retry['retry_count'] == 1
        assert retry['metadata'] == {'max_attempts': 2, 'reason': 'timeout'}
        assert checkpoint['phase'] == Phase.PERSISTENCE.value
        assert checkpoint['metadata'] == {'path': 'data/out.csv', 'dropped': 1}


class TestOutcomeMetrics:
    """Tests for OutcomeMetrics aggregation."""

    def test_empty_summary(self):
        """An empty aggregator reports zeros."""
        summary = OutcomeMetrics().get_summary()
        assert summary['total_units'] == 0
        assert summary['success_rate_pct'] == 0.0

    def test_summary_counts(self):
        """Counts, success rate and failed units are aggregated."""
        metrics = OutcomeMetrics()
        metrics.add_outcome(ExtractionOutcome.valid(UNIT, '1 A St', 'New York'), 100.0)
        metrics.add_outcome(ExtractionOutcome.not_found(WorkUnit('10002', 'NY')), 200.0)
        error = replace(ExtractionOutcome.error(WorkUnit('10003', 'NY'), 'timeout'), attempts=2)
        metrics.add_outcome(error, 300.0)

        summary = metrics.get_summary()

        assert summary['total_units'] == 3
        assert summary['valid'] == 1
        assert summary['not_found'] == 1
        assert summary['errors'] == 1
        assert summary['success_rate_pct'] == pytest.approx(33.33)
        assert summary['avg_duration_ms'] == 200.0
        assert summary['units_retried'] == 1
        assert metrics.failed_units == ['10003/NY']
