"""Shard run orchestration.

The ShardRunner ties the record store and the orchestrator together for one
shard process:

- Selection (pending rows owned by this shard, capped per shard)
- Output table initialization (every selected unit gets a row)
- Batched resolution (concurrency-limited, joined batches)
- Incremental persistence (every N batches and after the last one)
- Progress logging and a final summary
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.extraction.orchestrator import AddressOrchestrator
from src.shared.concurrency import BatchDispatcher
from src.shared.constants import BATCH, LOGGING
from src.shared.record_schema import ExtractionOutcome, WorkUnit
from src.shared.record_store import (
    initialize_shard_table,
    resolved_keys,
    select_work_units,
    shard_output_path,
    upsert_many,
)
from src.shared.run_config import RunConfig
from src.shared.structured_logging import OutcomeMetrics, Phase, StructuredLogger


__all__ = [
    'ShardResult',
    'ShardRunner',
]


@dataclass
class ShardResult:
    """Summary of a finished shard run."""

    output_path: str
    summary: Dict[str, Any] = field(default_factory=dict)
    failed_units: List[str] = field(default_factory=list)
    dropped: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.summary.get('errors'))


class ShardRunner:
    """Run one shard: select, resolve in batches, persist incrementally.

    Usage:
        runner = ShardRunner(config, orchestrator)
        units = runner.prepare()
        result = await runner.process(units)
    """

    def __init__(
        self,
        config: RunConfig,
        orchestrator: AddressOrchestrator,
        structured_logger: Optional[StructuredLogger] = None
    ):
        self.config = config
        self.orchestrator = orchestrator
        self.selection = config.selection
        self.label = f"shard {self.selection.shard_index + 1}/{self.selection.total_shards}"
        self.structured = structured_logger or StructuredLogger(
            shard=f"{self.selection.shard_index + 1}/{self.selection.total_shards}"
        )
        self.output_path = shard_output_path(
            config.master_table,
            self.selection.shard_index,
            self.selection.total_shards,
            config.output_dir,
        )
        self.metrics = OutcomeMetrics()
        self.dispatcher = BatchDispatcher(concurrency=config.concurrency, batch_delay=config.batch_delay)

        self._pending: List[ExtractionOutcome] = []
        self._dropped = 0
        self._processed = 0
        self._total = 0

        logging.info(f"[{self.label}] Output: {self.output_path}")
        logging.info(
            f"[{self.label}] Concurrency: {config.concurrency}, retries: {config.retries}, "
            f"profile: {config.profile} ({len(config.search_terms)} terms)"
        )

    def prepare(self) -> List[WorkUnit]:
        """Select this shard's units and seed their rows in the output table."""
        self.structured.log_phase_start(Phase.SELECTION.value, {'selection': self.selection.describe()})

        exclude = None
        if self.config.resume and self.output_path != self.config.master_table:
            exclude = resolved_keys(self.output_path)

        units = select_work_units(self.config.master_table, self.selection, exclude=exclude)
        if units:
            initialize_shard_table(self.output_path, units)

        self.structured.log_phase_end(Phase.SELECTION.value, unit_count=len(units))
        return units

    async def process(self, units: List[WorkUnit]) -> ShardResult:
        """Resolve all units and persist their outcomes.

        Args:
            units: Units from ``prepare``

        Returns:
            ShardResult with summary counts
        """
        self._total = len(units)
        if not units:
            logging.info(f"[{self.label}] No pending units to process")
            return ShardResult(output_path=self.output_path, summary=self.metrics.get_summary())

        self.structured.log_phase_start(Phase.EXTRACTION.value, {'units': len(units)})
        await self.dispatcher.run(units, self._resolve_unit, on_batch=self._on_batch)
        self.structured.log_phase_end(Phase.EXTRACTION.value, unit_count=self._processed)

        summary = self.metrics.get_summary()
        self._log_failed_units()
        logging.info(
            f"[{self.label}] Complete: {summary['valid']} valid, {summary['not_found']} not found, "
            f"{summary['errors']} errors ({summary['success_rate_pct']:.1f}% success)"
        )
        return ShardResult(
            output_path=self.output_path,
            summary=summary,
            failed_units=list(self.metrics.failed_units),
            dropped=self._dropped,
        )

    async def _resolve_unit(self, unit: WorkUnit) -> ExtractionOutcome:
        """Worker for one unit; never raises."""
        start = time.time()
        try:
            outcome = await self.orchestrator.resolve(unit)
        except Exception as e:  # pylint: disable=broad-except
            logging.warning(f"[{unit}] Unexpected error resolving unit: {e}")
            outcome = ExtractionOutcome.error(unit, f"Unexpected error: {e}")

        duration_ms = (time.time() - start) * 1000
        self.metrics.add_outcome(outcome, duration_ms)
        self.structured.log_unit_resolved(outcome, duration_ms)
        return outcome

    async def _on_batch(self, number: int, total: int, outcomes: List[ExtractionOutcome]) -> None:
        self._pending.extend(outcomes)
        self._processed += len(outcomes)
        self.structured.log_batch(number, total, len(outcomes))

        if number % BATCH.PROGRESS_INTERVAL == 0 or number == total:
            summary = self.metrics.get_summary()
            logging.info(
                f"[{self.label}] Progress: {self._processed}/{self._total} "
                f"({self._processed / self._total * 100:.1f}%) - "
                f"{summary['valid']} valid ({summary['success_rate_pct']:.0f}% success)"
            )

        if number % self.config.save_interval == 0 or number == total:
            await asyncio.to_thread(self.save)

    def save(self) -> None:
        """Persist outcomes collected since the last save.

        Called through ``asyncio.to_thread`` from the batch hook; the next
        batch only starts once it returns.
        """
        if not self._pending:
            return
        dropped = upsert_many(self.output_path, self._pending)
        self._dropped += len(dropped)
        self.structured.log_checkpoint(self.output_path, len(self._pending), len(dropped))
        logging.info(f"[{self.label}] Saved {len(self._pending) - len(dropped)} outcomes to {self.output_path}")
        self._pending = []

    def _log_failed_units(self) -> None:
        failed = self.metrics.failed_units
        if not failed:
            return
        preview = LOGGING.FAILED_PREVIEW_COUNT
        logging.warning(f"[{self.label}] {len(failed)} units ended in Error:")
        for unit in failed[:preview]:
            logging.warning(f"[{self.label}]   - {unit}")
        if len(failed) > preview:
            logging.warning(f"[{self.label}]   ... and {len(failed) - preview} more")
