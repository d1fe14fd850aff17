"""Tests for the shard runner (selection, batched resolution, persistence)."""

import threading
from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from src.extraction.runner import ShardRunner
from src.shared.record_schema import ExtractionOutcome, WorkUnit
from src.shared.record_store import read_table, upsert_many
from src.shared.run_config import RunConfig, ShardSelection


MASTER = (
    'zipcode,state,address,city\n'
    '10001,NY,"",""\n'
    '10002,NY,"9 Elm St","New York"\n'
    '10003,NY,"",""\n'
    '10004,NY,"",""\n'
)


def make_config(master, output_dir, **selection):
    selection.setdefault('max_per_shard', None)
    return RunConfig(
        selection=ShardSelection(**selection),
        master_table=master,
        output_dir=output_dir,
        concurrency=2,
        batch_delay=0,
        save_interval=1,
    )


def make_orchestrator(resolve):
    orchestrator = Mock()
    orchestrator.resolve = AsyncMock(side_effect=resolve)
    return orchestrator


async def resolve_all_valid(unit):
    return ExtractionOutcome.valid(unit, f"{unit.zipcode[-1]} Main St", 'New York', 'post office')


class TestShardRunner:
    """Tests for ShardRunner.prepare() and process()."""

    @pytest.mark.asyncio
    async def test_single_shard_updates_master(self, write_table, tmp_path):
        """With one shard, outcomes are written back into the master table."""
        master = write_table(MASTER)
        runner = ShardRunner(make_config(master, str(tmp_path)), make_orchestrator(resolve_all_valid))

        units = runner.prepare()
        result = await runner.process(units)

        assert result.output_path == master
        assert [u.zipcode for u in units] == ['10001', '10003', '10004']
        assert read_table(master) == [
            ['10001', 'NY', '1 Main St', 'New York'],
            ['10002', 'NY', '9 Elm St', 'New York'],
            ['10003', 'NY', '3 Main St', 'New York'],
            ['10004', 'NY', '4 Main St', 'New York'],
        ]
        assert result.summary['valid'] == 3
        assert result.has_errors is False

    @pytest.mark.asyncio
    async def test_sharded_run_writes_own_table(self, write_table, tmp_path):
        """Each shard writes only its range to its own output table."""
        master = write_table(MASTER)
        out_dir = tmp_path / 'out'
        runner = ShardRunner(
            make_config(master, str(out_dir), shard_index=1, total_shards=2),
            make_orchestrator(resolve_all_valid),
        )

        result = await runner.process(runner.prepare())

        assert Path(result.output_path) == out_dir / 'FinalZipcodeState_shard_1.csv'
        assert read_table(result.output_path) == [['10004', 'NY', '4 Main St', 'New York']]
        assert read_table(master)[0] == ['10001', 'NY', '', '']

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self, write_table, tmp_path):
        """A raising orchestrator is recorded as an Error outcome."""
        master = write_table(MASTER)

        async def resolve(unit):
            if unit.zipcode == '10003':
                raise RuntimeError('browser crashed')
            return ExtractionOutcome.not_found(unit)

        runner = ShardRunner(make_config(master, str(tmp_path)), make_orchestrator(resolve))
        result = await runner.process(runner.prepare())

        assert result.has_errors is True
        assert result.failed_units == ['10003/NY']
        rows = {row[0]: row for row in read_table(master)}
        assert rows['10003'][2:] == ['Error', 'Error']
        assert rows['10001'][2:] == ['Not Found', 'Not Found']

    def test_resume_skips_resolved_in_shard_output(self, write_table, tmp_path):
        """--resume skips units already resolved in this shard's output."""
        master = write_table(MASTER)
        out_dir = tmp_path / 'out'
        out_dir.mkdir()
        (out_dir / 'FinalZipcodeState_shard_0.csv').write_text(
            'zipcode,state,address,city\n10001,NY,"1 Main St","New York"\n10003,NY,"",""\n',
            encoding='utf-8',
        )
        config = make_config(master, str(out_dir), shard_index=0, total_shards=2)
        config = replace(config, resume=True)
        orchestrator = make_orchestrator(resolve_all_valid)

        runner = ShardRunner(config, orchestrator)
        units = runner.prepare()

        assert units == [WorkUnit('10003', 'NY')]

    @pytest.mark.asyncio
    async def test_nothing_pending(self, write_table, tmp_path):
        """With no pending rows nothing is resolved or written."""
        master = write_table('zipcode,state,address,city\n10002,NY,"9 Elm St","New York"\n')
        orchestrator = make_orchestrator(resolve_all_valid)
        runner = ShardRunner(make_config(master, str(tmp_path), shard_index=0, total_shards=2), orchestrator)

        result = await runner.process(runner.prepare())

        assert result.summary['total_units'] == 0
        orchestrator.resolve.assert_not_awaited()
        assert not Path(result.output_path).exists()

    @pytest.mark.asyncio
    async def test_saves_run_off_the_event_loop(self, write_table, tmp_path):
        """Batch saves rewrite the table in a worker thread."""
        master = write_table(MASTER)
        runner = ShardRunner(make_config(master, str(tmp_path)), make_orchestrator(resolve_all_valid))
        loop_thread = threading.get_ident()
        save_threads = []

        def record_thread(path, outcomes):
            save_threads.append(threading.get_ident())
            return upsert_many(path, outcomes)

        with patch('src.extraction.runner.upsert_many', side_effect=record_thread):
            await runner.process(runner.prepare())

        assert len(save_threads) == 2
        assert loop_thread not in save_threads
        assert read_table(master)[3] == ['10004', 'NY', '4 Main St', 'New York']
