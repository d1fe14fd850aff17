"""Tests for run_shard() phase and error logging."""

import json
import logging
from unittest.mock import AsyncMock, Mock, patch

import pytest

from run import run_shard
from src.extraction.runner import ShardResult
from src.shared.run_config import build_run_config


class FakeBrowserSession:
    """Async context manager standing in for BrowserSession."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def new_page(self):
        raise AssertionError('no page should be opened')


def make_runner(process):
    runner = Mock()
    runner.prepare.return_value = []
    runner.process = process
    return runner


def structured_events(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records if record.name == 'structured']


class TestRunShard:
    """Tests for the structured events around a shard run."""

    @pytest.mark.asyncio
    async def test_logs_initialization_and_cleanup_phases(self, caplog):
        """Browser launch and shutdown are logged as phases."""
        runner = make_runner(AsyncMock(return_value=ShardResult(output_path='out.csv')))

        with patch('run.BrowserSession', FakeBrowserSession), \
                patch('run.ShardRunner', return_value=runner), \
                caplog.at_level(logging.INFO, logger='structured'):
            result = await run_shard(build_run_config({}, environ={}))

        assert result.output_path == 'out.csv'
        assert [(e['phase'], e['event']) for e in structured_events(caplog)] == [
            ('initialization', 'phase_start'),
            ('initialization', 'phase_end'),
            ('cleanup', 'phase_start'),
            ('cleanup', 'phase_end'),
        ]

    @pytest.mark.asyncio
    async def test_failure_logged_with_active_phase(self, caplog):
        """A failing run logs an error event for its phase and re-raises."""
        runner = make_runner(AsyncMock(side_effect=RuntimeError('browser crashed')))

        with patch('run.BrowserSession', FakeBrowserSession), \
                patch('run.ShardRunner', return_value=runner), \
                caplog.at_level(logging.INFO, logger='structured'):
            with pytest.raises(RuntimeError):
                await run_shard(build_run_config({}, environ={}))

        error = structured_events(caplog)[-1]
        assert error['event'] == 'error'
        assert error['phase'] == 'extraction'
        assert error['error'] == 'browser crashed'
