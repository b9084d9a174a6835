"""Tests for CooldownStore with a mocked Database."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from regwatch.pipeline.cooldown import CooldownStore, from_epoch_ms, to_epoch_ms

WHEN = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_epoch_conversion():
    assert to_epoch_ms(WHEN) == 1773144000000
    assert from_epoch_ms(1773144000000) == WHEN


@pytest.fixture
def mock_db():
    return AsyncMock()


class TestGetLastRun:
    @pytest.mark.asyncio
    async def test_stored_timestamp(self, mock_db):
        mock_db.fetchval.return_value = {"timestamp": to_epoch_ms(WHEN)}
        assert await CooldownStore(mock_db).get_last_run("last_run_fda") == WHEN
        assert mock_db.fetchval.call_args[0][1] == "last_run_fda"

    @pytest.mark.asyncio
    async def test_never_run(self, mock_db):
        mock_db.fetchval.return_value = None
        assert await CooldownStore(mock_db).get_last_run("last_run_fda") is None

    @pytest.mark.asyncio
    async def test_reset_value_is_none(self, mock_db):
        mock_db.fetchval.return_value = {"timestamp": 0}
        assert await CooldownStore(mock_db).get_last_run("last_run_fda") is None


class TestWrites:
    @pytest.mark.asyncio
    async def test_set_last_run(self, mock_db):
        await CooldownStore(mock_db).set_last_run("last_run_fda", WHEN)

        args = mock_db.execute.call_args[0]
        assert "ON CONFLICT (setting_key) DO UPDATE" in args[0]
        assert args[1] == "last_run_fda"
        assert args[2] == {"timestamp": to_epoch_ms(WHEN)}

    @pytest.mark.asyncio
    async def test_reset_writes_zero(self, mock_db):
        await CooldownStore(mock_db).reset("last_run_fda")
        assert mock_db.execute.call_args[0][2] == {"timestamp": 0}
