"""Tests for browser actions: random_sleep and race_deadline."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from hidden_jobs.browser.actions import race_deadline, random_sleep

# ---------------------------------------------------------------------------
# TestRandomSleep
# ---------------------------------------------------------------------------


class TestRandomSleep:
    """random_sleep: floor enforcement, range, actual sleeping."""

    async def test_returns_duration_in_range(self) -> None:
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            duration = await random_sleep(0.5, 1.0)
        assert 0.5 <= duration <= 1.0

    async def test_max_below_min_is_clamped(self) -> None:
        """If max_s < min_s, max_s is raised to min_s."""
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            duration = await random_sleep(5.0, 2.0)
        assert duration == 5.0

    async def test_actually_calls_asyncio_sleep(self) -> None:
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            await random_sleep(0.1, 0.2)
        mock_sleep.assert_called_once()
        slept = mock_sleep.call_args[0][0]
        assert 0.1 <= slept <= 0.2

    async def test_negative_min_clamped_to_zero(self) -> None:
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            duration = await random_sleep(-1.0, 0.5)
        assert duration >= 0.0


# ---------------------------------------------------------------------------
# TestRaceDeadline
# ---------------------------------------------------------------------------


class TestRaceDeadline:
    """race_deadline: signal first, deadline first, signal errors."""

    async def test_signal_wins(self) -> None:
        async def load() -> None:
            await asyncio.sleep(0)

        assert await race_deadline(load(), 1.0) is True

    async def test_deadline_wins(self) -> None:
        never = asyncio.Event()
        assert await race_deadline(never.wait(), 0.01) is False

    async def test_losing_signal_is_cancelled(self) -> None:
        cancelled = asyncio.Event()

        async def load() -> None:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        await race_deadline(load(), 0.01)
        assert cancelled.is_set()

    async def test_signal_error_propagates(self) -> None:
        async def load() -> None:
            raise RuntimeError("net::ERR_NAME_NOT_RESOLVED")

        with pytest.raises(RuntimeError, match="ERR_NAME_NOT_RESOLVED"):
            await race_deadline(load(), 1.0)
