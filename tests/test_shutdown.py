"""Tests for cooperative shutdown."""

from __future__ import annotations

import asyncio
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from reportflow.shutdown import (
    ShutdownCoordinator,
    ShutdownError,
    check_shutdown,
    is_shutdown_error,
    is_shutting_down,
    set_shutdown,
)


@pytest.fixture
def coordinator():
    coordinator = ShutdownCoordinator()
    coordinator._exit = MagicMock()
    return coordinator


class TestFlag:
    def test_check_raises_once_requested(self, coordinator):
        coordinator.check()
        coordinator.request_shutdown()

        with pytest.raises(ShutdownError, match="Operation cancelled - shutting down"):
            coordinator.check()

        coordinator.reset()
        assert coordinator.is_shutting_down is False

    def test_module_helpers_use_process_default(self):
        set_shutdown(True)
        assert is_shutting_down()
        with pytest.raises(ShutdownError):
            check_shutdown()
        set_shutdown(False)
        check_shutdown()

    def test_is_shutdown_error(self):
        assert is_shutdown_error(ShutdownError())
        assert is_shutdown_error(RuntimeError("wrapped: shutting down"))
        assert not is_shutdown_error(RuntimeError("boom"))


class TestSignals:
    @pytest.mark.asyncio
    async def test_first_signal_runs_graceful_close(self, coordinator):
        on_shutdown = AsyncMock()

        task = coordinator.handle_signal(
            signal.SIGTERM, on_shutdown, 1.0, asyncio.get_running_loop()
        )
        await task

        assert coordinator.is_shutting_down
        on_shutdown.assert_awaited_once()
        coordinator._exit.assert_called_once_with(0)

    @pytest.mark.asyncio
    async def test_second_signal_forces_exit(self, coordinator):
        loop = asyncio.get_running_loop()
        never = asyncio.Event()

        task = coordinator.handle_signal(signal.SIGINT, never.wait, 10.0, loop)
        assert coordinator.handle_signal(signal.SIGINT, never.wait, 10.0, loop) is None

        coordinator._exit.assert_called_once_with(1)
        task.cancel()

    @pytest.mark.asyncio
    async def test_grace_period_elapsed(self, coordinator):
        async def slow():
            await asyncio.sleep(5)

        await coordinator.handle_signal(
            signal.SIGTERM, slow, 0.01, asyncio.get_running_loop()
        )

        coordinator._exit.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_close_error_exits_nonzero(self, coordinator):
        on_shutdown = AsyncMock(side_effect=RuntimeError("close failed"))

        await coordinator.handle_signal(
            signal.SIGTERM, on_shutdown, 1.0, asyncio.get_running_loop()
        )

        coordinator._exit.assert_called_once_with(1)
