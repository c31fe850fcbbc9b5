import asyncio
import signal

import pytest

from Registry.Domain import server_lifecycle
from Registry.Domain.server_lifecycle import ServerLifecycle


def test_shutdown_runs_once():
    lifecycle = ServerLifecycle()

    assert lifecycle.shutdown(0) is True
    assert lifecycle.shutdown(1) is False

    assert lifecycle.is_shutting_down is True
    assert lifecycle.exit_code == 0


def test_check_connection_when_connected():
    lifecycle = ServerLifecycle()
    lifecycle.mark_connected()

    lifecycle.check_connection()

    assert lifecycle.is_shutting_down is False


def test_check_connection_when_never_connected():
    lifecycle = ServerLifecycle()

    lifecycle.check_connection()

    assert lifecycle.is_shutting_down is True
    assert lifecycle.exit_code == 1


def test_check_connection_after_shutdown_keeps_exit_code():
    lifecycle = ServerLifecycle()
    lifecycle.shutdown(0)

    lifecycle.check_connection()

    assert lifecycle.exit_code == 0


@pytest.mark.anyio
async def test_connection_check_cancels_serving_task():
    lifecycle = ServerLifecycle(connection_check_delay=0.01, grace_period=60)
    serving = asyncio.ensure_future(asyncio.sleep(60))
    lifecycle.attach(asyncio.get_running_loop(), serving)
    try:
        with pytest.raises(asyncio.CancelledError):
            await serving
    finally:
        lifecycle.detach()

    assert lifecycle.is_shutting_down is True
    assert lifecycle.exit_code == 1


@pytest.mark.anyio
async def test_connected_server_survives_check():
    lifecycle = ServerLifecycle(connection_check_delay=0.01)
    serving = asyncio.ensure_future(asyncio.sleep(0.05))
    lifecycle.attach(asyncio.get_running_loop(), serving)
    lifecycle.mark_connected()
    try:
        await serving
    finally:
        lifecycle.detach()

    assert lifecycle.is_shutting_down is False


@pytest.mark.anyio
async def test_signal_handler_shuts_down_cleanly():
    lifecycle = ServerLifecycle(connection_check_delay=60, grace_period=60)
    serving = asyncio.ensure_future(asyncio.sleep(60))
    lifecycle.attach(asyncio.get_running_loop(), serving)
    lifecycle.mark_connected()
    try:
        lifecycle._on_signal(signal.SIGTERM)
        with pytest.raises(asyncio.CancelledError):
            await serving
    finally:
        lifecycle.detach()

    assert lifecycle.exit_code == 0


@pytest.mark.anyio
async def test_unhandled_loop_error_shuts_down_with_failure(caplog):
    lifecycle = ServerLifecycle(connection_check_delay=60, grace_period=60)
    loop = asyncio.get_running_loop()
    serving = asyncio.ensure_future(asyncio.sleep(60))
    lifecycle.attach(loop, serving)
    try:
        loop.call_exception_handler({"message": "Task exception was never retrieved", "exception": RuntimeError("boom")})
        with pytest.raises(asyncio.CancelledError):
            await serving
    finally:
        lifecycle.detach()

    assert lifecycle.exit_code == 1
    assert "Unhandled error in event loop" in caplog.text


@pytest.mark.anyio
async def test_shutdown_from_serving_task_does_not_cancel_it():
    lifecycle = ServerLifecycle(connection_check_delay=60, grace_period=60)
    lifecycle.attach(asyncio.get_running_loop(), asyncio.current_task())
    try:
        lifecycle.shutdown(0)
        await asyncio.sleep(0)
    finally:
        lifecycle.detach()

    assert lifecycle.is_shutting_down is True


def test_force_exit_uses_exit_code(monkeypatch):
    exits = []
    monkeypatch.setattr(server_lifecycle.os, "_exit", exits.append)
    monkeypatch.setattr(server_lifecycle.logging, "shutdown", lambda: None)
    lifecycle = ServerLifecycle()
    lifecycle.shutdown(1)

    lifecycle._force_exit()

    assert exits == [1]
