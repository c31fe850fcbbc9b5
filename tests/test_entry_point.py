from contextlib import asynccontextmanager

import anyio
import pytest

from Registry.API import mcp_server
from Registry.API.mcp_server import create_server, serve
from Registry.config import Settings
from Registry.Domain.errors import TransportError
from Registry.Domain.server_lifecycle import ServerLifecycle


@asynccontextmanager
async def closed_stdin():
    """stdio streams whose input side is already at EOF."""
    read_writer, read_stream = anyio.create_memory_object_stream(10)
    write_stream, write_reader = anyio.create_memory_object_stream(10)
    await read_writer.aclose()
    async with write_reader:
        yield read_stream, write_stream


def unavailable_stdin():
    raise OSError("stdin unavailable")


@pytest.mark.anyio
async def test_serve_exits_cleanly_when_stdin_closes(monkeypatch, registry_client):
    monkeypatch.setattr(mcp_server, "stdio_server", closed_stdin)
    lifecycle = ServerLifecycle(connection_check_delay=60)

    await serve(create_server(client=registry_client), lifecycle)

    assert lifecycle.is_connected is True
    assert lifecycle.is_shutting_down is True
    assert lifecycle.exit_code == 0
    # injected clients stay open
    assert registry_client._client.is_closed is False


@pytest.mark.anyio
async def test_serve_reports_transport_that_never_opens(monkeypatch, registry_client):
    monkeypatch.setattr(mcp_server, "stdio_server", unavailable_stdin)
    lifecycle = ServerLifecycle(connection_check_delay=60)

    with pytest.raises(TransportError, match="stdin unavailable") as exc_info:
        await serve(create_server(client=registry_client), lifecycle)

    assert isinstance(exc_info.value.__cause__, OSError)
    assert lifecycle.is_connected is False
    assert lifecycle.is_shutting_down is False


@pytest.fixture
def run_main(monkeypatch):
    """Run `main` with `asyncio.run` ending in `outcome`; returns the exit code."""
    monkeypatch.setattr(mcp_server, "get_settings", lambda: Settings(registry_api_url="https://registry.test"))
    monkeypatch.setattr(mcp_server, "create_server", lambda: object())

    def run(outcome=None):
        def fake_run(coro):
            coro.close()
            if outcome is not None:
                raise outcome

        monkeypatch.setattr(mcp_server.asyncio, "run", fake_run)
        with pytest.raises(SystemExit) as exc_info:
            mcp_server.main()
        return exc_info.value.code

    return run


def test_main_exits_zero_when_serving_ends(run_main):
    assert run_main() == 0


def test_main_exits_zero_on_keyboard_interrupt(run_main):
    assert run_main(KeyboardInterrupt()) == 0


def test_main_exits_one_when_transport_fails(run_main, caplog):
    assert run_main(TransportError("Could not start the stdio transport: stdin unavailable")) == 1
    assert "unrecoverable error" in caplog.text


def test_main_exits_one_on_unexpected_error(run_main):
    assert run_main(RuntimeError("boom")) == 1
