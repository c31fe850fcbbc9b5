# Registry/Domain/server_lifecycle.py
import asyncio
import logging
import os
import signal
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)
SHUTDOWN_GRACE_PERIOD = 2.0


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ServerLifecycle:
    """
    Process lifecycle of the stdio MCP server.

    Owns the two flags the server needs across tool calls: whether the
    transport ever came up and whether a shutdown is in progress. `shutdown`
    runs at most once; the exit code of the first call wins.
    """

    def __init__(self, connection_check_delay: float = 5.0, grace_period: float = SHUTDOWN_GRACE_PERIOD):
        self.connection_check_delay = connection_check_delay
        self.grace_period = grace_period
        self.is_connected = False
        self.is_shutting_down = False
        self.exit_code = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._check_handle: Optional[asyncio.TimerHandle] = None
        self._exit_handle: Optional[asyncio.TimerHandle] = None
        self._signals: list = []

    def attach(self, loop: asyncio.AbstractEventLoop, task: Optional[asyncio.Task] = None):
        """Install signal/error handlers on `loop` and schedule the one-shot connection check."""
        self._loop = loop
        self._task = task
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                self._signals.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug("No handler installed for %s", signal.Signals(sig).name)
        loop.set_exception_handler(self._on_loop_exception)
        self._check_handle = loop.call_later(self.connection_check_delay, self.check_connection)

    def detach(self):
        self._cancel_check()
        if self._exit_handle is not None:
            self._exit_handle.cancel()
            self._exit_handle = None
        if self._loop is None or self._loop.is_closed():
            return
        for sig in self._signals:
            self._loop.remove_signal_handler(sig)
        self._signals = []
        self._loop.set_exception_handler(None)

    def mark_connected(self):
        self.is_connected = True
        logger.info("MCP transport connected")

    def check_connection(self):
        self._check_handle = None
        if not self.is_connected and not self.is_shutting_down:
            logger.error(
                "MCP transport not connected after %.1fs, shutting down", self.connection_check_delay
            )
            self.shutdown(1)

    def shutdown(self, exit_code: int = 0) -> bool:
        """Start the shutdown sequence. Returns False if it had already started."""
        if self.is_shutting_down:
            return False
        self.is_shutting_down = True
        self.exit_code = exit_code
        logger.info("Shutting down MCP server (exit code %s)", exit_code)
        self._cancel_check()

        if self._task is not None and not self._task.done() and self._task is not _current_task():
            self._task.cancel()
            # stdin is read from a worker thread that cancellation cannot interrupt
            if self._loop is not None and not self._loop.is_closed():
                self._exit_handle = self._loop.call_later(self.grace_period, self._force_exit)
        return True

    def _cancel_check(self):
        if self._check_handle is not None:
            self._check_handle.cancel()
            self._check_handle = None

    def _force_exit(self):
        logger.warning("Server did not stop within %.1fs, exiting", self.grace_period)
        logging.shutdown()
        os._exit(self.exit_code)

    def _on_signal(self, sig: int):
        logger.info("Received %s", signal.Signals(sig).name)
        self.shutdown(0)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]):
        logger.error(
            "Unhandled error in event loop: %s",
            context.get("message"),
            exc_info=context.get("exception"),
        )
        self.shutdown(1)
