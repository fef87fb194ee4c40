from __future__ import annotations

import asyncio
import enum
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import websockets

from .events import CODE_EARLY_WARNING, CODE_EARTHQUAKE_INFO


log = logging.getLogger("quaketelop.feed")

MessageHandler = Callable[[dict], None]
Connect = Callable[..., Any]
Sleep = Callable[[float], Awaitable[None]]


class ConnectionState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class FeedSignal(enum.Enum):
    OPEN = "open"
    MESSAGE = "message"
    CLOSE = "close"
    ERROR = "error"


class FeedConnection:
    """
    One WebSocket subscription to the P2P earthquake feed.

    Socket callbacks are funnelled into ``dispatch()`` as ``FeedSignal`` values,
    which keeps the connection state machine free of I/O. ``run_forever()``
    owns the socket: it connects, feeds every frame to ``dispatch()`` and, after
    a close or error, reconnects after a fixed delay. After
    ``max_reconnect_attempts`` consecutive failed reconnects it gives up, logs
    the condition and returns. A successful open resets the counter.
    """

    def __init__(
        self,
        url: str,
        *,
        on_earthquake: MessageHandler,
        on_early_warning: MessageHandler,
        on_open: Optional[Callable[[], None]] = None,
        on_exhausted: Optional[Callable[[], None]] = None,
        max_reconnect_attempts: int = 5,
        reconnect_delay: float = 5.0,
        open_timeout: float = 10.0,
        connect: Connect = websockets.connect,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.url = url
        self.on_earthquake = on_earthquake
        self.on_early_warning = on_early_warning
        self.on_open = on_open
        self.on_exhausted = on_exhausted
        self.max_reconnect_attempts = max(0, int(max_reconnect_attempts))
        self.reconnect_delay = float(reconnect_delay)
        self.open_timeout = float(open_timeout)
        self._connect = connect
        self._sleep = sleep

        self.state = ConnectionState.IDLE
        self.reconnect_attempts = 0
        self.exhausted = False
        self.rx_count = 0

    # ----------------------------
    # State machine
    # ----------------------------
    def dispatch(self, signal: FeedSignal, payload: Any = None) -> bool:
        """
        Apply one connection signal.

        For CLOSE the return value says whether a reconnect should be
        scheduled; for every other signal it is True.
        """
        if signal is FeedSignal.OPEN:
            self.state = ConnectionState.OPEN
            self.reconnect_attempts = 0
            log.info("Feed connection established: %s", self.url)
            if self.on_open is not None:
                self.on_open()
            return True

        if signal is FeedSignal.MESSAGE:
            self._on_message(payload)
            return True

        if signal is FeedSignal.ERROR:
            log.error("Feed connection error: %s", payload)
            return True

        # CLOSE
        self.state = ConnectionState.CLOSED
        log.info("Feed connection closed")
        if self.reconnect_attempts < self.max_reconnect_attempts:
            self.reconnect_attempts += 1
            log.info("Reconnecting... (%d/%d)", self.reconnect_attempts, self.max_reconnect_attempts)
            return True

        self.exhausted = True
        log.error("Reconnect exhausted after %d attempts; feed stopped", self.max_reconnect_attempts)
        if self.on_exhausted is not None:
            self.on_exhausted()
        return False

    def _on_message(self, raw: Any) -> None:
        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
        except (ValueError, UnicodeDecodeError):
            log.warning("Dropping undecodable feed frame (len=%d)", len(raw))
            return
        if not isinstance(data, dict):
            log.warning("Dropping non-object feed frame: %s", type(data).__name__)
            return

        self.rx_count += 1
        code = data.get("code")
        if code == CODE_EARLY_WARNING:
            log.info("RX#%d early warning (554)", self.rx_count)
            self._deliver(self.on_early_warning, data)
        elif code == CODE_EARTHQUAKE_INFO:
            log.info("RX#%d earthquake info (551)", self.rx_count)
            self._deliver(self.on_earthquake, data)
        else:
            log.debug("RX#%d ignored code=%s", self.rx_count, code)

    @staticmethod
    def _deliver(handler: MessageHandler, data: dict) -> None:
        try:
            handler(data)
        except Exception:
            log.exception("Feed message handler failed (code=%s)", data.get("code"))

    # ----------------------------
    # Socket runner
    # ----------------------------
    async def _session(self) -> None:
        self.state = ConnectionState.CONNECTING
        async with self._connect(self.url, open_timeout=self.open_timeout) as ws:
            self.dispatch(FeedSignal.OPEN)
            async for frame in ws:
                self.dispatch(FeedSignal.MESSAGE, frame)

    async def run_forever(self) -> None:
        """Run until the reconnect budget is exhausted or the task is cancelled."""
        self.exhausted = False
        try:
            while True:
                try:
                    await self._session()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.dispatch(FeedSignal.ERROR, e)

                if not self.dispatch(FeedSignal.CLOSE):
                    return
                await self._sleep(self.reconnect_delay)
        finally:
            if self.state is not ConnectionState.CLOSED:
                self.state = ConnectionState.CLOSED
