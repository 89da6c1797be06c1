"""
Progress push-channel client - follows a job's progress over WebSocket

Features:
1. Dispatches connected / generation_progress / pong / error messages
2. Heartbeat ping while the connection is open
3. Auto-reconnect with exponential backoff on abnormal close
4. Stops cleanly on normal closure, close(), or a terminal progress event

Reconnect backoff is independent of the server's fixed-delay collaborator
retries: one recovers a transport, the other a computation.
"""

import asyncio
import json
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from cli.config import CLIConfig


NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

TERMINAL_STAGES = ("completed", "failed")


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


class TransportError(Exception):
    """The push channel could not be re-established"""

    def __init__(self, message: str, attempts: int = 0, close_code: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
        self.close_code = close_code


def backoff_delay_ms(attempt: int, base_ms: int = 1000, max_ms: int = 10000) -> int:
    """Calculate exponential backoff delay"""
    return min(base_ms * (2 ** attempt), max_ms)


class ProgressChannelClient:
    """
    Subscribes to /ws/generation-progress/{job_id} and keeps the subscription alive.

    Usage:
        client = ProgressChannelClient(config.progress_url(job_id), on_progress=render)
        await client.run()
    """

    def __init__(
        self,
        url: str,
        on_progress: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_status_change: Optional[Callable[[ConnectionStatus], None]] = None,
        config: Optional[CLIConfig] = None,
        connect: Callable[..., Awaitable[Any]] = websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.config = config or CLIConfig()
        self.on_progress = on_progress
        self.on_error = on_error
        self.on_status_change = on_status_change
        self._connect = connect
        self._sleep = sleep

        self.status = ConnectionStatus.DISCONNECTED
        self.attempt = 0
        self.last_progress: Optional[Dict[str, Any]] = None
        self._ws: Optional[Any] = None
        self._closed = False
        self._terminal_seen = False
        self._heartbeat_task: Optional[asyncio.Task] = None

    @property
    def close_on_terminal(self) -> bool:
        return self.config.close_on_terminal

    async def run(self) -> None:
        """
        Follow the channel until it ends.

        Returns on normal closure, close(), or a terminal progress event.

        Raises:
            TransportError: max_reconnect_attempts reconnects failed in a row
        """
        self._set_status(ConnectionStatus.CONNECTING)

        while True:
            close_code = await self._connect_and_listen()

            if self._should_stop(close_code):
                self._set_status(ConnectionStatus.DISCONNECTED)
                return

            if self.attempt >= self.config.max_reconnect_attempts:
                self._set_status(ConnectionStatus.FAILED)
                message = (
                    f"Progress channel lost after {self.attempt} reconnect attempt(s) "
                    f"(close code {close_code})"
                )
                self._report_error(message)
                raise TransportError(message, attempts=self.attempt, close_code=close_code)

            delay = backoff_delay_ms(
                self.attempt,
                self.config.base_reconnect_delay_ms,
                self.config.max_reconnect_delay_ms,
            )
            self.attempt += 1
            self._set_status(ConnectionStatus.RECONNECTING)
            await self._sleep(delay / 1000)

            if self._closed:
                self._set_status(ConnectionStatus.DISCONNECTED)
                return

    async def close(self) -> None:
        """Unsubscribe; no reconnect is scheduled afterwards"""
        self._closed = True
        if self._ws is not None:
            await self._ws.close()

    def _should_stop(self, close_code: int) -> bool:
        if self._closed or close_code == NORMAL_CLOSURE:
            return True
        return self._terminal_seen and self.close_on_terminal

    async def _connect_and_listen(self) -> int:
        """One connection lifetime. Returns its close code."""
        try:
            ws = await self._connect(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException):
            return ABNORMAL_CLOSURE

        self._ws = ws
        self.attempt = 0
        self._set_status(ConnectionStatus.CONNECTED)
        await self._start_heartbeat(ws)

        try:
            async for raw in ws:
                await self._dispatch(ws, raw)
                if self._closed:
                    break
            return self._close_code(ws)
        except ConnectionClosed as e:
            return e.rcvd.code if e.rcvd is not None else ABNORMAL_CLOSURE
        finally:
            await self._stop_heartbeat()
            self._ws = None

    async def _dispatch(self, ws: Any, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return
        if not isinstance(message, dict):
            return

        message_type = message.get("type")
        if message_type == "generation_progress":
            data = message.get("data") or {}
            self.last_progress = data
            if self.on_progress:
                self.on_progress(data)
            if data.get("stage") in TERMINAL_STAGES:
                self._terminal_seen = True
                if self.close_on_terminal:
                    self._closed = True
                    await ws.close()
        elif message_type == "error":
            self._report_error(message.get("message", "Unknown server error"))
        # "connected" and "pong" need no handling

    @staticmethod
    def _close_code(ws: Any) -> int:
        code = getattr(ws, "close_code", None)
        return code if code is not None else ABNORMAL_CLOSURE

    async def _start_heartbeat(self, ws: Any) -> None:
        """Start heartbeat to keep connection alive"""
        async def heartbeat_loop():
            while True:
                await asyncio.sleep(self.config.heartbeat_interval)
                try:
                    await ws.send(json.dumps({"type": "ping"}))
                except ConnectionClosed:
                    break

        self._heartbeat_task = asyncio.create_task(heartbeat_loop())

    async def _stop_heartbeat(self) -> None:
        """Stop heartbeat task"""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self.status:
            return
        self.status = status
        if self.on_status_change:
            self.on_status_change(status)

    def _report_error(self, message: str) -> None:
        if self.on_error:
            self.on_error(message)
