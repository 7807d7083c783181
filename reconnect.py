#!/usr/bin/env python3

import asyncio
import logging

import websockets
from websockets.asyncio.client import connect

import config
from models import ConnectionState


class ReconnectionManager:
    """
    Keeps a WebSocket channel open for as long as it is running.

    `session(websocket)` is awaited for every successful connection. When it
    returns or raises, or the connection fails, the channel is closed and
    reopened after a fixed delay. Clean and abnormal closes are treated the
    same. `close()` is the only way out of the retry loop.
    """

    def __init__(self, url, session, delay_s=config.RECONNECT_DELAY_S, on_state=None):
        self.url = url
        self.session = session
        self.delay_s = delay_s
        self.on_state = on_state
        self.state = ConnectionState.DISCONNECTED
        self.connections = 0
        self._websocket = None
        self._task = None
        self._closed = False

    def _set_state(self, state):
        if state is self.state:
            return
        logging.debug(f"[{self.url}] Channel {self.state.value} -> {state.value}")
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    def start(self):
        if self._closed:
            raise RuntimeError("ReconnectionManager cannot be restarted after close()")
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"channel:{self.url}")
        return self._task

    async def _run(self):
        while True:
            self._set_state(ConnectionState.CONNECTING)
            try:
                async with connect(self.url, open_timeout=None, ping_interval=None) as websocket:
                    self._websocket = websocket
                    self.connections += 1
                    self._set_state(ConnectionState.OPEN)
                    logging.info(f"[{self.url}] Channel open (connection #{self.connections})")
                    try:
                        await self.session(websocket)
                    finally:
                        self._websocket = None
                        self._set_state(ConnectionState.CLOSING)
            except websockets.exceptions.ConnectionClosedOK:
                logging.info(f"[{self.url}] Channel closed normally.")
            except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
                logging.info(f"[{self.url}] Channel failed: {e!r}")
            finally:
                self._websocket = None
                self._set_state(ConnectionState.DISCONNECTED)
            await asyncio.sleep(self.delay_s)

    async def send(self, frame) -> bool:
        """Sends a frame if the channel is open. Frames are dropped, never queued."""
        websocket = self._websocket
        if self.state is not ConnectionState.OPEN or websocket is None:
            return False
        try:
            await websocket.send(frame)
        except websockets.exceptions.ConnectionClosed:
            return False
        return True

    async def close(self):
        self._closed = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._websocket = None
        self._set_state(ConnectionState.DISCONNECTED)
