#!/usr/bin/env python3

import asyncio
import functools
import logging
from urllib.parse import urlsplit, urlunsplit

import config
from models import SamplingConfig, Transport, wall_ms
from reconnect import ReconnectionManager
from transports import PolledDriver, encode_frame, parse_echo


def websocket_url(base_url):
    """Maps an http(s) base URL to the ws(s) URL of the echo endpoint."""
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    path = parts.path.rstrip("/") + config.WS_LATENCY_PATH
    return urlunsplit((scheme, parts.netloc, path, "", ""))


class Sampler:
    """
    Drives probes for one configuration at a time.

    Every `apply()` tears down the tasks and channel of the previous
    configuration, waits for them to finish, bumps the generation and only
    then builds the new ones. Reports carry the generation they were started
    under and are dropped if it is no longer current.
    """

    def __init__(self, base_url, report, reconnect_delay_s=config.RECONNECT_DELAY_S,
                 http_transport=None, clock=wall_ms):
        self.base_url = base_url
        self.report = report
        self.reconnect_delay_s = reconnect_delay_s
        self.http_transport = http_transport
        self.clock = clock
        self.config = None
        self.config_id = None
        self.generation = 0
        self.channel = None
        self._driver = None
        self._tasks = set()
        self._lock = asyncio.Lock()

    async def apply(self, cfg: SamplingConfig, config_id=None):
        """
        Replaces the running configuration.

        `config_id` is an opaque caller-side tag for `cfg`; reports made under
        it can be matched through `self.config_id` at report time.
        """
        async with self._lock:
            await self._teardown()
            self.config = cfg
            self.config_id = config_id
            if not cfg.running:
                logging.info("Sampler stopped.")
                return
            generation = self.generation
            logging.info(f"Sampler started: transport={cfg.transport.value}, period={cfg.period_ms}ms (generation {generation})")
            if cfg.transport is Transport.POLLED:
                self._start_polled(cfg, generation)
            else:
                self._start_streamed(cfg, generation)

    async def close(self):
        async with self._lock:
            await self._teardown()

    async def _teardown(self):
        self.generation += 1
        tasks, self._tasks = self._tasks, set()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self.channel is not None:
            await self.channel.close()
            self.channel = None
        if self._driver is not None:
            await self._driver.aclose()
            self._driver = None

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _publish(self, generation, rtt):
        if rtt is None or generation != self.generation:
            return
        self.report(rtt)

    # --- Polled transport ---

    def _start_polled(self, cfg, generation):
        self._driver = PolledDriver(self.base_url, transport=self.http_transport)
        if cfg.unthrottled:
            self._spawn(self._poll_unthrottled(self._driver, generation))
        else:
            self._spawn(self._tick(cfg.period_ms, functools.partial(self._poll_detached, self._driver, generation)))

    async def _poll_unthrottled(self, driver, generation):
        while True:
            self._publish(generation, await driver.probe())
            await asyncio.sleep(0)

    def _poll_detached(self, driver, generation):
        self._spawn(self._poll_once(driver, generation))

    async def _poll_once(self, driver, generation):
        self._publish(generation, await driver.probe())

    # --- Streamed transport ---

    def _start_streamed(self, cfg, generation):
        url = websocket_url(self.base_url)
        if cfg.unthrottled:
            session = functools.partial(self._stream_unthrottled, generation)
        else:
            session = functools.partial(self._stream_receive, generation)
        self.channel = ReconnectionManager(url, session, delay_s=self.reconnect_delay_s)
        self.channel.start()
        if not cfg.unthrottled:
            self._spawn(self._tick(cfg.period_ms, self._send_detached))

    async def _stream_unthrottled(self, generation, websocket):
        while True:
            await websocket.send(encode_frame(self.clock()))
            message = await websocket.recv()
            self._publish(generation, parse_echo(message, self.clock()))

    async def _stream_receive(self, generation, websocket):
        async for message in websocket:
            self._publish(generation, parse_echo(message, self.clock()))

    def _send_detached(self):
        self._spawn(self.channel.send(encode_frame(self.clock())))

    # --- Cadence ---

    async def _tick(self, period_ms, fire):
        """Calls `fire()` now and then every `period_ms`, without drift."""
        loop = asyncio.get_running_loop()
        period_s = period_ms / 1000.0
        next_at = loop.time()
        while True:
            fire()
            # Skip missed ticks instead of firing a burst after a stall.
            next_at = max(next_at + period_s, loop.time())
            await asyncio.sleep(next_at - loop.time())
