#!/usr/bin/env python3

import asyncio
import concurrent.futures
import logging
import queue
import threading

import config
from models import SamplingConfig
from sampler import Sampler


class SamplerWorker:
    """
    Runs a Sampler on its own event loop in a background daemon thread.

    The foreground talks to it only through messages: `post_config()` hands
    over a new configuration, and sample results arrive on `outbox` as
    `{"type": "sample", "round_trip_ms": int, "config_id": int}` dicts.
    `config_id` names the posted configuration the sample was taken under;
    messages still queued from an earlier configuration carry an older id.
    """

    def __init__(self, base_url, reconnect_delay_s=config.RECONNECT_DELAY_S, http_transport=None):
        self.base_url = base_url
        self.reconnect_delay_s = reconnect_delay_s
        self.http_transport = http_transport
        self.outbox = queue.Queue()
        self.config_id = 0
        self._config_lock = threading.Lock()
        self._loop = None
        self._sampler = None
        self._thread = None
        self._ready = threading.Event()

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self, timeout=5.0):
        if self.running:
            return self._thread
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="SamplerWorker")
        self._thread.start()
        if not self._ready.wait(timeout):
            raise RuntimeError("Sampler worker did not start in time")
        logging.info(f"Sampler worker thread '{self._thread.name}' started for {self.base_url}")
        return self._thread

    def _run(self):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._sampler = Sampler(
            self.base_url,
            report=self._post_sample,
            reconnect_delay_s=self.reconnect_delay_s,
            http_transport=self.http_transport,
        )
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            logging.info("Sampler worker thread stopped.")

    def _post_sample(self, round_trip_ms):
        self.outbox.put({
            "type": "sample",
            "round_trip_ms": round_trip_ms,
            "config_id": self._sampler.config_id,
        })

    def post_config(self, cfg):
        """
        Replaces the active configuration.

        Accepts a SamplingConfig or a `{transport, period_ms, running,
        window_ms}` message. Returns a concurrent.futures.Future that resolves
        once the old configuration is torn down and the new one is running.
        The id tagging its samples is available as `config_id` right away.
        """
        if not isinstance(cfg, SamplingConfig):
            cfg = SamplingConfig.from_message(cfg)
        if not self.running:
            raise RuntimeError("Sampler worker is not running")
        with self._config_lock:
            self.config_id += 1
            return asyncio.run_coroutine_threadsafe(self._sampler.apply(cfg, self.config_id), self._loop)

    def drain(self, limit=None):
        """Returns every message currently waiting in the outbox."""
        messages = []
        while limit is None or len(messages) < limit:
            try:
                messages.append(self.outbox.get_nowait())
            except queue.Empty:
                break
        return messages

    def stop(self, timeout=5.0):
        if not self.running:
            return
        future = asyncio.run_coroutine_threadsafe(self._sampler.close(), self._loop)
        try:
            future.result(timeout)
        except concurrent.futures.TimeoutError:
            logging.warning("Sampler did not shut down cleanly within the timeout.")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logging.warning("Sampler worker thread did not exit cleanly.")
