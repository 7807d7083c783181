#!/usr/bin/env python3

import json
import logging
import time
from typing import Optional, Union

import httpx

import config
from models import wall_ms


def elapsed_ms(start: float, end: float) -> int:
    """Whole milliseconds between two perf_counter readings."""
    return max(0, int(round((end - start) * 1000.0)))


class PolledDriver:
    """
    Measures one round trip per `probe()` with a GET to the timestamp endpoint.

    Transport errors and unparseable bodies are logged at debug level and
    reported as None so the caller can drop the probe.
    """

    def __init__(self, base_url, transport=None):
        self.base_url = base_url
        # No per-request timeout: a request that never returns is a lost probe.
        self.client = httpx.AsyncClient(base_url=base_url, timeout=None, transport=transport)

    async def probe(self) -> Optional[int]:
        start = time.perf_counter()
        try:
            response = await self.client.get(config.API_LATENCY_PATH)
            response.raise_for_status()
            response.json()
        except httpx.HTTPError as e:
            logging.debug(f"[{self.base_url}] Polled probe failed: {e}")
            return None
        except ValueError as e:
            logging.debug(f"[{self.base_url}] Polled probe returned unparseable body: {e}")
            return None
        return elapsed_ms(start, time.perf_counter())

    async def aclose(self):
        await self.client.aclose()


def encode_frame(sent_at: Optional[int] = None) -> str:
    """Builds an outbound `{"t": <ms>}` text frame."""
    return json.dumps({"t": wall_ms() if sent_at is None else sent_at}, separators=(",", ":"))


def parse_echo(data: Union[str, bytes], received_at: Optional[int] = None) -> Optional[int]:
    """
    Round trip in ms for an echoed frame, measured against the `t` it carries.

    Returns None for anything that is not a well-formed echo.
    """
    if received_at is None:
        received_at = wall_ms()
    try:
        payload = json.loads(data)
    except (ValueError, TypeError):
        logging.debug(f"Could not parse echo frame: {data!r}")
        return None
    if not isinstance(payload, dict):
        return None
    sent_at = payload.get("t")
    if isinstance(sent_at, bool) or not isinstance(sent_at, int):
        logging.debug(f"Echo frame without integer timestamp: {data!r}")
        return None
    rtt = received_at - sent_at
    if rtt < 0:
        logging.debug(f"Echo frame from the future (t={sent_at}, now={received_at})")
        return None
    return rtt
