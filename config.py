"""
Configuration constants for the latency probe server and monitor.
"""

import logging
import os
from pathlib import Path

VERSION = "1.0.5"

# --- Network Configuration ---
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.environ.get("SERVER_PORT", "8080"))
STATIC_DIR = os.environ.get("STATIC_DIR", str(Path(__file__).resolve().parent / "static"))

API_LATENCY_PATH = "/api/latency"
WS_LATENCY_PATH = "/ws/latency"

# --- Page Configuration ---
PAGE_SUFFIX = os.environ.get("PAGE_SUFFIX", "")
PAGE_SUFFIX_PLACEHOLDER = "%%PAGE_SUFFIX%%"

# --- Sampling Configuration ---
RECONNECT_DELAY_S = 1.0 # Fixed delay before reopening a closed channel
DEFAULT_PERIOD_MS = 1000
PERIOD_CHOICES_MS = (0, 1000, 2000, 5000, 10000) # 0 = as fast as possible
DEFAULT_WINDOW_MS = 60000
WINDOW_CHOICES_MS = (60000, 300000, 900000)

# --- Logging Configuration ---
LOG_LEVEL = os.environ.get("LOG_LEVEL", "warn")
LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s'

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "panic": logging.CRITICAL,
}


def parse_log_level(name):
    """Maps a LOG_LEVEL name to a logging level, raising ValueError if unknown."""
    try:
        return _LEVELS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"invalid LOG_LEVEL '{name}'") from None


def setup_logging(level_name=None):
    level = parse_log_level(LOG_LEVEL if level_name is None else level_name)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return level
