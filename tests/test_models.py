import dataclasses
import logging

import pytest

import config
from models import Sample, SamplingConfig, Transport


def test_transport_parse_accepts_wire_names_and_aliases():
    assert Transport.parse("REST") is Transport.POLLED
    assert Transport.parse("ws") is Transport.STREAMED
    assert Transport.parse("streamed") is Transport.STREAMED
    assert Transport.parse(Transport.POLLED) is Transport.POLLED
    with pytest.raises(ValueError):
        Transport.parse("udp")


def test_sampling_config_defaults():
    cfg = SamplingConfig()
    assert cfg.transport is Transport.POLLED
    assert cfg.period_ms == config.DEFAULT_PERIOD_MS
    assert cfg.running is True
    assert cfg.window_ms == config.DEFAULT_WINDOW_MS
    assert not cfg.unthrottled


def test_sampling_config_is_immutable():
    cfg = SamplingConfig(period_ms=0)
    assert cfg.unthrottled
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.period_ms = 1000


@pytest.mark.parametrize("kwargs", [
    {"period_ms": -1},
    {"period_ms": 1.5},
    {"period_ms": True},
    {"window_ms": 0},
    {"window_ms": "60000"},
    {"running": "yes"},
    {"transport": "carrier-pigeon"},
])
def test_sampling_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        SamplingConfig(**kwargs)


def test_config_message_roundtrip():
    msg = {"transport": "WS", "period_ms": 0, "running": False, "window_ms": 300000}
    cfg = SamplingConfig.from_message(msg)
    assert cfg == SamplingConfig(Transport.STREAMED, 0, False, 300000)
    assert cfg.to_message() == {"type": "config", **msg}


def test_identical_configs_compare_equal():
    assert SamplingConfig.from_message({"transport": "REST"}) == SamplingConfig()


def test_sample_rejects_negative_round_trip():
    assert Sample(10, 0).round_trip_ms == 0
    with pytest.raises(ValueError):
        Sample(10, -1)


@pytest.mark.parametrize("name, level", [
    ("debug", logging.DEBUG),
    ("INFO", logging.INFO),
    ("warn", logging.WARNING),
    (" error ", logging.ERROR),
    ("panic", logging.CRITICAL),
])
def test_parse_log_level(name, level):
    assert config.parse_log_level(name) == level


def test_parse_log_level_rejects_unknown():
    with pytest.raises(ValueError, match="invalid LOG_LEVEL 'loud'"):
        config.parse_log_level("loud")
