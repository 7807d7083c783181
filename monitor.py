#!/usr/bin/env python3
"""
Live terminal view of the round-trip latency to a latency server.

The sampler runs in a background worker thread; this module owns the
windowed series, applies configurations and renders the chart.
"""

import logging
import time
from typing import Optional, Sequence

import typer
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

import config
from models import Sample, SamplingConfig, Transport, wall_ms
from series import SeriesWindow
from worker import SamplerWorker

SPARK_BLOCKS = "▁▂▃▄▅▆▇█"

console = Console()
app = typer.Typer(add_completion=False)


def sparkline(values: Sequence[int], width: int = 60) -> str:
    """Renders the last `width` values as a block sparkline scaled to their range."""
    values = list(values)[-width:]
    if not values:
        return ""
    low, high = min(values), max(values)
    span = high - low
    if span == 0:
        return SPARK_BLOCKS[0] * len(values)
    top = len(SPARK_BLOCKS) - 1
    return "".join(SPARK_BLOCKS[round((v - low) / span * top)] for v in values)


def format_ms(value: Optional[float], fmt: str = "{:.0f}") -> str:
    return "N/A" if value is None else fmt.format(value) + " ms"


def format_period(period_ms: int) -> str:
    return "ASAP" if period_ms == 0 else f"{period_ms / 1000:g}s"


class LatencyMonitor:
    """Foreground side: sole writer of the series and of the sampling config."""

    def __init__(self, worker, cfg: SamplingConfig, clock=wall_ms):
        self.worker = worker
        self.clock = clock
        self.config = cfg
        self.series = SeriesWindow(cfg.window_ms, clock=clock)

    def apply(self, cfg: SamplingConfig):
        future = self.worker.post_config(cfg)
        self.config = cfg
        self.series.reconfigure(cfg.window_ms, now=self.clock())
        return future

    def toggle_running(self):
        return self.apply(SamplingConfig(
            transport=self.config.transport,
            period_ms=self.config.period_ms,
            running=not self.config.running,
            window_ms=self.config.window_ms,
        ))

    def drain(self) -> int:
        """
        Moves every pending sample message into the series. Returns how many were added.

        Samples taken under a configuration that has since been replaced are
        dropped, even if they were already queued when `apply()` ran.
        """
        added = 0
        current = self.worker.config_id
        for msg in self.worker.drain():
            if msg.get("type") != "sample":
                logging.debug(f"Ignoring worker message: {msg!r}")
                continue
            if msg.get("config_id") != current:
                continue
            now = self.clock()
            self.series.append(Sample(observed_at=now, round_trip_ms=msg["round_trip_ms"]), now=now)
            added += 1
        self.series.prune(self.clock())
        return added

    def render(self, width: int = 60):
        cfg = self.config
        stats = self.series.stats()
        summary = Table.grid(padding=(0, 2))
        summary.add_row("Transport", cfg.transport.value, "Period", format_period(cfg.period_ms),
                        "Range", f"{cfg.window_ms // 1000}s", "State", "running" if cfg.running else "paused")
        summary.add_row("Last", format_ms(stats.last), "Min", format_ms(stats.minimum),
                        "Avg", format_ms(stats.mean, "{:.1f}"), "Max", format_ms(stats.maximum))
        chart = Text(sparkline([s.round_trip_ms for s in self.series.snapshot()], width), style="cyan")
        title = f"Latency Server {config.PAGE_SUFFIX}".strip()
        return Panel(Group(summary, chart), title=title, subtitle=f"{stats.count} samples")


@app.command()
def main(
    url: str = typer.Option(
        f"http://127.0.0.1:{config.SERVER_PORT}", '-u', '--url',
        help='Base URL of the latency server.'
    ),
    transport: str = typer.Option(
        Transport.POLLED.value, '-t', '--transport',
        help='REST (polled) or WS (streamed).'
    ),
    period_ms: int = typer.Option(
        config.DEFAULT_PERIOD_MS, '-p', '--period-ms',
        help='Sampling period in ms, 0 for as fast as possible.'
    ),
    window_ms: int = typer.Option(
        config.DEFAULT_WINDOW_MS, '-w', '--window-ms',
        help='Time range kept on screen, in ms.'
    ),
    refresh: float = typer.Option(
        4.0, '-r', '--refresh', min=0.1,
        help='Screen refreshes per second.'
    ),
    duration: float = typer.Option(
        0.0, '-d', '--duration',
        help='Stop after this many seconds (0 = until Ctrl+C).'
    ),
):
    """Samples latency against a server and draws it live."""
    try:
        config.setup_logging()
        cfg = SamplingConfig(transport=transport, period_ms=period_ms, running=True, window_ms=window_ms)
    except ValueError as e:
        raise typer.BadParameter(str(e))

    worker = SamplerWorker(url)
    worker.start()
    monitor = LatencyMonitor(worker, cfg)
    monitor.apply(cfg)
    deadline = time.monotonic() + duration if duration > 0 else None
    try:
        with Live(monitor.render(), console=console, refresh_per_second=refresh) as live:
            while deadline is None or time.monotonic() < deadline:
                monitor.drain()
                live.update(monitor.render())
                time.sleep(1.0 / refresh)
    except KeyboardInterrupt:
        console.print("[yellow]Monitor stopped by user.[/yellow]")
    finally:
        worker.stop()


if __name__ == "__main__":
    app()
