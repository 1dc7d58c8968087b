from __future__ import annotations

import json
import logging
import signal
import threading
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer

from .config import load_config
from .core.feed import BeadFeed
from .core.grid import Grid
from .core.records import PARITY, SIZE, Record
from .core.stats import streak_alert, tally
from .data.collector import BlockCollector, parse_blocks_response
from .utils.logging import setup_logging


app = typer.Typer(add_completion=False)
logger = logging.getLogger("beadroad")

KEY_CHOICES = {"parity": PARITY, "size": SIZE}
SYMBOLS = {"ODD": "O", "EVEN": "E", "BIG": "B", "SMALL": "S", None: "."}


def render_rows(grid: Grid) -> str:
    """Plain-text dump of a grid, one line per row."""
    if not grid:
        return ""
    return "\n".join(
        "".join(SYMBOLS.get(column[row].type, "?") for column in grid) for row in range(len(grid[0]))
    )


@app.command()
def rules(config: Optional[Path] = typer.Option(None, help="Path to config.yaml")) -> None:
    cfg = load_config(config)
    for rule in cfg.runtime.rules:
        marker = "*" if rule.id == cfg.runtime.active_rule_id else " "
        typer.echo(f"{marker} {rule.id:>6}  step={rule.step:<4} offset={rule.offset:<8} {rule.label}")


@app.command()
def run(
    rule: Optional[str] = typer.Option(None, help="Rule id to activate"),
    log_level: Optional[str] = typer.Option(None),
    config: Optional[Path] = typer.Option(None, help="Path to config.yaml"),
) -> None:
    cfg = load_config(config)
    setup_logging(log_level or cfg.env.LOG_LEVEL)

    active = cfg.runtime.active_rule(rule)
    feed = BeadFeed(cfg, active)

    def on_record(record: Record) -> None:
        window = feed.snapshot()
        alert = streak_alert(window, feed.rule, PARITY) or streak_alert(window, feed.rule, SIZE)
        logger.info(
            "New block",
            extra={
                "height": record.height,
                "parity": record.type,
                "size": record.size_type,
                "window": len(window),
                "streak": asdict(alert) if alert else None,
            },
        )

    collector = BlockCollector(cfg, feed, on_record=on_record)
    stop_event = threading.Event()

    def handle_signal(signum, frame):  # noqa: ANN001, D401
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    collector.start()
    typer.echo(f"Following {cfg.backend_url} with rule {active.id}. Press Ctrl+C to stop.")
    try:
        while not stop_event.is_set():
            time.sleep(0.5)
    finally:
        collector.stop()


@app.command()
def replay(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON dump of blocks"),
    rule: Optional[str] = typer.Option(None, help="Rule id to apply"),
    key: str = typer.Option("parity", help="parity or size"),
    as_json: bool = typer.Option(False, "--json", help="Emit grid cells as JSON"),
    config: Optional[Path] = typer.Option(None, help="Path to config.yaml"),
) -> None:
    """Rebuild the window from a saved block dump and print its bead grid."""
    if key not in KEY_CHOICES:
        raise typer.BadParameter(f"key must be one of {sorted(KEY_CHOICES)}")
    cfg = load_config(config)
    with open(path, "r", encoding="utf-8") as fh:
        records = parse_blocks_response(json.load(fh))

    active = cfg.runtime.active_rule(rule)
    feed = BeadFeed(cfg, active)
    feed.load(records)
    window = feed.snapshot()
    grid = feed.grid(KEY_CHOICES[key])

    if as_json:
        typer.echo(json.dumps([[asdict(cell) for cell in column] for column in grid]))
        return
    typer.echo(render_rows(grid))
    counts = ", ".join(f"{k}={v}" for k, v in tally(window, KEY_CHOICES[key]).items())
    typer.echo(f"rule={active.id} window={len(window)} {counts}")


if __name__ == "__main__":
    app()
