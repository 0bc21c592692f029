from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from loguru import logger

from .builder import StatementBuilder, build_payload_records
from .classifier import classify
from .config import PipelineConfig, Settings, load_settings
from .errors import ConfigurationError
from .pipeline import build_pipeline
from .stream import parse_stream_event

app = typer.Typer(help="resource-archive operational CLI")


def event_arg() -> Path:
    return typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Saved change-stream event (JSON)"
    )


def _settings() -> Settings:
    try:
        return load_settings()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)


def _read_event(path: Path) -> dict:
    try:
        event = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.error(f"{path} is not valid JSON: {e}")
        raise typer.Exit(code=1)
    if not isinstance(event, dict):
        logger.error(f"{path} must hold a stream event object")
        raise typer.Exit(code=1)
    return event


@app.command("check-config")
def check_config():
    """Validate the environment configuration and print the TTL policy."""
    settings = _settings()
    config = PipelineConfig.from_settings(settings)
    typer.echo(
        json.dumps(
            {
                "table": config.table_name,
                "delivery_stream": config.delivery_stream_name,
                "ttl_policy": dict(config.ttl_policy),
                "statement_batch_size": config.statement_batch_size,
                "record_batch_size": config.record_batch_size,
            },
            indent=2,
        )
    )


@app.command("plan")
def plan(event_file: Path = event_arg()):
    """Show what an event would archive and stamp, without calling AWS."""
    config = PipelineConfig.from_settings(_settings())
    records = parse_stream_event(_read_event(event_file))
    split = classify(records, config.ttl_policy)
    built = StatementBuilder(config.table_name, config.ttl_policy).build(split.needs_ttl_stamp)
    typer.echo(
        json.dumps(
            {
                "records": len(records),
                "archive": [r.describe() for r in build_payload_records(split.expired_by_ttl)],
                "statements": [s.text for s in built.operations],
                "rejected": [str(e) for e in built.rejected],
            },
            indent=2,
        )
    )


@app.command("replay")
def replay(event_file: Path = event_arg()):
    """Run a saved event through the live pipeline; exit 1 if any sink degraded."""
    event = _read_event(event_file)
    pipeline = build_pipeline(_settings())

    async def _run():
        try:
            return await pipeline.process_event(event)
        finally:
            await pipeline.aclose()

    result = asyncio.run(_run())
    typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
    if not result.clean:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
