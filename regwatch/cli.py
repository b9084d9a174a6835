"""
Command-line interface for regwatch.

Usage:
    regwatch run            # Run one pipeline invocation
    regwatch serve          # Start the HTTP API
    regwatch init-db        # Create tables and seed sources
    regwatch seed-sources   # Reload the source registry from JSON
    regwatch health         # Check database and integrations
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from regwatch.config.settings import get_settings
from regwatch.observability.logging import setup_logging
from regwatch.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Regwatch - regulatory alert ingestion pipeline."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--region", default=None, help="Only run sources for this region")
@click.option("--agency", default=None, help="Only run sources for this agency")
@click.option("--force-refresh", is_flag=True, help="Ignore per-source cooldowns")
@click.option("--test-mode", is_flag=True, help="Write to the scratch table only")
def run(region: str | None, agency: str | None, force_refresh: bool, test_mode: bool) -> None:
    """Run one pipeline invocation and print the result as JSON."""
    from regwatch.pipeline.orchestrator import PipelineOrchestrator
    from regwatch.pipeline.schemas import PipelineRequest
    from regwatch.storage.database import Database

    async def invoke() -> dict:
        async with Database() as db:
            orchestrator = PipelineOrchestrator(db)
            result = await orchestrator.run(
                PipelineRequest(
                    region=region,
                    agency=agency,
                    force_refresh=force_refresh,
                    test_mode=test_mode,
                )
            )
            return result.to_response()

    response = asyncio.run(invoke())
    click.echo(json.dumps(response, indent=2))


@main.command("init-db")
@click.option("--no-seed", is_flag=True, help="Do not seed the source registry")
def init_db(no_seed: bool) -> None:
    """Initialize the database schema."""
    from regwatch.alerts.repository import AlertRepository
    from regwatch.monitoring.repository import ErrorLogRepository, FreshnessRepository
    from regwatch.pipeline.config import PipelineConfig
    from regwatch.pipeline.cooldown import CooldownStore
    from regwatch.sources.service import SourcesService
    from regwatch.storage.database import Database

    async def create():
        async with Database() as db:
            sources = SourcesService(db)
            await sources.repository.create_table()
            await AlertRepository(db).create_table()
            await AlertRepository(db, PipelineConfig().scratch_table).create_table()
            await CooldownStore(db).create_table()
            await FreshnessRepository(db).create_table()
            await ErrorLogRepository(db).create_table()
            if not no_seed:
                await sources.ensure_seeded()

        click.echo("Database initialized successfully")

    asyncio.run(create())


@main.command("seed-sources")
@click.option(
    "--path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Seed file (defaults to the bundled registry)",
)
def seed_sources(path: Path | None) -> None:
    """Upsert the source registry from a JSON file."""
    from regwatch.sources.service import SourcesService
    from regwatch.storage.database import Database

    async def seed() -> int:
        async with Database() as db:
            return await SourcesService(db).seed_from_json(path)

    count = asyncio.run(seed())
    click.echo(f"Seeded {count} sources")


@main.command()
def health() -> None:
    """Check health of the database and configured integrations."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            from regwatch.storage.database import Database
            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["slack_configured"] = settings.slack_configured
        results["pagerduty_configured"] = settings.pagerduty_configured
        results["summarizer_configured"] = settings.summarizer_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))

        click.echo("-" * 40)

        if results["postgres"]:
            click.echo(click.style("Database healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Database unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the pipeline API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "regwatch.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
