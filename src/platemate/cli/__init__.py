"""Command-line interface for PlateMate.

Commands:
- serve: Run the HTTP server
- syncs: List registered synchronizations
- routes: Show how each concept route is served
"""

from __future__ import annotations

import json
import sys
import tempfile
from pathlib import Path

import click

from platemate.core.config import PlateMateConfig


@click.group()
@click.version_option(package_name="platemate")
def cli() -> None:
    """PlateMate - Fitness tracking backend composed by synchronizations."""


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", "-p", type=int, default=8000, show_default=True, help="Port to bind.")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: PLATEMATE_DB_PATH or ./platemate.db).",
)
def serve(host: str, port: int, db_path: str | None) -> None:
    """Run the PlateMate server.

    Configuration is read from PLATEMATE_* environment variables.

    Examples:

        platemate serve --port 8000

        PLATEMATE_BASE_URL=/v1 platemate serve --db-path /var/lib/platemate.db
    """
    import os

    import uvicorn

    if db_path:
        os.environ["PLATEMATE_DB_PATH"] = db_path

    try:
        config = PlateMateConfig.from_env()
    except ValueError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)

    click.echo(f"Starting PlateMate on http://{host}:{port}{config.base_url}")
    click.echo(f"   Database: {config.db_path}")
    uvicorn.run("platemate.server.app:app_factory", factory=True, host=host, port=port)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def syncs(as_json: bool) -> None:
    """List registered synchronizations in registration order."""
    from platemate.syncs import ALL_SYNCS

    described = [sync.describe() for sync in ALL_SYNCS]
    if as_json:
        click.echo(json.dumps(described, indent=2))
        return

    for entry in described:
        where = " (where)" if entry["has_where"] else ""
        click.echo(f"{entry['name']}{where}")
        click.echo(f"   when: {', '.join(entry['when'])}")
        click.echo(f"   then: {', '.join(entry['then'])}")


@cli.command()
def routes() -> None:
    """Show passthrough inclusions, exclusions and unverified routes."""
    from platemate.concepts import build_registry
    from platemate.server.database import Database
    from platemate.server.passthrough import EXCLUSIONS, INCLUSIONS, unverified_routes

    config = PlateMateConfig.from_env()

    # Registry only needs a schema, not real data
    with tempfile.TemporaryDirectory() as tmp:
        db = Database(Path(tmp) / "routes.db")
        try:
            unverified = unverified_routes(build_registry(db))
        finally:
            db.close()

    click.echo("Passthrough (included):")
    for route, reason in INCLUSIONS.items():
        click.echo(f"   {config.base_url}{route}  - {reason}")
    click.echo("Requests (excluded):")
    for route in EXCLUSIONS:
        click.echo(f"   {config.base_url}{route}")
    if unverified:
        click.echo("Unverified passthrough:")
        for route in unverified:
            click.echo(f"   {config.base_url}{route}")


def main() -> None:
    """Entry point for the platemate console script."""
    cli()


__all__ = ["cli", "main"]
