"""Typer CLI for OpenEvents."""

from __future__ import annotations

import json
from pathlib import Path

from sqlalchemy.exc import OperationalError
import typer
import uvicorn

from .config import (
    load_settings,
    settings,
    settings_as_dict,
    update_config_file,
)
from .maintenance import vacuum_database
from .scheduler import start_scheduler, stop_scheduler
from .seed import seed_fake_data
from .storage import (
    ensure_root_token,
    fetch_root_token,
    init_db,
    rotate_root_token,
    upgrade_database,
)

app = typer.Typer(help="OpenEvents command-line interface")


def _exit_if_readonly(exc: OperationalError, action: str) -> None:
    message = str(getattr(exc, "orig", exc)).lower()
    if "readonly" in message or "read-only" in message:
        typer.secho(
            f"Unable to {action} because the database is read-only. "
            f"Ensure the process can write to {settings.database_path}.",
            err=True,
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("admin-token")
def admin_token() -> None:
    """Print the current root admin token."""
    init_db()
    typer.echo(fetch_root_token())


@app.command("rotate-admin-token")
def rotate_admin_token() -> None:
    """Rotate the root admin token."""
    try:
        init_db()
        token = rotate_root_token()
    except OperationalError as exc:
        _exit_if_readonly(exc, "rotate the root admin token")
        raise
    typer.echo(token)


@app.command("upgrade-db")
def upgrade_db(
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of the database before upgrading",
    ),
) -> None:
    """Upgrade the database schema if needed."""
    try:
        actions = upgrade_database(make_backup=not no_backup)
    except OperationalError as exc:
        _exit_if_readonly(exc, "upgrade")
        raise

    if not actions:
        typer.echo("Database already up to date.")
        return

    ensure_root_token()
    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


@app.command("vacuum")
def vacuum() -> None:
    """Run SQLite VACUUM now."""
    init_db()
    elapsed = vacuum_database()
    typer.echo(f"Database vacuum complete ({elapsed:.2f}s).")


@app.command("runserver")
def runserver(
    host: str = typer.Option(settings.app_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.app_port, "--port", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Start FastAPI with APScheduler."""
    init_db()
    start_scheduler()
    config = uvicorn.Config(
        "openevents.api:app",
        host=host,
        port=port,
        reload=reload,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    server = uvicorn.Server(config)
    try:
        typer.echo(f"Starting OpenEvents on {host}:{port}")
        server.run()
    finally:
        stop_scheduler()


@app.command("seed-data")
def seed_data(
    users: int = typer.Option(
        settings.seed_users, "--users", min=2, help="Number of users to create"
    ),
    categories: int = typer.Option(
        settings.seed_categories,
        "--categories",
        min=1,
        help="Number of categories to make sure exist",
    ),
    events: int = typer.Option(
        settings.seed_events, "--events", min=0, help="Number of events to create"
    ),
    publish_percent: int = typer.Option(
        70,
        "--publish-percent",
        min=0,
        max=100,
        help="Percentage of events to publish (0-100)",
    ),
    max_requests: int = typer.Option(
        5,
        "--max-requests",
        min=0,
        help="Maximum participation requests per published event",
    ),
):
    """Populate the database with fake users, events and requests."""
    stats = seed_fake_data(
        user_count=users,
        category_count=categories,
        event_count=events,
        publish_percentage=publish_percent,
        max_requests_per_event=max_requests,
    )
    typer.echo(
        f"Seed complete: {stats['users']} users, {stats['categories']} categories, "
        f"{stats['events']} events ({stats['published']} published), "
        f"{stats['requests']} requests created."
    )


@app.command("config")
def configure(
    show: bool = typer.Option(
        False, "--show", help="Show the current effective configuration"
    ),
    authoring_lead_hours: int | None = typer.Option(
        None,
        "--authoring-lead-hours",
        min=0,
        help="Minimum hours between now and the event date when authoring",
    ),
    publish_lead_hours: int | None = typer.Option(
        None,
        "--publish-lead-hours",
        min=0,
        help="Minimum hours between now and the event date when publishing",
    ),
    stats_service_url: str | None = typer.Option(
        None, "--stats-service-url", help="Base url of the statistics service"
    ),
    stats_timeout_seconds: float | None = typer.Option(
        None,
        "--stats-timeout-seconds",
        min=0.1,
        help="Timeout for statistics service calls",
    ),
    stats_app_name: str | None = typer.Option(
        None, "--stats-app-name", help="App name sent with view hits"
    ),
    events_per_page: int | None = typer.Option(
        None, "--events-per-page", min=1, help="Default page size"
    ),
    comment_preview_limit: int | None = typer.Option(
        None,
        "--comment-preview-limit",
        min=0,
        help="Approved comments shown with a public event",
    ),
    vacuum_hours: int | None = typer.Option(
        None, "--vacuum-hours", min=1, help="Hours between SQLite VACUUM runs"
    ),
    enable_scheduler: bool | None = typer.Option(
        None,
        "--enable-scheduler/--disable-scheduler",
        help="Toggle background scheduler (vacuum)",
    ),
    seed_users: int | None = typer.Option(
        None, "--seed-users", min=2, help="Default seed-data users"
    ),
    seed_categories: int | None = typer.Option(
        None, "--seed-categories", min=1, help="Default seed-data categories"
    ),
    seed_events: int | None = typer.Option(
        None, "--seed-events", min=0, help="Default seed-data events"
    ),
    host: str | None = typer.Option(None, "--host", help="Default host for runserver"),
    port: int | None = typer.Option(None, "--port", help="Default port for runserver"),
    config_path: Path | None = typer.Option(
        None,
        "--config-path",
        help="Path to openevents.toml (default: ./openevents.toml)",
    ),
):
    """View or update the persistent configuration file."""

    updates = {
        "authoring_lead_hours": authoring_lead_hours,
        "publish_lead_hours": publish_lead_hours,
        "stats_service_url": stats_service_url,
        "stats_timeout_seconds": stats_timeout_seconds,
        "stats_app_name": stats_app_name,
        "events_per_page": events_per_page,
        "comment_preview_limit": comment_preview_limit,
        "sqlite_vacuum_hours": vacuum_hours,
        "enable_scheduler": enable_scheduler,
        "seed_users": seed_users,
        "seed_categories": seed_categories,
        "seed_events": seed_events,
        "app_host": host,
        "app_port": port,
    }
    clean_updates = {k: v for k, v in updates.items() if v is not None}

    target_path = config_path or settings.config_path
    if clean_updates:
        settings_ref = update_config_file(clean_updates, path=target_path)
        typer.echo(f"Updated configuration in {target_path}")
    else:
        settings_ref = load_settings(target_path)
    if show or not clean_updates:
        effective = settings_as_dict(settings_ref)
        effective["config_path"] = str(target_path)
        typer.echo(json.dumps(effective, indent=2))


if __name__ == "__main__":
    app()
