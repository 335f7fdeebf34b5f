"""CLI commands for packhub."""

import asyncio
from pathlib import Path

import click

from packhub.config import clear_settings_cache, get_settings, set_config_path


@click.group()
@click.version_option(package_name="packhub")
@click.option(
    "-f",
    "--config-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the YAML config file (defaults to ./app.yaml)",
)
def cli(config_file):
    """packhub - pack and asset distribution server."""
    if config_file:
        set_config_path(Path(config_file))
        clear_settings_cache()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=3000, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def serve(host, port, reload, log_level):
    """Run the packhub server."""
    import signal

    from hypercorn.asyncio import serve as hypercorn_serve
    from hypercorn.config import Config

    config = Config()
    config.application_path = "packhub.asgi:create_app()"
    config.bind = [f"{host}:{port}"]
    config.loglevel = log_level.upper()
    config.include_server_header = False

    if reload:
        config.use_reloader = True
        from hypercorn.run import run
        run(config)
        return

    from packhub.asgi import create_app
    from packhub.lib import observability

    app = observability.instrument_app(create_app())
    shutdown_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    loop.add_signal_handler(signal.SIGINT, shutdown_event.set)
    loop.add_signal_handler(signal.SIGTERM, shutdown_event.set)
    try:
        loop.run_until_complete(
            hypercorn_serve(app, config, shutdown_trigger=shutdown_event.wait)
        )
    finally:
        loop.close()


@cli.command()
@click.option("--rotate", is_flag=True, help="Replace the existing key with a new one")
def token(rotate):
    """Print the API key, generating one if none exists."""
    from packhub.auth.api_key import ensure_api_token

    settings = get_settings()
    path = Path(settings.auth.token_path)
    click.echo(ensure_api_token(path, rotate=rotate))
    if rotate:
        click.echo(f"Wrote new key to {path}; restart the server to apply it.", err=True)


@cli.command("sweep-staging")
@click.option(
    "--max-age",
    type=int,
    default=None,
    help="Remove staging directories idle for this many seconds (default from config)",
)
def sweep_staging(max_age):
    """Remove abandoned chunked-upload staging directories."""
    from packhub.lib.storage import BlobPathResolver, ChunkAssembler

    settings = get_settings()
    if max_age is None:
        max_age = settings.storage.staging_max_age

    assembler = ChunkAssembler(BlobPathResolver(Path(settings.storage.base_path)))
    removed = asyncio.run(assembler.sweep_staging(max_age))
    for name in removed:
        click.echo(f"removed {name}")
    click.echo(f"{len(removed)} staging director{'y' if len(removed) == 1 else 'ies'} removed")


@cli.command()
@click.argument("filenames", nargs=-1, required=True)
def collect(filenames):
    """Delete the given asset files if no pack references them."""
    from packhub.asgi import build_db_config, make_reference_counter
    from packhub.db.base import Base
    from packhub.lib.storage import BlobPathResolver, GarbageCollector

    settings = get_settings()
    db_config = build_db_config(settings)

    async def run():
        async with db_config.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        collector = GarbageCollector(
            BlobPathResolver(Path(settings.storage.base_path)),
            make_reference_counter(db_config.create_session_maker()),
        )
        try:
            return await collector.collect(filenames)
        finally:
            await db_config.get_engine().dispose()

    outcomes = asyncio.run(run())
    for name, outcome in outcomes.items():
        reason = f" ({outcome.reason})" if outcome.reason else ""
        click.echo(f"{name}: {outcome.status}{reason}")
