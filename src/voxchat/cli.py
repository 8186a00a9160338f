"""
VoxChat CLI

Command-line interface for running and inspecting the chat server.
"""

import sys

import click
import structlog

from voxchat import __version__
from voxchat.config import ConfigurationError, get_settings
from voxchat.logging import configure_logging

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
# CLI Group
# ══════════════════════════════════════════════════════════════


@click.group()
@click.version_option(version=__version__, prog_name="voxchat")
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """VoxChat - group chat with live speech transcription."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


def _load_settings():
    try:
        return get_settings()
    except ConfigurationError as e:
        click.echo(f"ERROR: {e}", err=True)
        click.echo("Set DEEPGRAM_API_KEY in the environment or a .env file.", err=True)
        sys.exit(1)


# ══════════════════════════════════════════════════════════════
# Server Commands
# ══════════════════════════════════════════════════════════════


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default: HOST setting)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: PORT setting)")
@click.option("--reload/--no-reload", default=False, help="Enable auto-reload")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the chat server."""
    import uvicorn

    settings = _load_settings()

    debug = ctx.obj.get("debug", False)
    configure_logging(
        "DEBUG" if debug else settings.log_level,
        json=settings.log_json,
    )

    host = host or settings.host
    port = port or settings.port

    click.echo(f"Starting VoxChat on http://{host}:{port}")
    click.echo(f"  - ws://{host}:{port}/ws/chat")

    uvicorn.run(
        "voxchat.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
        log_level="debug" if debug else settings.log_level.lower(),
    )


# ══════════════════════════════════════════════════════════════
# Config Commands
# ══════════════════════════════════════════════════════════════


@cli.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    click.echo("VoxChat Configuration\n")

    config_items = [
        ("Environment", settings.app_env),
        ("Debug", str(settings.debug)),
        ("Listen", f"{settings.host}:{settings.port}"),
        ("Static Dir", settings.static_dir),
        ("Deepgram URL", settings.deepgram_url),
        ("Deepgram API Key", settings.deepgram_api_key),
        ("Model", settings.transcription_model),
        ("Language", settings.transcription_language or "auto"),
        ("Sample Rate", str(settings.transcription_sample_rate)),
        ("Keep-alive (s)", str(settings.transcription_keepalive_interval)),
    ]

    for key, value in config_items:
        # Mask sensitive values
        if "key" in key.lower() or "secret" in key.lower():
            value = "***" if value else "Not set"
        click.echo(f"  {key:20} {value}")


# ══════════════════════════════════════════════════════════════
# Entry Point
# ══════════════════════════════════════════════════════════════


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
