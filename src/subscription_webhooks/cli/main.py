#!/usr/bin/env python3
"""
CLI interface for the subscription webhook service.
"""

import json

import click
import uvicorn
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table

from subscription_webhooks.core.exceptions import ConfigurationError
from subscription_webhooks.webhooks.config import WebhookConfig
from subscription_webhooks.webhooks.services import load_store_factory

console = Console()


def _load_config() -> WebhookConfig:
    try:
        return WebhookConfig()
    except PydanticValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


@click.group()
@click.version_option(version="1.0.0")
def app():
    """Subscription WebHooks CLI."""
    pass


@app.command()
@click.option("--host", default=None, help="Host to bind to (defaults to WEBHOOK_HOST)")
@click.option("--port", default=None, type=int, help="Port to bind to (defaults to WEBHOOK_PORT)")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str | None, port: int | None, reload: bool):
    """Start the notification endpoint."""
    config = _load_config()
    if host is None:
        host = config.host
    if port is None:
        port = config.port

    try:
        load_store_factory(config.store_factory)
    except ConfigurationError as e:
        raise click.ClickException(e.message)

    logger.info(f"Starting webhook server on {host}:{port}")
    uvicorn.run(
        "subscription_webhooks.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


@app.group()
def config():
    """Configuration commands."""
    pass


@config.command()
@click.option("--format", "output_format", default="table", type=click.Choice(["table", "json"]), help="Output format")
def show(output_format: str):
    """Show the effective configuration."""
    settings = _load_config()

    if output_format == "json":
        click.echo(json.dumps(settings.model_dump(mode="json"), indent=2))
        return

    table = Table(title="Webhook Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


@config.command()
def validate():
    """Validate the configuration and the store factory."""
    settings = _load_config()
    result = settings.validate_config()

    if result["valid"]:
        try:
            load_store_factory(settings.store_factory)
        except ConfigurationError as e:
            result["valid"] = False
            result["errors"].append(e.message)

    for warning in result["warnings"]:
        click.echo(f"⚠️  {warning}")
    for error in result["errors"]:
        click.echo(f"❌ {error}")

    if not result["valid"]:
        raise click.ClickException("Configuration is invalid")

    click.echo("✅ Configuration is valid")


if __name__ == "__main__":
    app()
