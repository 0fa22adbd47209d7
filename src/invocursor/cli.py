"""CLI tool for running and managing Invocursor."""

from pathlib import Path
from typing import Optional

import typer
import uvicorn
from jsonschema import validate as json_validate
from jsonschema.exceptions import ValidationError as JsonSchemaValidationError
from pydantic import ValidationError
from typing_extensions import Annotated

from invocursor.app import create_app
from invocursor.auth.manager import AuthManager
from invocursor.models.account import TIERS
from invocursor.models.app_config import AppConfig
from invocursor.models.enums import ExecutionMode
from invocursor.observability.logging import setup_logging
from invocursor.persistence.sql_repository import SQLRepository
from invocursor.registry.config_loader import ConfigLoader, read_config_file
from invocursor.settings import Settings


app = typer.Typer(help="Invocursor management CLI")
key_app = typer.Typer(help="Manage API keys")
config_app = typer.Typer(help="Manage page/element configs")

app.add_typer(key_app, name="key")
app.add_typer(config_app, name="config")


def get_settings() -> Settings:
    return Settings.from_env()


def get_repo():
    return SQLRepository(get_settings().database_url)


@app.command("serve")
def serve(
    host: Annotated[Optional[str], typer.Option(help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option(help="Bind port")] = None,
):
    """Runs the HTTP API server."""
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
    )


@app.command("widget")
def widget(
    url: Annotated[str, typer.Argument(help="URL of the host application")],
    server: Annotated[
        str, typer.Option(help="Invocursor server URL")
    ] = "http://localhost:3050",
    api_key: Annotated[
        Optional[str], typer.Option(help="API key sent as X-API-Key")
    ] = None,
    config: Annotated[
        Optional[str], typer.Option(help="Config name describing the app")
    ] = None,
    mode: Annotated[
        ExecutionMode, typer.Option(help="Initial execution mode")
    ] = ExecutionMode.FAST,
    headless: Annotated[
        bool, typer.Option(help="Hide the browser window")
    ] = False,
    download_dir: Annotated[
        Path, typer.Option(help="Where analytics exports are saved")
    ] = Path("."),
    plain: Annotated[
        bool, typer.Option(help="Use plain planning instead of chat")
    ] = False,
    panel_port: Annotated[
        int, typer.Option(help="Port of the widget panel")
    ] = 7860,
):
    """Opens URL in a browser and serves the widget panel that drives it."""
    from invocursor.ui.layout import create_ui
    from invocursor.widget.browser import BrowserHost
    from invocursor.widget.client import InvocursorClient
    from invocursor.widget.controller import WidgetController

    settings = get_settings()
    setup_logging(settings.log_level)

    host = BrowserHost(url, headless=headless)
    controller = WidgetController(
        client=InvocursorClient(server, api_key=api_key),
        driver_factory=host.driver,
        config_name=config or settings.default_config,
        mode=mode,
        download_dir=download_dir,
        conversational=not plain,
        on_close=host.stop,
    )
    try:
        create_ui(controller).launch(server_port=panel_port)
    finally:
        controller.close()


@key_app.command("create")
def key_create(
    name: Annotated[str, typer.Option(help="Account name")] = "New Account",
    tier: Annotated[
        str, typer.Option(help=f"Tier: {', '.join(TIERS)}")
    ] = "starter",
    config: Annotated[
        Optional[list[str]],
        typer.Option("--config", help="Allowed config (repeatable, '*' for all)"),
    ] = None,
    analytics_password: Annotated[
        Optional[str], typer.Option(help="Analytics export password")
    ] = None,
):
    """Issues a new API key."""
    manager = AuthManager(get_repo())
    try:
        record = manager.create_key(
            name=name,
            tier=tier,
            configs=config or [],
            analytics_password=analytics_password,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    policy = TIERS[record.tier]
    typer.echo(f"API key created: {record.key}")
    typer.echo(f"Tier: {policy.name} ({policy.weekly_limit} requests/week)")


@key_app.command("list")
def key_list():
    """Lists all issued API keys (masked)."""
    records = get_repo().list_api_keys()
    if not records:
        typer.echo("No API keys found.")
        return

    for r in records:
        configs = ", ".join(r.configs) or "-"
        password = "yes" if r.analytics_password_hash else "no"
        typer.echo(
            f"{r.masked_key} {r.name} [{r.tier}] configs: {configs} "
            f"analytics password: {password}"
        )


@key_app.command("set-password")
def key_set_password(
    key: Annotated[str, typer.Argument(help="API key or unique prefix")],
    password: Annotated[
        str,
        typer.Option(
            help="Analytics password",
            prompt=True,
            hide_input=True,
            confirmation_prompt=True,
        ),
    ],
):
    """Sets the analytics export password of a key."""
    manager = AuthManager(get_repo())
    record = manager.find_key(key)
    if record is None:
        typer.echo(f"Error: API key not found: {key}", err=True)
        raise typer.Exit(code=1)
    manager.set_analytics_password(record, password)
    typer.echo(f"Analytics password set for {record.masked_key}")


@config_app.command("list")
def config_list(
    configs_dir: Annotated[
        Optional[Path], typer.Option(help="Configs directory")
    ] = None,
):
    """Lists available configs."""
    loader = ConfigLoader(configs_dir or get_settings().configs_dir)
    names = loader.list_names()
    if not names:
        typer.echo("No configs found.")
        return
    for name in names:
        typer.echo(name)


@config_app.command("validate")
def config_validate(
    file_path: Annotated[
        Path, typer.Argument(help="Path to a config JSON/YAML file")
    ],
):
    """Validates a config file against the config schema."""
    if not file_path.exists():
        typer.echo(f"Error: File not found: {file_path}", err=True)
        raise typer.Exit(code=1)

    try:
        document = read_config_file(file_path)
    except Exception as e:
        typer.echo(f"Error parsing file: {str(e)}", err=True)
        raise typer.Exit(code=1)

    try:
        json_validate(instance=document, schema=AppConfig.model_json_schema())
        config = AppConfig.model_validate(document)
    except JsonSchemaValidationError as e:
        typer.echo(f"Validation Error: {e.message}", err=True)
        if e.path:
            typer.echo(f"Path: {'.'.join(str(p) for p in e.path)}", err=True)
        raise typer.Exit(code=1)
    except ValidationError as e:
        typer.echo(f"Validation Error: {e}", err=True)
        raise typer.Exit(code=1)

    elements = sum(len(p.elements) for p in config.pages.values())
    typer.echo(
        f"Config file {file_path} is valid: "
        f"{len(config.pages)} pages, {elements} elements."
    )


if __name__ == "__main__":
    app()
