"""Configuration commands: inspect resolved settings, list profiles, test a target."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Annotated, Any

import typer

from velox.cli.commands._shared import get_connection, reported_errors
from velox.core.config import DEFAULT_CONFIG_PATH, Engine, default_port, load_config, resolve_config

if TYPE_CHECKING:
    from pathlib import Path

    from velox.core.config import ConnectionProfile, ResolvedConfig

config_app = typer.Typer(help="Configuration management")

_CONNECTION_FIELDS = ("engine", "host", "port", "dbname", "user", "password")


@config_app.callback(invoke_without_command=True)
def config_callback(ctx: typer.Context) -> None:
    if not ctx.invoked_subcommand:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _config_path(ctx: typer.Context) -> Path:
    return ctx.obj.get("config_file") or DEFAULT_CONFIG_PATH


def _resolve(ctx: typer.Context) -> ResolvedConfig:
    overrides = {
        key: ctx.obj.get(key)
        for key in ("engine", "host", "port", "database", "user", "password")
        if ctx.obj.get(key) is not None
    }
    return resolve_config(
        load_config(ctx.obj.get("config_file")),
        profile_name=ctx.obj.get("profile"),
        dsn=ctx.obj.get("dsn"),
        **overrides,
    )


def _display_value(resolved: ResolvedConfig, field: str) -> Any:
    if field == "password":
        return None if resolved.password is None else "***"
    if field == "port":
        return resolved.effective_port
    value = getattr(resolved, field)
    return value.value if isinstance(value, Engine) else value


def _profile_target(profile: ConnectionProfile) -> str:
    if profile.engine is Engine.SQLITE:
        return f"sqlite:{profile.dbname or ':memory:'}"
    user = f"{profile.user}@" if profile.user else ""
    port = profile.port or default_port(profile.engine)
    return f"{profile.engine.value}://{user}{profile.host or '?'}:{port}/{profile.dbname or '?'}"


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the resolved settings as a JSON document"),
    ] = False,
) -> None:
    """Display the resolved connection target and where each setting came from."""
    with reported_errors(ctx):
        resolved = _resolve(ctx)
    reporting = ctx.obj["reporting"]
    sources = resolved.sources

    if as_json:
        document = {
            "target": resolved.describe(),
            "profile": resolved.active_profile,
            "config_file": str(_config_path(ctx)),
            "connection": {
                field: {"value": _display_value(resolved, field), "source": sources.get(field, "default")}
                for field in _CONNECTION_FIELDS
            },
            "timeout": resolved.default_timeout,
            "reporting": reporting.model_dump(),
            "sentry": ctx.obj.get("sentry_enabled", False),
        }
        typer.echo(json.dumps(document, indent=2))
        return

    typer.echo(f"Target: {resolved.describe()}")
    typer.echo(f"Profile: {resolved.active_profile or 'none'}")
    typer.echo(f"Config File: {_config_path(ctx)}")
    typer.echo("")
    typer.echo("Connection:")
    for field in _CONNECTION_FIELDS:
        if resolved.engine is Engine.SQLITE and field not in ("engine", "dbname"):
            continue
        value = _display_value(resolved, field)
        label = "database" if field == "dbname" else field
        typer.echo(f"  {label}: {'not set' if value is None else value} ({sources.get(field, 'default')})")
    typer.echo(f"  timeout: {resolved.default_timeout}s ({sources.get('default_timeout', 'default')})")
    typer.echo("")
    typer.echo("Error Reporting:")
    mode = "json" if reporting.json_output else "text"
    typer.echo(f"  mode: {mode}{', with stack traces' if reporting.stacktrace else ''}")
    typer.echo(f"  sentry: {'enabled' if ctx.obj.get('sentry_enabled') else 'disabled'}")


@config_app.command("profiles")
def config_profiles(ctx: typer.Context) -> None:
    """List connection profiles; the active one is marked with '*'."""
    with reported_errors(ctx):
        app_config = load_config(ctx.obj.get("config_file"))
    active = ctx.obj.get("profile") or app_config.default_profile

    if not app_config.profiles:
        typer.echo("No profiles configured.")
        typer.echo(f"Add [profiles.<name>] tables to: {_config_path(ctx)}")
        return

    width = max(len(name) for name in app_config.profiles)
    for name, profile in sorted(app_config.profiles.items()):
        marker = "*" if name == active else " "
        typer.echo(f"{marker} {name:<{width}}  {_profile_target(profile)}")


@config_app.command("check")
def config_check(
    ctx: typer.Context,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Statement timeout in seconds"),
    ] = None,
) -> None:
    """Open the resolved connection and run one round trip."""
    with reported_errors(ctx), get_connection(ctx, timeout=timeout) as conn:
        outcome = conn.run("SELECT 1 AS ok")
        typer.echo(f"{conn.describe()}: ok ({outcome.row_count} row)")
