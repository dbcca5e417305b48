"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from predscan.config import configure_logging, get_settings

app = typer.Typer(
    name="predscan",
    help="predscan - Prediction market orderbooks, arbitrage and insider-activity screening.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


# Subcommands registered from other modules
from predscan.cli import api_cmd, markets, scan  # noqa: E402

app.add_typer(markets.app, name="markets")
app.add_typer(scan.app, name="scan")
app.add_typer(api_cmd.app, name="api")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
