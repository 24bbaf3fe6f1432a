"""Root Typer app for the shopfront CLI."""

from __future__ import annotations

import typer

app = typer.Typer(
    name="shopfront",
    help="shopfront-lite: Semantic product discovery and cart service.",
    no_args_is_help=True,
)


def serve_cmd() -> None:
    """Run the store service in the foreground on its Unix socket."""
    from shopfront_lite.config import Config
    from shopfront_lite.worker.server import run_worker

    config = Config.from_env()
    config.ensure_dirs()
    if config.socket_path.exists():
        config.socket_path.unlink()
    run_worker(config)


def _register_commands() -> None:
    """Register all CLI commands."""
    from shopfront_lite.cli.catalog_cmd import catalog_cmd
    from shopfront_lite.cli.search_cmd import search_cmd
    from shopfront_lite.cli.status_cmd import status_cmd

    app.command(name="search")(search_cmd)
    app.command(name="catalog")(catalog_cmd)
    app.command(name="status")(status_cmd)
    app.command(name="serve")(serve_cmd)


_register_commands()
