"""CLI status command: system health check."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from rich.console import Console

if TYPE_CHECKING:
    from shopfront_lite.config import Config

console = Console()


def _check_worker(config: Config) -> bool:
    """Check if the service is running via socket health check."""
    socket_path = config.socket_path
    if not socket_path.exists():
        return False
    try:
        transport = httpx.HTTPTransport(uds=str(socket_path))
        with httpx.Client(transport=transport, timeout=2.0) as client:
            resp = client.get("http://localhost/api/health")
            return resp.status_code == 200
    except httpx.HTTPError:
        return False


def status_cmd() -> None:
    """Show system health status."""
    from shopfront_lite.config import Config
    from shopfront_lite.storage.sqlite_store import SQLiteStore

    config = Config.from_env()

    console.print("[bold]shopfront-lite status[/bold]\n")
    console.print(f"Home dir:   {config.base_dir}")
    console.print(f"Database:   {config.db_path}")
    console.print(f"Socket:     {config.socket_path}")
    console.print()

    if config.remote_enabled:
        console.print(f"[green]Datastore: {config.datastore_url}[/green]")
    else:
        console.print("[yellow]Datastore: NOT CONFIGURED (local search only)[/yellow]")
    if config.payment_session_url:
        console.print("[green]Payments: CONFIGURED[/green]")
    else:
        console.print("[yellow]Payments: NOT CONFIGURED[/yellow]")

    if not config.db_path.exists():
        console.print("[yellow]Database: NOT CREATED[/yellow]")
    else:
        store = SQLiteStore(config.db_path)
        try:
            console.print("[green]Database: OK[/green]")
            console.print(f"  Catalog snapshot: {store.count_products()} products")
            counts = store.event_counts()
            for event_type in sorted(counts):
                console.print(f"  {event_type}: {counts[event_type]}")
        finally:
            store.close()

    if _check_worker(config):
        console.print("[green]Service: RUNNING[/green]")
    else:
        console.print("[yellow]Service: NOT RUNNING[/yellow]")
