"""CLI catalog command: list the working catalog, filtered and sorted."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

console = Console()


async def _load_view(category: str, sort: str) -> tuple[list, str]:
    from shopfront_lite.catalog.source import CatalogSource
    from shopfront_lite.config import Config
    from shopfront_lite.storage.datastore import DatastoreClient
    from shopfront_lite.storage.sqlite_store import SQLiteStore
    from shopfront_lite.store.engine import StoreEngine

    config = Config.from_env()
    config.ensure_dirs()
    store = SQLiteStore(config.db_path)
    datastore = DatastoreClient(config) if config.remote_enabled else None
    engine = StoreEngine(config, catalog_source=CatalogSource(datastore, store))
    try:
        await engine.start(warm_index=False)
        engine.filter_by_category(category)
        engine.set_sort_order(sort)
        return list(engine.state.products), engine.catalog_origin
    finally:
        await engine.close()
        if datastore is not None:
            await datastore.close()
        store.close()


def catalog_cmd(
    category: Annotated[str, typer.Option(help="Category to show, or All.")] = "All",
    sort: Annotated[
        str, typer.Option(help="relevance, price-low or price-high.")
    ] = "relevance",
) -> None:
    """Show the catalog the way a shopper would see it."""
    products, origin = asyncio.run(_load_view(category, sort))

    table = Table(title=f"Catalog ({origin}, {len(products)} products)")
    table.add_column("ID")
    table.add_column("Name", max_width=40)
    table.add_column("Category")
    table.add_column("Price", justify="right")
    for p in products:
        table.add_row(p.id, p.name, p.category, f"{p.price:,.0f}")
    console.print(table)
