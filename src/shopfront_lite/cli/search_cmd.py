"""CLI search command: product search via the running service, or in-process."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Annotated

import httpx
import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from shopfront_lite.config import Config
    from shopfront_lite.storage.models import SearchFilters

console = Console()
logger = logging.getLogger(__name__)


def _discover_worker(config: Config) -> str | None:
    """Check if the service is running and healthy, return socket path or None."""
    socket_path = config.socket_path
    if not socket_path.exists():
        return None
    try:
        transport = httpx.HTTPTransport(uds=str(socket_path))
        with httpx.Client(transport=transport, timeout=2.0) as client:
            resp = client.get("http://localhost/api/health")
            if resp.status_code == 200:
                return str(socket_path)
    except httpx.HTTPError:
        pass
    return None


def _search_worker(
    query: str, filters: SearchFilters, limit: int, socket_path: str
) -> dict | None:
    """Search via running service. Returns the response body or None on error."""
    params: dict = {"q": query, "limit": limit, **filters.model_dump(exclude_none=True)}
    try:
        transport = httpx.HTTPTransport(uds=socket_path)
        with httpx.Client(transport=transport, timeout=5.0) as client:
            resp = client.get(
                "http://localhost/api/search",
                params=params,
                headers={"X-Session-Id": "cli"},
            )
            if resp.status_code == 200:
                return resp.json()  # type: ignore[no-any-return]
    except (httpx.HTTPError, ValueError):
        pass
    return None


async def _search_local(
    config: Config, query: str, filters: SearchFilters, limit: int
) -> dict:
    """Run the search cascade in this process against the local catalog."""
    from shopfront_lite.catalog.source import CatalogSource
    from shopfront_lite.search.embedder import get_embedder
    from shopfront_lite.search.hybrid import HybridSearcher
    from shopfront_lite.search.vector_cache import VectorCache
    from shopfront_lite.storage.datastore import DatastoreClient
    from shopfront_lite.storage.sqlite_store import SQLiteStore

    config.ensure_dirs()
    store = SQLiteStore(config.db_path)
    datastore = DatastoreClient(config) if config.remote_enabled else None
    try:
        products, _origin = await CatalogSource(datastore, store).load()
        embedder = get_embedder(config)
        cache = VectorCache(config, embedder)
        try:
            await asyncio.to_thread(cache.connect)
        except Exception:
            logger.warning("Vector cache not persisted, continuing in memory", exc_info=True)
        await cache.warm(products)
        searcher = HybridSearcher.default(config, embedder, cache, datastore)
        result = await searcher.search(query, products, filters, limit)
    finally:
        if datastore is not None:
            await datastore.close()
        store.close()

    by_id = {p.id: p for p in products}
    results = [
        {**by_id[m.product_id].model_dump(exclude={"embedding"}), "score": m.score}
        for m in result.matches
        if m.product_id in by_id
    ]
    return {"query": query, "source": str(result.source), "count": len(results), "results": results}


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language product query.")],
    category: Annotated[str | None, typer.Option(help="Only this category.")] = None,
    min_price: Annotated[float | None, typer.Option(help="Minimum price.")] = None,
    max_price: Annotated[float | None, typer.Option(help="Maximum price.")] = None,
    limit: Annotated[int, typer.Option(help="Maximum results to return.")] = 5,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
) -> None:
    """Search products using the service or an in-process fallback."""
    from shopfront_lite.config import Config
    from shopfront_lite.storage.models import SearchFilters

    config = Config.from_env()
    filters = SearchFilters(category=category, min_price=min_price, max_price=max_price)

    data = None
    socket_path = _discover_worker(config)
    if socket_path:
        data = _search_worker(query, filters, limit, socket_path)
    if data is None:
        data = asyncio.run(_search_local(config, query, filters, limit))

    if output_json:
        typer.echo(json.dumps(data, indent=2))
        return

    results = data.get("results", [])
    if not results:
        console.print("[dim]No results found.[/dim]")
        return

    table = Table(title=f"Search Results ({data.get('source', '?')})", show_lines=True)
    table.add_column("ID")
    table.add_column("Name", max_width=40)
    table.add_column("Category")
    table.add_column("Price", justify="right")
    table.add_column("Score", justify="right")

    for r in results:
        score = r.get("score")
        table.add_row(
            str(r.get("id", "")),
            r.get("name", ""),
            r.get("category", ""),
            f"{r.get('price', 0):,.0f}",
            f"{score:.3f}" if score is not None else "-",
        )
    console.print(table)
