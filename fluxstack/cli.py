"""Command line entry points for running and inspecting the catalog."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import click

from fluxstack.config import get_settings
from fluxstack.enrichment import enrich_url
from fluxstack.errors import ValidationError
from fluxstack.logging_config import setup_logging
from fluxstack.moderation import ModerationService
from fluxstack.search import ALL_CATEGORIES
from fluxstack.search import search_catalog
from fluxstack.storage import get_store

logger = logging.getLogger(__name__)


@click.group()
def main() -> None:
    """Fluxstack AI tool directory."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)


@main.command()
@click.option("--host", default=None, help="Interface to bind (defaults to WEB_HOST).")
@click.option("--port", default=None, type=int, help="Port to bind (defaults to WEB_PORT).")
@click.option("--reload", is_flag=True, help="Restart on code changes.")
def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    """Run the web app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "fluxstack.web:app",
        host=host or settings.web_host,
        port=port or settings.web_port,
        reload=reload,
    )


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def seed(path: Path) -> None:
    """Publish tools from a JSON file (a list, or {"tools": [...]})."""
    data = json.loads(path.read_text())
    entries = data.get("tools", []) if isinstance(data, dict) else data

    store = get_store()
    service = ModerationService(store)
    published = 0
    for index, entry in enumerate(entries, 1):
        try:
            tool = service.publish(entry)
        except ValidationError as e:
            logger.warning(f"Skipping entry {index}: {e.message} ({e.field})")
            continue
        published += 1
        click.echo(f"{tool.id}\t{tool.name}")

    click.echo(f"Published {published}/{len(entries)} tools to {store.backend_name} storage")


@main.command()
@click.argument("query", default="")
@click.option("--category", default=ALL_CATEGORIES, show_default=True, help="Exact category filter.")
@click.option("--limit", default=None, type=int, help="Maximum results (capped at 100).")
def search(query: str, category: str, limit: Optional[int]) -> None:
    """Print ranked tools for a query."""
    tools = ModerationService(get_store()).list_tools()
    result = search_catalog(tools, query, category, limit)

    if result.inferred_category:
        click.echo(f"inferred_category={result.inferred_category}")
    for tool in result.tools:
        click.echo(f"{tool.votes:>5}  {tool.name} [{tool.category}] {tool.url}")
    click.echo(f"{len(result.tools)} of {len(tools)} tools")


@main.command()
@click.argument("url")
@click.option("--timeout", default=None, type=float, help="Fetch timeout in seconds.")
def enrich(url: str, timeout: Optional[float]) -> None:
    """Print the pre-fill metadata for a URL."""
    enrichment = asyncio.run(enrich_url(url, timeout=timeout))
    click.echo(json.dumps(enrichment.to_record(), indent=2))


if __name__ == "__main__":
    main()
