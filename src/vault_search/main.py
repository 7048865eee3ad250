import logging
from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from . import index_config
from .embeddings import BoundedEmbedder, EmbeddingCapability, GenAIProvider
from .errors import VaultSearchError
from .indexing import EmbeddingPipeline
from .models import DateRange, Query, SearchFilters
from .search import QueryEngine
from .storage import DuckDBStorage

app = Typer(help="Index markdown notes and search them by meaning or by exact terms.")
console = Console()


class StrategyChoice(str, Enum):
    semantic = "semantic"
    hybrid = "hybrid"
    exact = "exact"


@app.callback()
def configure(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Log indexing and search details.")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _build_embedder() -> EmbeddingCapability:
    return BoundedEmbedder(GenAIProvider(), max_concurrency=index_config.max_workers())


def _open_storage(db_path: str | None) -> DuckDBStorage:
    return DuckDBStorage(index_config.resolve_db_path(db_path))


@app.command()
def index(
    folder: Annotated[str, Argument(help="Folder of notes to index.")] = ".",
    db_path: Annotated[
        str | None, Option("--db-path", help="DuckDB file (defaults to VAULT_SEARCH_DB_PATH).")
    ] = None,
    cache_expiration: Annotated[
        float | None,
        Option("--cache-expiration", help="Seconds before stored embeddings go stale."),
    ] = None,
) -> None:
    """Chunk, embed and store every note under FOLDER."""
    storage = _open_storage(db_path)
    try:
        pipeline = EmbeddingPipeline(storage, _build_embedder())
        with console.status(status="Indexing notes..."):
            result = pipeline.index_folder(folder, cache_expiration=cache_expiration)
    except (ValueError, VaultSearchError) as exc:
        console.print(f"[bold red]Indexing failed:[/] {escape(str(exc))}")
        raise Exit(code=1) from exc
    finally:
        storage.close()

    content = (
        f"Indexed documents: {result.indexed_documents}\n"
        f"Embedding records: {result.embeddings_served}\n"
        f"Failed documents: {result.failed_documents}"
    )
    for source_id, error in sorted(result.failures.items()):
        content += f"\n  - {escape(source_id)}: {escape(error)}"
    console.print(
        Panel(
            content,
            title_align="left",
            title="Index Complete",
            border_style="bold green" if not result.failures else "bold yellow",
        )
    )


@app.command()
def search(
    text: Annotated[str, Argument(help="Query text.")],
    db_path: Annotated[
        str | None, Option("--db-path", help="DuckDB file (defaults to VAULT_SEARCH_DB_PATH).")
    ] = None,
    strategy: Annotated[
        StrategyChoice,
        Option("--strategy", "-s", case_sensitive=False, help="Ranking strategy."),
    ] = StrategyChoice.semantic,
    limit: Annotated[int, Option("--limit", "-n", help="Maximum number of results.")] = 5,
    threshold: Annotated[
        float, Option("--threshold", help="Minimum cosine similarity for semantic hits.")
    ] = 0.7,
    category: Annotated[
        list[str] | None, Option("--category", help="Accepted note category (repeatable).")
    ] = None,
    tag: Annotated[
        list[str] | None, Option("--tag", help="Required note tag, any of (repeatable).")
    ] = None,
    since: Annotated[
        datetime | None, Option("--since", formats=["%Y-%m-%d"], help="Earliest note date.")
    ] = None,
    until: Annotated[
        datetime | None, Option("--until", formats=["%Y-%m-%d"], help="Latest note date.")
    ] = None,
    excerpt: Annotated[
        bool, Option("--excerpt", help="Show the most relevant lines of each note.")
    ] = False,
) -> None:
    """Search indexed notes."""
    try:
        query = Query(
            text=text,
            limit=limit,
            threshold=threshold,
            strategy=strategy.value,
            filters=SearchFilters(
                categories=set(category or []),
                tags=set(tag or []),
                date_range=(
                    DateRange(
                        start=since.date() if since else None,
                        end=until.date() if until else None,
                    )
                    if since or until
                    else None
                ),
            ),
            include_excerpt=excerpt,
        )
    except ValidationError as exc:
        console.print(f"[bold red]Invalid query:[/] {escape(str(exc))}")
        raise Exit(code=2) from exc

    storage = _open_storage(db_path)
    try:
        embedder = _build_embedder() if query.strategy != "exact" else None
        results = QueryEngine(storage, embedder).search(query)
    except (ValueError, VaultSearchError) as exc:
        console.print(f"[bold red]Search failed:[/] {escape(str(exc))}")
        raise Exit(code=1) from exc
    finally:
        storage.close()

    if not results:
        console.print("[bold yellow]No matching notes.[/]")
        return

    table = Table(title=f"Results for {text!r} ({query.strategy})")
    table.add_column("#", justify="right")
    table.add_column("Note")
    table.add_column("Score", justify="right")
    table.add_column("Matched by")
    if excerpt:
        table.add_column("Excerpt")
    for rank, result in enumerate(results, start=1):
        row = [str(rank), result.source_id, f"{result.score:.3f}", result.matched_by]
        if excerpt:
            row.append(result.excerpt or "")
        table.add_row(*row)
    console.print(table)


@app.command()
def purge(
    db_path: Annotated[
        str | None, Option("--db-path", help="DuckDB file (defaults to VAULT_SEARCH_DB_PATH).")
    ] = None,
) -> None:
    """Delete every stored embedding so the next index run regenerates them."""
    storage = _open_storage(db_path)
    try:
        deleted = storage.purge_embeddings()
    finally:
        storage.close()
    console.print(f"Purged {deleted} embedding records.")

