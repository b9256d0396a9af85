"""Command-line interface for the Film Identity system.

Entry point: `fid` command (defined in pyproject.toml).
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from film_identity.config import Config
from film_identity.repository.base import RepositoryError

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _open_repository(ctx: click.Context):
    """Create the repository for the selected backend, closed with the context."""
    config = ctx.obj["config"]
    if ctx.obj["backend"] == "neo4j":
        from film_identity.repository.neo4j_store import Neo4jMovieRepository

        repo = Neo4jMovieRepository(config)
        ctx.call_on_close(repo.close)
        return repo

    from film_identity.repository.json_store import JsonMovieRepository

    return JsonMovieRepository(config)


def _fail(message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging.")
@click.option(
    "--backend",
    type=click.Choice(["json", "neo4j"]),
    default="json",
    help="Movie repository backend (default: json).",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, backend: str) -> None:
    """Film Identity: entity resolution for movie cast and crew."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = Config()
    ctx.obj["backend"] = backend


@main.command()
@click.option(
    "--entity-type",
    "-t",
    type=click.Choice(["director", "actor", "all"]),
    default="all",
    help="Which people to scan (default: all).",
)
@click.option("--limit", type=int, default=None, help="Max movies to scan.")
@click.option("--top", type=int, default=15, help="How many groups to print.")
@click.option("--enrich", is_flag=True, help="Look groups up on TMDB/Wikidata.")
@click.pass_context
def duplicates(ctx: click.Context, entity_type: str, limit: int | None, top: int, enrich: bool) -> None:
    """Detect people written inconsistently across movies."""
    from film_identity.entities.duplicates import DuplicateDetector

    config = ctx.obj["config"]
    repo = _open_repository(ctx)

    try:
        report = DuplicateDetector(repo, config).detect(entity_type, limit)
    except RepositoryError as e:
        _fail(str(e))

    if enrich:
        from film_identity.external.identity import IdentityResolver

        resolver = IdentityResolver(config)
        for group in report.potential_duplicates[:top]:
            resolver.enrich(group)
        report.potential_duplicates.sort(key=lambda g: g.confidence, reverse=True)

    console.print(f"Unique entities:      [cyan]{report.unique_count}[/cyan]")
    console.print(f"Total references:     [cyan]{report.total_references}[/cyan]")
    console.print(f"Potential duplicates: [yellow]{len(report.potential_duplicates)}[/yellow]")

    if not report.potential_duplicates:
        return

    table = Table(title=f"Potential duplicates (top {top})")
    table.add_column("#", justify="right")
    table.add_column("Canonical name", style="yellow")
    table.add_column("Refs", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Variations")
    if enrich:
        table.add_column("TMDB", justify="right")
    for i, group in enumerate(report.potential_duplicates[:top], 1):
        row = [
            str(i),
            group.canonical_name,
            str(len(group.occurrences)),
            f"{group.confidence:.2f}",
            ", ".join(group.source_names),
        ]
        if enrich:
            row.append(str(group.identity.tmdb_id) if group.identity and group.identity.tmdb_id else "-")
        table.add_row(*row)
    console.print(table)


@main.command()
@click.option("--min-movies", type=int, default=None, help="Minimum shared movies.")
@click.option("--limit", type=int, default=None, help="Max movies to scan.")
@click.option("--top", type=int, default=10, help="How many pairs to print per type.")
@click.option("--write-graph", is_flag=True, help="Persist edges (neo4j backend only).")
@click.pass_context
def collaborations(
    ctx: click.Context, min_movies: int | None, limit: int | None, top: int, write_graph: bool
) -> None:
    """Find frequent actor-director, hero-heroine and actor-music pairs."""
    from film_identity.entities.collaborations import CollaborationBuilder

    repo = _open_repository(ctx)
    try:
        collabs = CollaborationBuilder(repo, ctx.obj["config"]).build(min_movies, limit)
    except RepositoryError as e:
        _fail(str(e))

    console.print(f"Found [cyan]{len(collabs)}[/cyan] frequent collaborations\n")

    titles = {
        "actor_director": "Actor-director pairs",
        "hero_heroine": "Hero-heroine pairs",
        "actor_music": "Actor-music director pairs",
    }
    for relationship_type, title in titles.items():
        subset = [c for c in collabs if c.relationship_type == relationship_type][:top]
        if not subset:
            continue
        table = Table(title=title)
        table.add_column("Pair")
        table.add_column("Films", justify="right", style="green")
        table.add_column("Years")
        table.add_column("Hit rate", justify="right")
        table.add_column("Notable")
        for c in subset:
            years = f"{c.first_year}-{c.last_year}" if c.first_year else "-"
            table.add_row(
                f"{c.entity1} + {c.entity2}",
                str(c.movie_count),
                years,
                f"{c.hit_rate:.0%}",
                ", ".join(c.notable_films),
            )
        console.print(table)

    if write_graph:
        if ctx.obj["backend"] != "neo4j":
            console.print("[yellow]--write-graph requires --backend neo4j, skipping[/yellow]")
            return
        written = repo.write_collaborations(collabs)
        console.print(f"[green]Wrote {written} collaboration edges[/green]")


@main.command()
@click.option(
    "--entity-type",
    "-t",
    type=click.Choice(["director", "actor", "all"]),
    default="all",
)
@click.option("--fix", is_flag=True, help="Apply changes (default: dry run).")
@click.option("--limit", type=int, default=None, help="Max movies to scan.")
@click.pass_context
def normalize(ctx: click.Context, entity_type: str, fix: bool, limit: int | None) -> None:
    """Rewrite every name to its canonical spelling."""
    from film_identity.entities.normalize import EntityNormalizer

    repo = _open_repository(ctx)
    console.print(f"Mode: {'[green]FIX[/green]' if fix else '[yellow]DRY RUN[/yellow]'}\n")

    try:
        report = EntityNormalizer(repo, ctx.obj["config"]).normalize(
            entity_type=entity_type, fix=fix, dry_run=not fix, limit=limit
        )
    except RepositoryError as e:
        _fail(str(e))

    console.print(f"Analyzed:  [cyan]{report.analyzed}[/cyan]")
    console.print(f"{'Normalized' if fix else 'Would normalize'}: [yellow]{report.normalized}[/yellow]")

    for change in report.changes[:15]:
        console.print(
            f"[dim]{change.field:<13}[/dim] \"[red]{change.old_value}[/red]\" -> "
            f"\"[green]{change.new_value}[/green]\""
        )
    if len(report.changes) > 15:
        console.print(f"[dim]... and {len(report.changes) - 15} more[/dim]")

    if not fix and report.normalized:
        console.print("\n[yellow]DRY RUN - no changes were made. Run with --fix to apply.[/yellow]")


@main.command()
@click.option(
    "--entity-type",
    "-t",
    type=click.Choice(["director", "actor", "all"]),
    default="all",
)
@click.option("--fix", is_flag=True, help="Execute merges (default: dry run).")
@click.option("--min-confidence", type=float, default=None, help="Minimum group confidence.")
@click.option("--limit", type=int, default=None, help="Max movies to scan.")
@click.option(
    "--rollback-out",
    type=click.Path(dir_okay=False),
    default=None,
    help="Where to write rollback data (default: data/rollback/<timestamp>.json).",
)
@click.pass_context
def merge(
    ctx: click.Context,
    entity_type: str,
    fix: bool,
    min_confidence: float | None,
    limit: int | None,
    rollback_out: str | None,
) -> None:
    """Detect duplicates and merge confident groups onto one spelling."""
    from film_identity.entities.duplicates import DuplicateDetector
    from film_identity.merge import BatchMergeOrchestrator, MergeEngine, find_merge_candidates

    config = ctx.obj["config"]
    repo = _open_repository(ctx)
    threshold = config.min_merge_confidence if min_confidence is None else min_confidence

    try:
        report = DuplicateDetector(repo, config).detect(entity_type, limit)
    except RepositoryError as e:
        _fail(str(e))

    candidates = find_merge_candidates(report, threshold)
    console.print(f"Mode: {'[green]EXECUTE[/green]' if fix else '[yellow]DRY RUN[/yellow]'}")
    console.print(f"Merge candidates (confidence >= {threshold}): [cyan]{len(candidates)}[/cyan]\n")

    for candidate in candidates[:15]:
        console.print(
            f"  {', '.join(candidate.group.source_names)} -> "
            f"[green]{candidate.canonical_name}[/green]"
        )

    orchestrator = BatchMergeOrchestrator(MergeEngine(repo), show_progress=fix)
    batch = orchestrator.run(candidates, dry_run=not fix)

    console.print("\n[green]Merge complete:[/green]")
    console.print(f"  Total:   {batch.total}")
    console.print(f"  Merged:  {batch.merged}")
    console.print(f"  Errors:  {batch.errors}")

    if batch.failures:
        console.print("\n[yellow]Failed merges:[/yellow]")
        for failure in batch.failures:
            console.print(f"  - {failure['canonical_name']}: {failure['error']}")

    if not fix:
        console.print("\n[yellow]DRY RUN - no changes were made. Run with --fix to apply.[/yellow]")
        return

    # The earliest snapshot of a movie is its true pre-batch state
    snapshots = [r.rollback_data or {} for r in batch.results]
    snapshots += [f.get("rollback_data") or {} for f in batch.failures]
    rollback_data: dict = {}
    for snapshot in snapshots:
        for movie_id, fields in snapshot.items():
            rollback_data.setdefault(movie_id, fields)
    if not rollback_data:
        return

    if rollback_out:
        out_path = Path(rollback_out)
    else:
        stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
        out_path = config.rollback_dir / f"merge_{stamp}.json"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(rollback_data, indent=2, ensure_ascii=False, default=str))
    console.print(f"\nRollback data written to [cyan]{out_path}[/cyan]")


@main.command()
@click.argument("rollback_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def rollback(ctx: click.Context, rollback_file: str) -> None:
    """Restore movies from a rollback file written by `fid merge --fix`."""
    from film_identity.merge import MergeEngine

    data = json.loads(Path(rollback_file).read_text())
    repo = _open_repository(ctx)
    try:
        restored = MergeEngine(repo).rollback(data)
    except RepositoryError as e:
        _fail(str(e))
    console.print(f"[green]Restored {restored} movies[/green]")


@main.command(name="career-phases")
@click.option("--limit", type=int, default=None, help="Max movies to scan.")
@click.pass_context
def career_phases(ctx: click.Context, limit: int | None) -> None:
    """Show the career phase distribution of heroes, heroines and directors."""
    from film_identity.entities.normalize import career_phase_distribution

    repo = _open_repository(ctx)
    try:
        movies = repo.select_movies(limit=limit or ctx.obj["config"].fetch_limit)
    except RepositoryError as e:
        _fail(str(e))

    total, phases = career_phase_distribution(movies)
    console.print(f"Analyzed [cyan]{total}[/cyan] entities\n")
    for phase, count in phases.items():
        filled = min(20, count // 5)
        console.print(f"{phase:<12} {'█' * filled}{'░' * (20 - filled)} {count}")
