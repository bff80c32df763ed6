import contextlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rankd.cli.errorhandler import handle_cli_errors
from rankd.core.config import RankdConfig
from rankd.core.logging import configure_logging
from rankd.core.types import Candidate, MediaKind, Tier
from rankd.features.ranking import ComparisonSearch, Judgment, RankingService, display_score, score
from rankd.infra.repository.duckdb import DuckDBRankingRepository

app = typer.Typer(name="rankd", help="Rank movies and series through pairwise comparisons.", add_completion=False)

console = Console()

_TIER_STYLE = {Tier.GOOD: "green", Tier.MEDIUM: "yellow", Tier.BAD: "red"}
_ANSWERS = {
    "b": Judgment.BETTER,
    "better": Judgment.BETTER,
    "w": Judgment.WORSE,
    "worse": Judgment.WORSE,
}


@dataclass
class CliState:
    db_path: Path
    debug: bool = False


@app.callback()
def main(
    ctx: typer.Context,
    db: Path | None = typer.Option(None, "--db", help="DuckDB file to use instead of the configured one."),
    log_level: str | None = typer.Option(None, "--log-level", help="Override the configured log level."),
    debug: bool = typer.Option(False, "--debug", help="Show full tracebacks on errors."),
):
    """
    Load configuration and logging for every command.
    """
    with handle_cli_errors(debug=debug):
        config = RankdConfig.load()
    configure_logging(log_level or config.logging.level)
    ctx.obj = CliState(db_path=db or config.paths.abs_db_path, debug=debug)


@contextlib.contextmanager
def _service(ctx: typer.Context) -> Iterator[RankingService]:
    state: CliState = ctx.obj
    with handle_cli_errors(debug=state.debug):
        repo = DuckDBRankingRepository.connect(state.db_path)
        try:
            yield RankingService(repo)
        finally:
            repo.close()


def _tier_label(tier: Tier) -> str:
    style = _TIER_STYLE[tier]
    return f"[{style}]{tier.value}[/{style}]"


def _run_comparisons(search: ComparisonSearch) -> bool:
    """Prompt until the search ends. Returns ``False`` if the user quit."""
    title = escape(search.candidate.title)
    while not search.is_terminal:
        shown = search.current
        assert shown is not None
        step = search.comparisons_made + 1
        console.print(
            f"\n[dim]Comparison {step} of at most {search.max_comparisons}[/dim]\n"
            f"Is [bold]{title}[/bold] better or worse than #{shown.rank} [bold]{escape(shown.title)}[/bold]?"
        )
        answer = typer.prompt("[b]etter / [w]orse / [u]ndo / [q]uit").strip().lower()
        if answer in {"q", "quit"}:
            search.cancel()
            return False
        if answer in {"u", "undo"}:
            if not search.undo():
                console.print("[yellow]Nothing to undo.[/yellow]")
            continue
        judgment = _ANSWERS.get(answer)
        if judgment is None:
            console.print(f"[yellow]Unknown answer '{escape(answer)}'.[/yellow]")
            continue
        search.choose(judgment, shown_id=shown.id)
    return True


@app.command()
def init(ctx: typer.Context):
    """
    Create the rankings database.
    """
    with _service(ctx) as service:
        movies = service.repository.count(MediaKind.MOVIE)
        series = service.repository.count(MediaKind.SERIES)
    console.print(f"Database ready at: {ctx.obj.db_path}")
    console.print(f"{movies} movies / {series} series ranked")


@app.command()
def add(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Display title."),
    external_id: str = typer.Option(..., "--id", help="Catalog identifier of the title."),
    kind: MediaKind = typer.Option(MediaKind.MOVIE, "--kind", help="Which list to rank into."),
    tier: Tier = typer.Option(..., "--tier", help="Coarse verdict chosen before comparing."),
    review: str | None = typer.Option(None, "--review", help="Optional note kept with the entry."),
):
    """
    Rank a new title by comparing it with the ones already ranked.
    """
    with _service(ctx) as service:
        candidate = Candidate(external_id=external_id, title=title, media_kind=kind, review=review)
        search = service.begin(candidate, tier)
        if not _run_comparisons(search):
            console.print("Cancelled; nothing was saved.")
            raise typer.Exit(0)
        entry = service.commit(search)
        entry_score = score(entry, service.repository.list_partition(kind))

    console.print(
        f"\n[bold green]#{entry.rank} in {kind.label}[/bold green] "
        f"{escape(entry.title)} ({_tier_label(entry.tier)}, {display_score(entry_score, entry.tier):.1f})"
    )


@app.command("list")
def list_entries(
    ctx: typer.Context,
    kind: MediaKind = typer.Option(MediaKind.MOVIE, "--kind", help="Which list to show."),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Show only the top N."),
):
    """
    Show a ranked list with scores.
    """
    with _service(ctx) as service:
        rows = service.ranked(kind) if limit is None else service.top(kind, limit)

    if not rows:
        console.print(f"No {kind.label.lower()} ranked yet.")
        return

    table = Table(title=f"Ranked {kind.label}")
    table.add_column("#", justify="right", style="bold")
    table.add_column("Title")
    table.add_column("Tier")
    table.add_column("Score", justify="right")
    table.add_column("Comparisons", justify="right")
    table.add_column("ID", style="dim")
    for row in rows:
        table.add_row(
            str(row.entry.rank),
            escape(row.entry.title),
            _tier_label(row.entry.tier),
            f"{display_score(row.score, row.entry.tier):.1f}",
            str(row.entry.comparison_count),
            row.entry.id,
        )
    console.print(table)


@app.command()
def delete(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="ID of the entry to remove."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """
    Remove a title from its list; the titles below move up.
    """
    with _service(ctx) as service:
        if not yes:
            entry = service.repository.get(entry_id)
            if entry is not None and not typer.confirm(f"Remove '{entry.title}' from your rankings?"):
                raise typer.Exit(0)
        removed = service.delete(entry_id)
    console.print(f"Removed {escape(removed.title)} (was #{removed.rank}).")


@app.command()
def rerank(
    ctx: typer.Context,
    entry_id: str | None = typer.Argument(None, help="ID of the entry to place again."),
    least_compared: bool = typer.Option(False, "--least-compared", help="Pick the entry with the fewest comparisons."),
    kind: MediaKind = typer.Option(MediaKind.MOVIE, "--kind", help="List used with --least-compared."),
    tier: Tier | None = typer.Option(None, "--tier", help="New tier; keeps the current one when omitted."),
):
    """
    Place an already ranked title again through fresh comparisons.
    """
    with _service(ctx) as service:
        if entry_id is None:
            if not least_compared:
                console.print("[red]Give an entry ID or --least-compared.[/red]")
                raise typer.Exit(1)
            target = service.least_compared(kind)
            if target is None:
                console.print(f"No {kind.label.lower()} ranked yet.")
                raise typer.Exit(0)
            entry_id = target.id

        search = service.begin_rerank(entry_id, tier)
        previous = search.reranking
        assert previous is not None
        if not _run_comparisons(search):
            console.print(f"Cancelled; {escape(previous.title)} stays at #{previous.rank}.")
            raise typer.Exit(0)
        entry = service.commit(search)
    console.print(f"[bold green]{escape(entry.title)}[/bold green] #{previous.rank} -> #{entry.rank}")


@app.command()
def move(
    ctx: typer.Context,
    entry_id: str = typer.Argument(..., help="ID of the entry to move."),
    rank: int = typer.Argument(..., help="New rank (1 is best)."),
):
    """
    Move a title to a given rank by hand.
    """
    with _service(ctx) as service:
        entry = service.move(entry_id, rank)
    console.print(f"{escape(entry.title)} is now #{entry.rank}.")


def _status_icon(ok: bool) -> str:
    return "[bold green]✔[/bold green]" if ok else "[bold red]✘[/bold red]"


@app.command()
def doctor(
    ctx: typer.Context,
    fix: bool = typer.Option(False, "--fix", help="Renumber damaged lists by their current order."),
):
    """
    Check that every list has contiguous ranks.
    """
    table = Table(title="rankd Health Report")
    table.add_column("List", style="bold cyan")
    table.add_column("Status", style="bold")
    table.add_column("Details")

    healthy = True
    with _service(ctx) as service:
        for kind in MediaKind:
            problems = service.verify(kind)
            if problems and fix:
                moved = service.repair(kind)
                problems = service.verify(kind)
                console.print(f"Renumbered {moved} {kind.label.lower()}.")
            healthy = healthy and not problems
            details = "; ".join(problems) if problems else f"{service.repository.count(kind)} entries"
            table.add_row(kind.label, _status_icon(not problems), escape(details))

    console.print(table)
    if not healthy:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
