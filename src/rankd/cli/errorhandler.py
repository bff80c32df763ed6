"""CLI error handling utilities."""

from collections.abc import Generator
from contextlib import contextmanager

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from rankd.core.exceptions import (
    ConfigError,
    DuplicateEntryError,
    EntryNotFoundError,
    InvariantViolationError,
    PersistenceFailureError,
    RankdError,
    StaleComparisonStateError,
)

console = Console()


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        field = ".".join(str(loc) for loc in detail["loc"]) or error.title
        parts.append(f"{field}: {detail['msg']}")
    return "; ".join(parts)


@contextmanager
def handle_cli_errors(*, debug: bool = False) -> Generator[None, None, None]:
    """Context manager to handle CLI errors gracefully.

    Args:
        debug: If True, re-raise so the full traceback is shown.

    """
    try:
        yield
    except (KeyboardInterrupt, SystemExit):
        raise
    except DuplicateEntryError as e:
        if debug:
            raise
        console.print(f"[bold yellow]Already ranked:[/bold yellow] {escape(str(e))}")
        console.print("Use [bold]rankd rerank[/bold] to place it again.")
        raise typer.Exit(1) from e
    except EntryNotFoundError as e:
        if debug:
            raise
        console.print(f"[bold red]Not found:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except InvariantViolationError as e:
        if debug:
            raise
        console.print(f"[bold red]Rejected:[/bold red] {escape(str(e))}")
        console.print("Nothing was changed.")
        raise typer.Exit(1) from e
    except PersistenceFailureError as e:
        if debug:
            raise
        console.print(f"[bold red]Store error:[/bold red] {escape(str(e))}")
        console.print("Nothing was changed.")
        raise typer.Exit(1) from e
    except StaleComparisonStateError as e:
        if debug:
            raise
        console.print(f"[bold red]Comparison out of date:[/bold red] {escape(str(e))}")
        console.print("Start the comparison again.")
        raise typer.Exit(1) from e
    except ConfigError as e:
        if debug:
            raise
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except ValidationError as e:
        if debug:
            raise
        console.print(f"[bold red]Invalid input:[/bold red] {escape(_describe_validation_error(e))}")
        console.print("Nothing was changed.")
        raise typer.Exit(1) from e
    except RankdError as e:
        if debug:
            raise
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
