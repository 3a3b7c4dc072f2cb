"""opdoc CLI - expand and inspect ``@opdoc`` handlers in source files."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from opdoc.config import load_config
from opdoc.exceptions import OpDocError
from opdoc.logging import configure_logging
from opdoc.source import find_marked, transform_source

app = typer.Typer(
    name="opdoc",
    help="Generate OpenAPI operation docs from handler docstrings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

console = Console()
err_console = Console(stderr=True)


@app.callback()
def callback(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to a TOML configuration file (pyproject.toml or opdoc.toml)",
    ),
    verbose: bool = typer.Option(False, "-V", "--verbose", help="Enable debug logging"),
) -> None:
    """opdoc command line."""
    try:
        settings = load_config(config)
    except (FileNotFoundError, OpDocError) as e:
        err_console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    configure_logging(
        level="DEBUG" if verbose else settings.logging.level,
        format=settings.logging.format,
        output_file=settings.logging.output_file,
    )
    ctx.obj = settings


def _read(source: Path) -> str:
    if not source.is_file():
        err_console.print(f"[red]✗[/red] File not found: {source}")
        raise typer.Exit(1)
    return source.read_text(encoding="utf-8")


@app.command("expand")
def expand(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="Python file containing @opdoc handlers"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the expanded source here instead of stdout"
    ),
) -> None:
    """Write the source with every @opdoc handler expanded.

    Examples:
        opdoc expand app/routes.py
        opdoc expand app/routes.py -o build/routes.py
    """
    text = _read(source)
    try:
        expanded = transform_source(text, filename=str(source), config=ctx.obj)
    except OpDocError as e:
        err_console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if output is None:
        typer.echo(expanded, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(expanded, encoding="utf-8")
    console.print(f"[green]✓[/green] Expanded {source} -> {output}")


@app.command("show")
def show(
    source: Path = typer.Argument(..., help="Python file containing @opdoc handlers"),
) -> None:
    """List the summary and description parsed for each @opdoc handler."""
    text = _read(source)
    try:
        docs = find_marked(text, filename=str(source))
    except OpDocError as e:
        err_console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if not docs:
        console.print(f"[yellow]No @opdoc handlers found in {source}[/yellow]")
        return

    table = Table(title=f"@opdoc handlers in {source}")
    table.add_column("Handler", style="cyan", no_wrap=True)
    table.add_column("Summary")
    table.add_column("Description", style="dim")
    for doc in docs:
        table.add_row(doc.name, doc.summary, doc.description)
    console.print(table)


if __name__ == "__main__":
    app()
