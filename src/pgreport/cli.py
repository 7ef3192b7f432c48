"""Command-line smoke tools for the PostgreSQL reporter."""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pgreport.config import ReportingSettings
from pgreport.log import configure_logging
from pgreport.params import parse_value_param
from pgreport.storage.connection import ConnectionManager
from pgreport.storage.postgres.statements import DATABASES_SQL
from pgreport.xml_normalizer import normalize_model_xml
from pgreport.version import __version__


console = Console()
err_console = Console(stderr=True)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name="pgreport")
def main(debug: bool) -> None:
    """pgreport - mirror test runs into PostgreSQL."""
    load_dotenv(Path.cwd() / ".env")
    configure_logging(debug=debug)


@main.command()
def ping() -> None:
    """Connect with PGREPORT_CONN and list the server's databases."""
    try:
        settings = ReportingSettings()
    except ValidationError as e:
        err_console.print(f"[red]Invalid settings:[/red] {e}")
        sys.exit(1)

    manager = ConnectionManager(settings)
    console.print("Connecting to the server...")
    if not manager.initialize():
        err_console.print("[red]Cannot connect to the server[/red]")
        sys.exit(1)

    try:
        console.print("Querying the server...")
        with manager.query(DATABASES_SQL) as result:
            if not result:
                err_console.print("[red]Cannot fetch data[/red]")
                sys.exit(2)

            table = Table(title="Databases")
            table.add_column("datname")
            for row in range(manager.row_count(result)):
                table.add_row(manager.value(result, row, 0) or "")
        console.print(table)
    finally:
        manager.close()


@main.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
def normalize(path: Path) -> None:
    """Print the normalized description of the model at PATH."""
    text = normalize_model_xml(path)
    if not text:
        err_console.print(f"[yellow]No description available for {path}[/yellow]")
        sys.exit(1)
    click.echo(text)


@main.command()
@click.argument("text")
def params(text: str) -> None:
    """Print the literal values found in a serialized parameter string."""
    for token in parse_value_param(text):
        click.echo(token)


if __name__ == "__main__":
    main()
