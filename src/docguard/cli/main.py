import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docguard.config import ENV_DB_PATH
from docguard.db.database import Database, create_persisting_db
from docguard.errors import DocGuardError, ValidationError
from docguard.initializer import CollectionInitializer
from docguard.introspection import indexed_field_names, unique_field_names
from docguard.logs import configure_logging

app = typer.Typer(help="docguard - inspect and maintain validated document databases")
console = Console()
logger = logging.getLogger("docguard.cli")

DB_PATH_ARG = typer.Argument(..., envvar=ENV_DB_PATH, help="Path to database snapshot file")


def open_database(db_path: str) -> Database:
    db = create_persisting_db(db_path, create_path=False)
    try:
        return db.load()
    except DocGuardError as e:
        console.print(f"[red]Cannot load {db_path}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Log as JSON lines"),
):
    """Validated document database tooling."""
    if verbose or json_logs:
        configure_logging(level="DEBUG" if verbose else "INFO", json_format=json_logs)


@app.command()
def inspect(db_path: str = DB_PATH_ARG):
    """List collections with their constraints."""
    db = open_database(db_path)
    if not db.collections:
        console.print("[yellow]No collections[/yellow]")
        return

    table = Table(title=f"Collections in {db_path}")
    table.add_column("Name", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("Unique fields")
    table.add_column("Indexed fields")
    table.add_column("Max ID", justify="right")

    for collection in db.collections:
        table.add_row(
            collection.name,
            str(collection.count()),
            ", ".join(unique_field_names(collection)) or "-",
            ", ".join(indexed_field_names(collection)) or "-",
            str(collection.max_id),
        )
    console.print(table)


@app.command()
def dump(
    db_path: str = DB_PATH_ARG,
    collection_name: str = typer.Argument(..., help="Collection to dump"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum records to print"),
):
    """Print the records of a collection as JSON."""
    db = open_database(db_path)
    collection = db.get_collection(collection_name)
    if collection is None:
        console.print(f"[red]No collection named {collection_name}[/red]")
        raise typer.Exit(code=1)

    records = collection.data
    if limit is not None:
        records = records[:limit]
    typer.echo(json.dumps(records, indent=2, default=str))


@app.command()
def check(
    db_path: str = DB_PATH_ARG,
    collection_name: str = typer.Argument(..., help="Collection to check"),
    unique: Optional[list[str]] = typer.Option(None, "--unique", "-u", help="Required unique field"),
):
    """Report whether initializing with the given unique fields would rebuild, without changing anything."""
    db = open_database(db_path)
    try:
        initializer = CollectionInitializer(db, collection_name, unique or [])
    except ValidationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=2)

    if db.get_collection(collection_name) is None:
        console.print(f"[yellow]{collection_name}: missing, would create[/yellow]")
        return
    if not initializer.should_rebuild():
        console.print(f"[green]{collection_name}: constraints satisfied, no rebuild needed[/green]")
        return

    try:
        records = initializer.validate_existing()
    except ValidationError as e:
        console.print(f"[red]{collection_name}: rebuild would fail: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[yellow]{collection_name}: would rebuild, {len(records)} records replayable[/yellow]")


@app.command()
def rebuild(
    db_path: str = DB_PATH_ARG,
    collection_name: str = typer.Argument(..., help="Collection to rebuild"),
    unique: Optional[list[str]] = typer.Option(None, "--unique", "-u", help="Required unique field"),
):
    """Initialize a collection with the given unique fields and save the database."""
    db = open_database(db_path)
    try:
        initializer = CollectionInitializer(db, collection_name, unique or [])
        if not initializer.should_rebuild():
            console.print(f"[green]{collection_name}: constraints satisfied, nothing to do[/green]")
            return
        collection = initializer.initialize()
        db.save()
    except DocGuardError as e:
        console.print(f"[red]Rebuild failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    logger.info(f"Rebuilt {collection_name} in {db_path}")
    unique_text = escape(", ".join(initializer.unique_field_names) or "-")
    console.print(
        f"[green]{collection_name}: rebuilt with unique fields {unique_text}, "
        f"{collection.count()} records[/green]"
    )


if __name__ == "__main__":
    app()
