#!/usr/bin/env python3
"""
CLI for inspecting Firestore collections through the remote services.

Usage:
    fsds get users user123
    fsds list products --where category:==:mugs --order-by -price --limit 5
    fsds watch users/u1/favorites --count 10
    fsds --emulator-host localhost:8080 list products
    fsds --config datasync.yaml list products
    fsds --version
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import typer

from firestore_datasync import __version__
from firestore_datasync.backends import get_firestore_client
from firestore_datasync.exceptions import DataSyncError
from firestore_datasync.models import DocumentRecord
from firestore_datasync.query import QueryBuilder
from firestore_datasync.services import FirestoreCollectionService
from firestore_datasync.settings import FirestoreSettings, load_settings

app = typer.Typer(
    name="fsds",
    help="Firestore DataSync - inspect and watch remote collections",
    no_args_is_help=True,
    add_completion=False,
)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"fsds version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    project: Optional[str] = typer.Option(None, "--project", help="Firebase project ID"),
    emulator_host: Optional[str] = typer.Option(
        None, "--emulator-host", help="Firestore emulator address (host:port)"
    ),
    credentials: Optional[str] = typer.Option(
        None, "--credentials", help="Path to a service account JSON file"
    ),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="YAML settings file with a 'firestore:' section"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = FirestoreSettings()
    if config:
        try:
            settings = load_settings(config).firestore
        except (OSError, ValueError) as e:
            typer.echo(f"Error: Cannot load settings file {config}: {e}", err=True)
            raise typer.Exit(1)

    overrides = {
        "project": project,
        "emulator_host": emulator_host,
        "credentials_path": credentials,
    }
    ctx.obj = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})


def parse_where(clauses: List[str]) -> List[Dict[str, Any]]:
    """
    Parse ``field:op:value`` clauses.

    The value is read as JSON when possible (numbers, booleans, lists),
    otherwise as a plain string.

    Raises:
        typer.Exit: On a malformed clause
    """
    parsed = []
    for clause in clauses:
        parts = clause.split(":", 2)
        if len(parts) != 3 or not parts[0]:
            typer.echo(f"Error: Invalid --where '{clause}', expected field:op:value", err=True)
            raise typer.Exit(1)
        field, op, raw = parts
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        parsed.append({"field": field, "op": op, "value": value})
    return parsed


def build_query(
    where: List[str], order_by: List[str], limit: Optional[int]
) -> Optional[QueryBuilder]:
    if not where and not order_by and limit is None:
        return None
    try:
        return QueryBuilder.from_dict(
            {"where": parse_where(where), "order_by": order_by, "limit": limit}
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def make_service(settings: FirestoreSettings, collection: str) -> FirestoreCollectionService:
    return FirestoreCollectionService(DocumentRecord, collection, client=get_firestore_client(settings))


def echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, default=str, ensure_ascii=False))


def fail(error: DataSyncError) -> None:
    typer.echo(json.dumps(error.to_dict(), default=str), err=True)
    raise typer.Exit(1)


@app.command()
def get(
    ctx: typer.Context,
    collection: str = typer.Argument(..., help="Collection path, e.g. users or users/u1/favorites"),
    document: str = typer.Argument(..., help="Document ID"),
) -> None:
    """Print one document as JSON."""
    service = make_service(ctx.obj, collection)
    try:
        record = asyncio.run(service.get_document(document))
    except DataSyncError as e:
        fail(e)
    echo_json(record.model_dump())


@app.command("list")
def list_documents(
    ctx: typer.Context,
    collection: str = typer.Argument(..., help="Collection path"),
    where: Optional[List[str]] = typer.Option(None, "--where", "-w", help="Filter as field:op:value"),
    order_by: Optional[List[str]] = typer.Option(None, "--order-by", "-o", help="Sort field; prefix with - for descending"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum documents"),
) -> None:
    """Print matching documents as a JSON array."""
    service = make_service(ctx.obj, collection)
    query = build_query(where or [], order_by or [], limit)
    try:
        if query is None:
            records = asyncio.run(service.get_collection())
        else:
            records = asyncio.run(service.get_documents(query))
    except DataSyncError as e:
        fail(e)
    echo_json([record.model_dump() for record in records])


async def _watch(service: FirestoreCollectionService, query: Optional[QueryBuilder], count: Optional[int]) -> None:
    events: asyncio.Queue = asyncio.Queue()

    async def pump(channel, kind):
        try:
            async for item in channel:
                await events.put((kind, item))
        except DataSyncError as e:
            await events.put(("error", e))
        else:
            await events.put(("end", None))

    outputs = service.stream_collection_updates(query)
    async with outputs:
        tasks = [
            asyncio.create_task(pump(outputs.updates, "update")),
            asyncio.create_task(pump(outputs.deletions, "delete")),
        ]
        try:
            seen = 0
            while count is None or seen < count:
                kind, item = await events.get()
                if kind == "error":
                    raise item
                if kind == "end":
                    break
                if kind == "update":
                    echo_json({"event": "update", "id": item.id, "data": item.model_dump()})
                else:
                    echo_json({"event": "delete", "id": item})
                seen += 1
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


@app.command()
def watch(
    ctx: typer.Context,
    collection: str = typer.Argument(..., help="Collection path"),
    where: Optional[List[str]] = typer.Option(None, "--where", "-w", help="Filter as field:op:value"),
    order_by: Optional[List[str]] = typer.Option(None, "--order-by", "-o", help="Sort field; prefix with - for descending"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum documents"),
    count: Optional[int] = typer.Option(None, "--count", min=1, help="Exit after this many events"),
) -> None:
    """Print update/delete events as JSON lines until interrupted."""
    service = make_service(ctx.obj, collection)
    query = build_query(where or [], order_by or [], limit)
    try:
        asyncio.run(_watch(service, query, count))
    except DataSyncError as e:
        fail(e)
    except KeyboardInterrupt:
        raise typer.Exit(0)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
