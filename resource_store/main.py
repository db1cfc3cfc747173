from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import typer

from resource_store.config import get_settings
from resource_store.domain.models import Actor
from resource_store.infrastructure.db_factory import get_sync_connection
from resource_store.persistence.brand import create_brand_repository
from resource_store.persistence.reconcile import reconcile as run_reconcile
from resource_store.query.criteria import SearchCriteria
from resource_store.reporter import print_page, print_reconcile_report
from resource_store.seeding import seed_brands
from resource_store.utils.logging import configure_logging

app = typer.Typer(help="Resource Store CLI.")

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "db" / "init.sql"


def _configure() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    mirror = (
        f"{settings.mongo_uri}/{settings.mongo_database}" if settings.mongo_enabled else "disabled"
    )
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool={settings.db_pool_min_size}..{settings.db_pool_max_size} "
        f"statement_timeout_ms={settings.db_statement_timeout_ms} | "
        f"mirror={mirror} | batch={settings.list_batch_size} env={settings.app_env}"
    )


@app.command("init-db")
def init_db(
    schema: Path = typer.Option(
        DEFAULT_SCHEMA_PATH,
        "--schema",
        help="SQL file to apply (default: db/init.sql).",
    ),
) -> None:
    """
    Create the primary-store tables and indexes.
    """
    _configure()
    if not schema.exists():
        typer.echo(f"Schema file not found: {schema}", err=True)
        raise typer.Exit(code=1)
    with get_sync_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(schema.read_text(encoding="utf-8"))
    typer.echo(f"Applied {schema}.")


@app.command()
def seed(
    count: int = typer.Option(100, "--count", "-n", help="Number of brands to insert."),
    seed_value: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
) -> None:
    """
    Insert sample brands as the system actor.
    """
    _configure()
    repository = create_brand_repository()
    ids = seed_brands(repository, count, Actor.system(), seed=seed_value)
    typer.echo(f"Inserted {len(ids):,} brands.")


@app.command("list")
def list_brands(
    name: Optional[str] = typer.Option(None, "--name", help="Case-insensitive substring."),
    status: Optional[List[int]] = typer.Option(
        None, "--status", "-s", help="Status value; repeat for several."
    ),
    page: int = typer.Option(1, "--page", "-p"),
    page_size: int = typer.Option(10, "--page-size"),
    sort_by: str = typer.Option("id", "--sort-by"),
    sort_dir: str = typer.Option("asc", "--sort-dir"),
    include_deleted: bool = typer.Option(
        False, "--include-deleted", help="Elevated scope: show soft-deleted rows too."
    ),
) -> None:
    """
    Show one page of brands.
    """
    _configure()
    filters = {}
    if name:
        filters["name"] = name
    if status:
        filters["status"] = list(status)

    criteria = SearchCriteria(
        filter=filters, page=page, page_size=page_size, sort_by=sort_by, sort_dir=sort_dir
    )
    repository = create_brand_repository(elevated=include_deleted)
    print_page(repository.list(criteria))


@app.command()
def reconcile(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Max rows per sweep (default from settings)."
    ),
) -> None:
    """
    Re-send flagged brands to the secondary store.
    """
    _configure()
    settings = get_settings()
    if not settings.mongo_enabled:
        typer.echo("Secondary store is disabled (MONGO_ENABLED=false); nothing to do.")
        return

    repository = create_brand_repository(settings=settings, elevated=True)
    report = run_reconcile(
        repository, repository.synchronizer, limit=limit or settings.reconcile_limit
    )
    print_reconcile_report(report)
    if not report.clean:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
