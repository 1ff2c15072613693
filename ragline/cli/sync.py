"""Command-line maintenance for the ragline Catalog.

Usage::

    # Reconcile the Catalog with vector store #1 and print the diff
    python -m ragline.cli sync --vector-store-id 1

    # Show what a sync would change without writing anything
    python -m ragline.cli sync --vector-store-id 1 --check

    # Create the Catalog tables
    python -m ragline.cli init-db

Exit status is 0 on success, 1 when the command failed or the sync
recorded per-collection errors.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from ragline.config.settings import Settings
from ragline.providers.catalog.sqlite_catalog_provider import SQLiteCatalogProvider
from ragline.services.collection_sync import CollectionSync
from ragline.utils.errors import RaglineError
from ragline.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_sync(args: argparse.Namespace, app_settings: Settings) -> int:
    catalog = SQLiteCatalogProvider(db_path=args.db or app_settings.catalog_db_path)
    await catalog.initialize()
    sync = CollectionSync(catalog)

    if args.check:
        result = await sync.check_status(args.vector_store_id)
    else:
        result = await sync.sync(args.vector_store_id)

    print(result.model_dump_json(indent=2))
    return 1 if result.errors else 0


async def _handle_init_db(args: argparse.Namespace, app_settings: Settings) -> int:
    db_path = args.db or app_settings.catalog_db_path
    await SQLiteCatalogProvider(db_path=db_path).initialize()
    print(f"Catalog ready: {db_path}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m ragline.cli",
        description="ragline Catalog maintenance",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="Catalog database path (default: CATALOG_DB_PATH setting)",
    )
    subparsers = parser.add_subparsers(dest="command")

    sync_parser = subparsers.add_parser(
        "sync", help="Reconcile Catalog collections with a vector store"
    )
    sync_parser.add_argument(
        "--vector-store-id",
        type=int,
        required=True,
        help="Catalog id of the vector store",
    )
    sync_parser.add_argument(
        "--check",
        action="store_true",
        help="Report the diff without changing the Catalog",
    )

    subparsers.add_parser("init-db", help="Create the Catalog tables")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.  Returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()
    configure_logging(app_settings)

    handlers = {"sync": _handle_sync, "init-db": _handle_init_db}
    try:
        return asyncio.run(handlers[args.command](args, app_settings))
    except RaglineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
