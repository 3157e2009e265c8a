"""Run a declarative data migration file against one MongoDB collection.

A migration file is MongoDB extended JSON::

    {
      "description": "Clear Streamtape URLs",
      "collection": "lugandamovies",
      "operations": [
        {"op": "update_many",
         "filter": {"video.originalVideoPath": {"$regex": "streamtape", "$options": "i"}},
         "update": {"$set": {"video.originalVideoPath": "pending-upload"}}}
      ]
    }

Operations run in file order. ``--dry-run`` only counts what each operation
would touch. The connection string comes from ``MONGODB_URI`` and is never
logged.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bson import json_util
from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

URI_ENV_VAR = "MONGODB_URI"
SERVER_SELECTION_TIMEOUT_MS = 10_000

FILTER_OPS = {"update_one", "update_many", "delete_many"}
UPDATE_OPS = {"update_one", "update_many"}
SUPPORTED_OPS = FILTER_OPS | {"insert_many"}


class MigrationError(ValueError):
    """Raised when a migration file is malformed."""


@dataclass(frozen=True, slots=True)
class Operation:
    op: str
    filter: dict[str, Any] = field(default_factory=dict)
    update: dict[str, Any] | list[Any] | None = None
    documents: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True, slots=True)
class Migration:
    collection: str
    operations: tuple[Operation, ...]
    description: str = ""


@dataclass(slots=True)
class OperationResult:
    op: str
    matched: int = 0
    modified: int = 0


@dataclass(slots=True)
class MigrationReport:
    collection: str
    dry_run: bool
    results: list[OperationResult] = field(default_factory=list)

    @property
    def matched(self) -> int:
        return sum(result.matched for result in self.results)

    @property
    def modified(self) -> int:
        return sum(result.modified for result in self.results)


def parse_migration(data: Mapping[str, Any]) -> Migration:
    collection = data.get("collection")
    if not isinstance(collection, str) or not collection:
        raise MigrationError("migration needs a non-empty 'collection'")

    raw_operations = data.get("operations")
    if not isinstance(raw_operations, list) or not raw_operations:
        raise MigrationError("migration needs a non-empty 'operations' list")

    operations = []
    for index, raw in enumerate(raw_operations):
        if not isinstance(raw, Mapping):
            raise MigrationError(f"operation {index} must be an object")
        op = raw.get("op")
        if op not in SUPPORTED_OPS:
            raise MigrationError(f"operation {index}: unsupported op {op!r}")

        filter_doc = raw.get("filter", {})
        if not isinstance(filter_doc, Mapping):
            raise MigrationError(f"operation {index}: 'filter' must be an object")
        if op == "delete_many" and not filter_doc:
            raise MigrationError(f"operation {index}: delete_many needs a filter")

        update = raw.get("update")
        if op in UPDATE_OPS and not isinstance(update, (Mapping, list)):
            raise MigrationError(f"operation {index}: {op} needs an 'update'")

        documents = raw.get("documents", [])
        if op == "insert_many" and (not isinstance(documents, list) or not documents):
            raise MigrationError(f"operation {index}: insert_many needs 'documents'")

        operations.append(
            Operation(
                op=op,
                filter=dict(filter_doc),
                update=dict(update) if isinstance(update, Mapping) else update,
                documents=tuple(dict(document) for document in documents),
            )
        )

    return Migration(
        collection=collection,
        operations=tuple(operations),
        description=str(data.get("description", "")),
    )


def load_migration(path: Path) -> Migration:
    try:
        data = json_util.loads(path.read_text(encoding="utf-8"))
    except (ValueError, BSONError) as exc:
        raise MigrationError(f"{path.name} is not valid extended JSON") from exc
    if not isinstance(data, Mapping):
        raise MigrationError(f"{path.name} must contain a JSON object")
    return parse_migration(data)


def run_operation(collection: Any, operation: Operation, *, dry_run: bool) -> OperationResult:
    if operation.op == "insert_many":
        if dry_run:
            return OperationResult(operation.op)
        result = collection.insert_many(list(operation.documents))
        inserted = len(result.inserted_ids)
        return OperationResult(operation.op, modified=inserted)

    if dry_run:
        matched = collection.count_documents(operation.filter)
        if operation.op == "update_one":
            matched = min(matched, 1)
        return OperationResult(operation.op, matched=matched)

    if operation.op == "delete_many":
        deleted = collection.delete_many(operation.filter).deleted_count
        return OperationResult(operation.op, matched=deleted, modified=deleted)

    method = getattr(collection, operation.op)
    result = method(operation.filter, operation.update)
    return OperationResult(
        operation.op,
        matched=result.matched_count,
        modified=result.modified_count,
    )


def run_migration(database: Any, migration: Migration, *, dry_run: bool = False) -> MigrationReport:
    """Apply each operation in order against ``database[migration.collection]``."""
    collection = database[migration.collection]
    report = MigrationReport(collection=migration.collection, dry_run=dry_run)
    for operation in migration.operations:
        result = run_operation(collection, operation, dry_run=dry_run)
        logger.info(
            "%s%s: matched=%s modified=%s",
            "[dry-run] " if dry_run else "",
            operation.op,
            result.matched,
            result.modified,
        )
        report.results.append(result)
    return report


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a migration file against MongoDB")
    parser.add_argument("migration", type=Path)
    parser.add_argument("--database", default=None, help="defaults to the database in the URI")
    parser.add_argument("--dry-run", action="store_true")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        migration = load_migration(args.migration)
    except (OSError, MigrationError) as exc:
        logger.error("Cannot load migration: %s", exc)
        return 2

    uri = os.environ.get(URI_ENV_VAR)
    if not uri:
        logger.error("%s is not set", URI_ENV_VAR)
        return 2

    try:
        client: MongoClient = MongoClient(
            uri, serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS
        )
    except PyMongoError as exc:
        logger.error("Cannot create MongoDB client: %s", exc.__class__.__name__)
        return 2

    try:
        database = (
            client[args.database] if args.database else client.get_default_database()
        )
        logger.info("Running %s", migration.description or args.migration.name)
        report = run_migration(database, migration, dry_run=args.dry_run)
    except PyMongoError as exc:
        logger.error("Migration failed: %s", exc.__class__.__name__)
        return 1
    finally:
        client.close()

    print(
        f"{report.collection}: {len(report.results)} operations, "
        f"matched={report.matched} modified={report.modified}"
        + (" (dry run)" if report.dry_run else "")
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
