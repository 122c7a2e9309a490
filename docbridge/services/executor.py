"""Per-table migration from the relational source into the document store."""

import time
import logging
from typing import Any, Dict, Iterator, List, Optional

from ..models.schema import Table
from ..models.migration import MigrationStrategy, TableMigrationResult
from ..extractors.base import BaseExtractor
from ..loaders.base import BaseLoader
from .transformer import DocumentTransformer

logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 1000


class MigrationExecutor:
    """
    Moves one table at a time from the source to the document store.

    Rows are read, transformed into documents and bulk-written in batches.
    Failures never escape: they are reported on the TableMigrationResult
    together with the number of documents written before the failure.
    """

    def __init__(
        self,
        extractor: BaseExtractor,
        loader: BaseLoader,
        transformer: Optional[DocumentTransformer] = None,
        batch_size: int = DEFAULT_BATCH_SIZE
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.extractor = extractor
        self.loader = loader
        self.transformer = transformer or DocumentTransformer()
        self.batch_size = batch_size

    def migrate_table(
        self,
        table_name: str,
        strategy: MigrationStrategy,
        table: Optional[Table] = None,
        collection_name: Optional[str] = None
    ) -> TableMigrationResult:
        """
        Migrate every row of a table.

        Args:
            table_name: Source table to migrate
            strategy: Strategy chosen by the planner
            table: Source table schema, used for date normalization
            collection_name: Target collection (defaults to the table name)

        Returns:
            TableMigrationResult; error is set when the table failed
        """
        collection = collection_name or table_name
        started = time.monotonic()
        migrated = 0

        def result(error: Optional[str] = None) -> TableMigrationResult:
            return TableMigrationResult(
                table=table_name,
                migrated_count=migrated,
                collection_name=collection,
                strategy=strategy,
                duration=time.monotonic() - started,
                error=error,
            )

        logger.info(f"Migrating {table_name} -> {collection} ({strategy.value})")

        try:
            rows = self.extractor.read_rows(table_name)
        except Exception as e:
            logger.error(f"Failed to read rows from {table_name}: {e}")
            return result(f"Failed to read rows: {e}")

        if not rows:
            logger.info(f"No rows to migrate for {table_name}")

        try:
            documents = self.transformer.transform_rows(rows, table_name, strategy, table=table)
            self.loader.create_collection(collection)

            for batch in self._batch_iterator(documents):
                migrated += self.loader.write_documents(collection, batch)
                logger.debug(f"{table_name}: {migrated}/{len(documents)} documents written")

        except Exception as e:
            logger.error(f"Migration of {table_name} failed after {migrated} documents: {e}")
            return result(str(e))

        outcome = result()
        logger.info(f"Migrated {migrated} documents from {table_name} in {outcome.duration:.2f}s")
        return outcome

    def validate_table(self, table_name: str, collection_name: Optional[str] = None) -> List[str]:
        """
        Compare source and target counts for a migrated table.

        Returns:
            List of issues; empty when the counts agree
        """
        collection = collection_name or table_name
        issues = []

        try:
            source_count = self.extractor.count_records(table_name)
            target_count = self.loader.count_documents(collection)
        except Exception as e:
            logger.error(f"Validation of {table_name} failed: {e}")
            return [f"Could not validate {table_name}: {e}"]

        if target_count == 0 and source_count > 0:
            issues.append(f"Collection {collection} is empty but {table_name} has {source_count} rows")
        elif source_count != target_count:
            issues.append(
                f"Count mismatch for {table_name}: source={source_count}, target={target_count}"
            )

        if issues:
            for issue in issues:
                logger.warning(issue)
        else:
            logger.info(f"Validated {table_name}: {target_count} documents")

        return issues

    def _batch_iterator(self, documents: List[Dict[str, Any]]) -> Iterator[List[Dict[str, Any]]]:
        for i in range(0, len(documents), self.batch_size):
            yield documents[i:i + self.batch_size]
