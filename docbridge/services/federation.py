"""Federated reads across the relational source and the document store."""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Union

from ..models.record import FederatedQueryResult, JoinStrategy
from ..extractors.base import BaseExtractor
from ..loaders.base import BaseLoader
from .join import CrossStoreJoinEngine

logger = logging.getLogger(__name__)


class FederatedQueryService:
    """
    Query both stores during the transition period.

    Both sides are fetched in parallel; when a join key is given the
    results are combined with the cross-store join engine.
    """

    def __init__(
        self,
        extractor: BaseExtractor,
        loader: BaseLoader,
        join_engine: Optional[CrossStoreJoinEngine] = None
    ):
        self.extractor = extractor
        self.loader = loader
        self.join_engine = join_engine or CrossStoreJoinEngine()

    def query(
        self,
        table: str,
        collection: str,
        join_key: Optional[str] = None,
        strategy: Union[JoinStrategy, str] = JoinStrategy.INNER,
        table_filters: Optional[Dict[str, Any]] = None,
        collection_filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> FederatedQueryResult:
        """
        Fetch rows from a table and documents from a collection, optionally joined.

        Args:
            table: Relational table to read
            collection: Document collection to read
            join_key: Field shared by both sides; no join when omitted
            strategy: Join strategy
            table_filters: Equality filters for the relational side
            collection_filters: Equality filters for the document side
            limit: Maximum rows per side, and of the joined output

        Returns:
            FederatedQueryResult; failures are reported in errors
        """
        started = time.monotonic()
        result = FederatedQueryResult(join_key=join_key)

        try:
            result.join_strategy = JoinStrategy(strategy)
        except ValueError as e:
            result.errors.append(str(e))
            return result

        with ThreadPoolExecutor(max_workers=2) as pool:
            rows_future = pool.submit(self.extractor.read_rows, table, table_filters)
            docs_future = pool.submit(self.loader.read_documents, collection, collection_filters, limit)

            result.relational_rows = self._collect(rows_future, f"relational read of {table}", result)
            result.documents = self._collect(docs_future, f"document read of {collection}", result)

        if limit is not None:
            result.relational_rows = result.relational_rows[:limit]

        if join_key and not result.errors:
            joined = self.join_engine.join(
                result.relational_rows, result.documents, join_key, result.join_strategy
            )
            result.joined = joined[:limit] if limit is not None else joined

        result.execution_time = time.monotonic() - started
        logger.info(
            f"Federated query {table} / {collection}: {len(result.relational_rows)} rows, "
            f"{len(result.documents)} documents, {len(result.joined)} joined "
            f"in {result.execution_time:.3f}s"
        )
        return result

    def _collect(self, future, label: str, result: FederatedQueryResult) -> List[Dict[str, Any]]:
        try:
            return list(future.result())
        except Exception as e:
            logger.error(f"Federated {label} failed: {e}")
            result.errors.append(f"{label} failed: {e}")
            return []
