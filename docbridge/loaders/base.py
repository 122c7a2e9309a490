"""Base loader interface for document stores."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class BaseLoader(ABC):
    """
    Base class for document store loaders.

    Loaders count documents, create collections and bulk-write documents
    into the target store. They also read documents back for federated
    queries.
    """

    def __init__(self, target_service: str, dry_run: bool = False, batch_size: int = 1000):
        """
        Initialize the loader.

        Args:
            target_service: Name of the document store
            dry_run: If True, simulate writes without making changes
            batch_size: Maximum documents per bulk write
        """
        self.target_service = target_service
        self.dry_run = dry_run
        self.batch_size = batch_size
        self._written: Dict[str, List[Any]] = {}  # collection -> written document ids

    @abstractmethod
    def count_documents(self, collection: str) -> int:
        """Return the number of documents in a collection (0 if it does not exist)."""
        pass

    @abstractmethod
    def create_collection(self, collection: str) -> bool:
        """
        Create a collection.

        Returns:
            True if created, False if it already existed
        """
        pass

    @abstractmethod
    def _write_batch(self, collection: str, documents: List[Dict[str, Any]]) -> int:
        """Write one batch and return the number of documents written."""
        pass

    @abstractmethod
    def read_documents(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Read documents from a collection.

        Args:
            collection: Collection to read
            filters: Optional field -> value equality filters
            limit: Maximum number of documents

        Returns:
            Matching documents
        """
        pass

    def write_documents(self, collection: str, documents: List[Dict[str, Any]]) -> int:
        """
        Write a single batch of documents.

        Returns:
            Number of documents written
        """
        if self.dry_run:
            logger.info(f"[dry run] Would write {len(documents)} documents to {collection}")
            return len(documents)

        written = self._write_batch(collection, documents)
        self._written.setdefault(collection, []).extend(d.get("_id") for d in documents[:written])
        return written

    def validate_connection(self) -> bool:
        """Validate the connection to the document store."""
        return True

    def get_written_ids(self) -> Dict[str, List[Any]]:
        """Ids of documents written by this loader, per collection."""
        return {k: list(v) for k, v in self._written.items()}

    def close(self) -> None:
        """Release resources held by the loader."""
