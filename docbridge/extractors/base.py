"""Base extractor interface for relational sources."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

from ..models.schema import SchemaModel
from ..models.migration import DataSource

logger = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """
    Base class for relational source extractors.

    Extractors read the schema model, count rows and read rows for a
    table. They are the schema reader, record counter and row reader the
    planner and executor depend on.
    """

    def __init__(self, source: DataSource):
        """
        Initialize the extractor.

        Args:
            source: Data source configuration
        """
        self.source = source

    @abstractmethod
    def read_schema(self) -> SchemaModel:
        """
        Read table, column, key and index metadata.

        Returns:
            SchemaModel for the source
        """
        pass

    @abstractmethod
    def count_records(self, table_name: str) -> int:
        """Return the current row count of a table."""
        pass

    @abstractmethod
    def read_rows(
        self,
        table_name: str,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Read all rows of a table.

        Args:
            table_name: Table to read
            filters: Optional column -> value equality filters

        Returns:
            Rows as column -> value mappings
        """
        pass

    def validate_source(self) -> List[str]:
        """
        Validate the source configuration.

        Returns:
            List of validation error messages
        """
        return []

    def close(self) -> None:
        """Release resources held by the extractor."""


def matches_filters(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Equality match of a row against column -> value filters."""
    if not filters:
        return True
    return all(row.get(key) == value for key, value in filters.items())
