"""Transformation of relational rows into target documents."""

import json
import math
import uuid
import logging
from typing import Any, Callable, Dict, List, Optional
from datetime import date, datetime, timezone
from dateutil import parser as date_parser

from ..models.schema import Table
from ..models.migration import MigrationStrategy
from .analyzer import map_type, normalize_type
from .synthesizer import SURROGATE_ID

logger = logging.getLogger(__name__)

_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)


MIGRATION_NOTES = {
    MigrationStrategy.EMBEDDED.value: "Marked for embedding in parent documents",
    MigrationStrategy.REFERENCED.value: "Marked for reference handling",
}


def key_columns(table: Optional[Table]) -> List[str]:
    """Primary key columns of a table, composite keys included."""
    if table is None:
        return []
    columns = [c.name for c in table.columns if c.is_primary]
    if not columns and table.primary_key:
        columns = [table.primary_key]
    return columns


def surrogate_id(row: Dict[str, Any], table_name: str, table: Optional[Table] = None) -> Any:
    """
    Document id for a row.

    Tries 'id', then '<table>_id', then the table's primary key columns
    (joined with ':' for composite keys). Rows without any of these get a
    name-based uuid of their values, so the same row always maps to the
    same document.
    """
    for key in ("id", f"{table_name}_id"):
        value = row.get(key)
        if value is not None:
            return value

    columns = key_columns(table)
    values = [row.get(c) for c in columns]
    if values and all(v is not None for v in values):
        if len(values) == 1:
            return values[0]
        return ":".join(str(v) for v in values)

    content = json.dumps(row, sort_keys=True, default=str)
    return uuid.uuid5(uuid.NAMESPACE_OID, f"{table_name}:{content}").hex


class DocumentTransformer:
    """
    Engine for transforming source rows into documents.

    Supports:
    - Strategy-specific transforms (standalone, embedded, referenced)
    - Custom transforms registered per strategy
    - Column rename rules
    - Value normalization (blank strings and NaN become None, dates to ISO 8601)
    """

    def __init__(
        self,
        rename_rules: Optional[Dict[str, str]] = None,
        normalize_values: bool = True
    ):
        """
        Initialize the transformer.

        Args:
            rename_rules: Source column -> target field name
            normalize_values: Clean up blank and NaN values
        """
        self.rename_rules = rename_rules or {}
        self.normalize_values = normalize_values
        self._custom_transforms: Dict[str, Callable] = {}
        self._builtin_transforms = self._register_builtin_transforms()

    def _register_builtin_transforms(self) -> Dict[str, Callable]:
        return {
            MigrationStrategy.STANDALONE.value: self._transform_standalone,
            MigrationStrategy.EMBEDDED.value: self._transform_embedded,
            MigrationStrategy.REFERENCED.value: self._transform_referenced,
        }

    def register_transform(self, strategy: str, func: Callable) -> None:
        """
        Register a custom transform for a strategy.

        The function receives (document, table_name) and returns the document.
        """
        self._custom_transforms[strategy] = func

    def transform_rows(
        self,
        rows: List[Dict[str, Any]],
        table_name: str,
        strategy: MigrationStrategy,
        table: Optional[Table] = None,
        migrated_at: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Transform a list of rows; all documents share one migration timestamp."""
        migrated_at = migrated_at or datetime.now(timezone.utc).isoformat()
        return [
            self.transform_row(row, table_name, strategy, table=table, migrated_at=migrated_at)
            for row in rows
        ]

    def transform_row(
        self,
        row: Dict[str, Any],
        table_name: str,
        strategy: MigrationStrategy,
        table: Optional[Table] = None,
        migrated_at: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Transform one source row into a target document.

        Args:
            row: Source row as a column -> value mapping
            table_name: Source table name
            strategy: Migration strategy for the table
            table: Source table schema, used to normalize date columns
            migrated_at: Migration timestamp (defaults to now)

        Returns:
            Document with _id, migrated_at and source_table attached
        """
        strategy_name = (
            strategy.value if isinstance(strategy, MigrationStrategy) else str(strategy)
        )
        transform_func = (
            self._custom_transforms.get(strategy_name) or
            self._builtin_transforms.get(strategy_name)
        )
        if not transform_func:
            raise ValueError(f"Unknown migration strategy: {strategy_name}")

        document = {}
        for key, value in row.items():
            if self.normalize_values:
                value = self._normalize_value(key, value, table)
            document[self.rename_rules.get(key, key)] = value

        document[SURROGATE_ID] = surrogate_id(row, table_name, table)
        document["migrated_at"] = migrated_at or datetime.now(timezone.utc).isoformat()
        document["source_table"] = table_name

        return transform_func(document, table_name)

    def _normalize_value(self, column_name: str, value: Any, table: Optional[Table]) -> Any:
        if value is None:
            return None
        if isinstance(value, str) and value.strip() == "":
            return None
        if isinstance(value, float) and math.isnan(value):
            return None

        if table is not None:
            column = table.get_column(column_name)
            if column is not None and map_type(column.type) == 'Date':
                return self._normalize_date(value, date_only=normalize_type(column.type) == 'date')

        return value

    def _normalize_date(self, value: Any, date_only: bool = False) -> Any:
        """
        Render date values as ISO 8601 strings.

        Strings missing a year, month or day are left as they are. Columns
        declared as 'date' keep only the date part.
        """
        if isinstance(value, str):
            parsed = self._parse_full_date(value)
            if parsed is None:
                logger.debug(f"Leaving unparseable or partial date value as-is: {value!r}")
                return value
            value = parsed

        if isinstance(value, datetime):
            return value.date().isoformat() if date_only else value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return value

    def _parse_full_date(self, value: str) -> Optional[datetime]:
        # Parsing against two different defaults exposes any component
        # that was filled in rather than read from the string.
        try:
            first = date_parser.parse(value, default=_DEFAULT_A)
            second = date_parser.parse(value, default=_DEFAULT_B)
        except (ValueError, OverflowError):
            return None
        if first.date() != second.date():
            return None
        return first

    # Built-in strategy transforms

    def _transform_standalone(self, document: Dict[str, Any], table_name: str) -> Dict[str, Any]:
        return document

    def _transform_embedded(self, document: Dict[str, Any], table_name: str) -> Dict[str, Any]:
        document["migration_note"] = MIGRATION_NOTES[MigrationStrategy.EMBEDDED.value]
        return document

    def _transform_referenced(self, document: Dict[str, Any], table_name: str) -> Dict[str, Any]:
        document["migration_note"] = MIGRATION_NOTES[MigrationStrategy.REFERENCED.value]
        return document
