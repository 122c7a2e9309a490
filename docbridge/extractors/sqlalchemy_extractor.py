"""Relational extractor backed by SQLAlchemy reflection."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import MetaData, Table as SQLTable, create_engine, func, inspect, select
from sqlalchemy.engine import Engine

from .base import BaseExtractor
from ..models.schema import Column, ForeignKey, Index, Table, SchemaModel
from ..models.migration import DataSource

logger = logging.getLogger(__name__)


def format_type(col_type: Any) -> str:
    """Render a reflected column type as the source spelling, e.g. 'VARCHAR(50)'."""
    try:
        return str(col_type)
    except Exception:
        return type(col_type).__name__.lower()


class SQLAlchemyExtractor(BaseExtractor):
    """
    Extractor for live relational databases.

    Works with any database SQLAlchemy has a dialect for. Schema metadata
    is reflected through the inspector in a single pass.
    """

    def __init__(self, source: DataSource, engine: Optional[Engine] = None):
        """
        Initialize the extractor.

        Args:
            source: Data source with a SQLAlchemy URL
            engine: Existing engine to use instead of creating one
        """
        super().__init__(source)
        if engine is None:
            if not source.url:
                raise ValueError("SQLAlchemy source requires a url")
            engine = create_engine(source.url, pool_pre_ping=True)
        self.engine = engine
        self.schema = source.schema
        self._tables: Dict[str, SQLTable] = {}

    def read_schema(self) -> SchemaModel:
        inspector = inspect(self.engine)
        tables = []

        for table_name in sorted(inspector.get_table_names(schema=self.schema)):
            tables.append(self._reflect_table(inspector, table_name))

        logger.info(f"Read schema with {len(tables)} tables from {self.engine.url.get_backend_name()}")
        return SchemaModel(tables=tables, source=self.source.name)

    def _reflect_table(self, inspector, table_name: str) -> Table:
        pk_columns = inspector.get_pk_constraint(table_name, schema=self.schema).get("constrained_columns") or []

        foreign_keys = []
        for fk in inspector.get_foreign_keys(table_name, schema=self.schema):
            for local_col, ref_col in zip(fk["constrained_columns"], fk["referred_columns"]):
                options = fk.get("options") or {}
                foreign_keys.append(ForeignKey(
                    column=local_col,
                    referenced_table=fk["referred_table"],
                    referenced_column=ref_col,
                    on_delete=options.get("ondelete"),
                    on_update=options.get("onupdate"),
                ))
        fk_columns = {fk.column for fk in foreign_keys}

        columns = [
            Column(
                name=col["name"],
                type=format_type(col["type"]),
                nullable=col.get("nullable", True),
                default=str(col["default"]) if col.get("default") is not None else None,
                is_primary=col["name"] in pk_columns,
                is_foreign=col["name"] in fk_columns,
            )
            for col in inspector.get_columns(table_name, schema=self.schema)
        ]

        indexes = [
            Index(
                name=idx.get("name") or f"{table_name}_idx_{n}",
                columns=[c for c in idx.get("column_names", []) if c],
                unique=bool(idx.get("unique")),
            )
            for n, idx in enumerate(inspector.get_indexes(table_name, schema=self.schema))
        ]

        if len(pk_columns) > 1:
            logger.debug(f"Composite primary key on {table_name}: {pk_columns}")

        return Table(
            name=table_name,
            columns=columns,
            primary_key=pk_columns[0] if len(pk_columns) == 1 else None,
            foreign_keys=foreign_keys,
            indexes=indexes,
        )

    def _get_table(self, table_name: str) -> SQLTable:
        if table_name not in self._tables:
            self._tables[table_name] = SQLTable(
                table_name, MetaData(), autoload_with=self.engine, schema=self.schema
            )
        return self._tables[table_name]

    def count_records(self, table_name: str) -> int:
        table = self._get_table(table_name)
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(table)).scalar_one()

    def read_rows(
        self,
        table_name: str,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        table = self._get_table(table_name)
        query = select(table)

        for key, value in (filters or {}).items():
            if key not in table.c:
                raise ValueError(f"Unknown column {key} on {table_name}")
            query = query.where(table.c[key] == value)

        with self.engine.connect() as conn:
            rows = [dict(row) for row in conn.execute(query).mappings()]

        logger.debug(f"Read {len(rows)} rows from {table_name}")
        return rows

    def validate_source(self) -> List[str]:
        errors = []
        try:
            with self.engine.connect():
                pass
        except Exception as e:
            errors.append(f"Cannot connect to {self.engine.url.render_as_string(hide_password=True)}: {e}")
        return errors

    def close(self) -> None:
        self.engine.dispose()
