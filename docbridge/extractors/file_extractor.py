"""Extractor for exported relational data: a schema JSON plus per-table row files."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import BaseExtractor, matches_filters
from ..models.schema import Table, SchemaModel
from ..models.migration import DataSource
from ..services.analyzer import map_type, is_integer_type

logger = logging.getLogger(__name__)


ROW_FILE_SUFFIXES = (".csv", ".json", ".jsonl")


class FileExtractor(BaseExtractor):
    """
    Extractor for file exports of a relational database.

    Layout:
    - schema_file: JSON export of the schema (list of tables or {"tables": [...]})
    - data_dir: one <table>.csv, <table>.json or <table>.jsonl file per table

    CSV values are converted using the column types from the schema.
    A table without a row file has no rows.
    """

    def __init__(
        self,
        source: DataSource,
        encoding: str = "utf-8",
        delimiter: str = ","
    ):
        """
        Initialize the file extractor.

        Args:
            source: Data source configuration with schema_file and data_dir
            encoding: File encoding
            delimiter: CSV delimiter used when sniffing fails
        """
        super().__init__(source)
        self.encoding = encoding
        self.delimiter = delimiter
        self._schema: Optional[SchemaModel] = None
        self._rows: Dict[str, List[Dict[str, Any]]] = {}

    def read_schema(self) -> SchemaModel:
        if self._schema is None:
            if not self.source.schema_file:
                raise ValueError("File source requires a schema_file")
            self._schema = SchemaModel.from_json_file(self.source.schema_file)
            logger.info(f"Loaded schema with {len(self._schema)} tables from {self.source.schema_file}")
        return self._schema

    def count_records(self, table_name: str) -> int:
        return len(self._load_rows(table_name))

    def read_rows(
        self,
        table_name: str,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._load_rows(table_name) if matches_filters(row, filters)]

    def _load_rows(self, table_name: str) -> List[Dict[str, Any]]:
        if table_name in self._rows:
            return self._rows[table_name]

        file_path = self._find_row_file(table_name)
        if file_path is None:
            logger.warning(f"No row file for table {table_name}")
            rows = []
        elif file_path.suffix == ".csv":
            rows = self._read_csv(file_path, self._table_schema(table_name))
        elif file_path.suffix == ".jsonl":
            rows = self._read_jsonl(file_path)
        else:
            rows = self._read_json(file_path)

        logger.info(f"Loaded {len(rows)} rows for {table_name}")
        self._rows[table_name] = rows
        return rows

    def _find_row_file(self, table_name: str) -> Optional[Path]:
        if not self.source.data_dir:
            return None
        for suffix in ROW_FILE_SUFFIXES:
            path = Path(self.source.data_dir) / f"{table_name}{suffix}"
            if path.exists():
                return path
        return None

    def _table_schema(self, table_name: str) -> Optional[Table]:
        if not self.source.schema_file:
            return None
        return self.read_schema().get_table(table_name)

    def _read_csv(self, file_path: Path, table: Optional[Table]) -> List[Dict[str, Any]]:
        try:
            return self._read_csv_with_encoding(file_path, table, self.encoding)
        except UnicodeDecodeError:
            logger.warning(f"{self.encoding} decode failed, trying latin-1 for {file_path}")
            return self._read_csv_with_encoding(file_path, table, "latin-1")

    def _read_csv_with_encoding(
        self,
        file_path: Path,
        table: Optional[Table],
        encoding: str
    ) -> List[Dict[str, Any]]:
        rows = []

        with open(file_path, "r", encoding=encoding, newline="") as f:
            sample = f.read(8192)
            f.seek(0)

            try:
                delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
            except csv.Error:
                delimiter = self.delimiter

            reader = csv.DictReader(f, delimiter=delimiter)
            for row in reader:
                data = {
                    column: self._convert(column, value, table)
                    for column, value in row.items()
                    if column is not None
                }
                if any(v is not None for v in data.values()):
                    rows.append(data)

        return rows

    def _convert(self, column_name: str, value: Optional[str], table: Optional[Table]) -> Any:
        """Convert a CSV cell using the column's declared type."""
        if value is None:
            return None
        value = value.strip()
        if value == "" or value.lower() == "null":
            return None

        column = table.get_column(column_name) if table else None
        if column is None:
            return value

        target_type = map_type(column.type)
        try:
            if target_type == "Number":
                return int(value) if is_integer_type(column.type) else float(value)
            if target_type == "Boolean":
                return value.lower() in ("true", "t", "yes", "1")
        except ValueError:
            logger.debug(f"Keeping {column_name}={value!r} as text")
        return value

    def _read_json(self, file_path: Path) -> List[Dict[str, Any]]:
        with open(file_path, "r", encoding=self.encoding) as f:
            data = json.load(f)

        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ["rows", "data", "records", "items"]:
                if isinstance(data.get(key), list):
                    return data[key]
        raise ValueError(f"Unexpected JSON structure in {file_path}")

    def _read_jsonl(self, file_path: Path) -> List[Dict[str, Any]]:
        rows = []
        with open(file_path, "r", encoding=self.encoding) as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid JSON on line {line_num} of {file_path}: {e}") from e
        return rows

    def validate_source(self) -> List[str]:
        """Validate the file source configuration."""
        errors = super().validate_source()

        if not self.source.schema_file:
            errors.append("schema_file is required")
        elif not Path(self.source.schema_file).exists():
            errors.append(f"Schema file not found: {self.source.schema_file}")

        if self.source.data_dir and not Path(self.source.data_dir).is_dir():
            errors.append(f"Data directory not found: {self.source.data_dir}")

        return errors
