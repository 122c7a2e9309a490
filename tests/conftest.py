"""Shared fixtures for docbridge tests."""

from typing import Any, Dict, List, Optional

import pytest

from docbridge.extractors.base import BaseExtractor, matches_filters
from docbridge.loaders.memory_loader import InMemoryLoader
from docbridge.models.migration import DataSource, DataSourceType
from docbridge.models.schema import SchemaModel, Table


def make_table(name, columns, foreign_keys=(), primary_key="id") -> Table:
    """Build a Table from (name, type) pairs and (column, referenced_table) pairs."""
    return Table.from_dict({
        "name": name,
        "primary_key": primary_key,
        "columns": [
            {"name": col, "type": col_type, "nullable": col != primary_key}
            for col, col_type in columns
        ],
        "foreign_keys": [
            {"column": col, "referenced_table": ref} for col, ref in foreign_keys
        ],
    })


class StaticExtractor(BaseExtractor):
    """Extractor serving a fixed schema and fixed rows."""

    def __init__(self, schema: SchemaModel, rows: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__(DataSource(type=DataSourceType.FILE, name="static"))
        self.schema = schema
        self.rows = rows or {}

    def read_schema(self) -> SchemaModel:
        return self.schema

    def count_records(self, table_name: str) -> int:
        return len(self.rows.get(table_name, []))

    def read_rows(self, table_name, filters=None):
        return [dict(r) for r in self.rows.get(table_name, []) if matches_filters(r, filters)]


@pytest.fixture
def country():
    return make_table("country", [("id", "integer"), ("name", "varchar(50)")])


@pytest.fixture
def city():
    return make_table(
        "city",
        [("id", "integer"), ("name", "varchar(50)"), ("country_id", "integer")],
        foreign_keys=[("country_id", "country")],
    )


@pytest.fixture
def address():
    return make_table(
        "address",
        [
            ("id", "integer"),
            ("city_id", "integer"),
            ("line1", "varchar(100)"),
            ("line2", "varchar(100)"),
            ("phone", "varchar(20)"),
        ],
        foreign_keys=[("city_id", "city")],
    )


@pytest.fixture
def geo_tables(country, city, address):
    return [country, city, address]


@pytest.fixture
def language():
    return make_table(
        "language",
        [("id", "integer"), ("name", "char(20)"), ("last_update", "timestamp")],
    )


@pytest.fixture
def actor():
    return make_table(
        "actor",
        [
            ("id", "integer"),
            ("first_name", "varchar(45)"),
            ("last_name", "varchar(45)"),
            ("last_update", "timestamp without time zone"),
        ],
    )


@pytest.fixture
def film():
    return make_table(
        "film",
        [
            ("id", "integer"),
            ("title", "varchar(255)"),
            ("description", "text"),
            ("release_year", "integer"),
            ("language_id", "smallint"),
            ("original_language_id", "smallint"),
            ("rental_duration", "smallint"),
            ("rental_rate", "numeric(4,2)"),
            ("length", "smallint"),
            ("replacement_cost", "numeric(5,2)"),
            ("rating", "varchar(10)"),
            ("last_update", "timestamp"),
        ],
        foreign_keys=[("language_id", "language"), ("original_language_id", "language")],
    )


@pytest.fixture
def film_actor():
    return make_table(
        "film_actor",
        [("actor_id", "integer"), ("film_id", "integer"), ("last_update", "timestamp")],
        foreign_keys=[("actor_id", "actor"), ("film_id", "film")],
        primary_key=None,
    )


@pytest.fixture
def film_tables(language, actor, film, film_actor):
    return [language, actor, film, film_actor]


@pytest.fixture
def geo_rows():
    return {
        "country": [{"id": 1, "name": "Chile"}, {"id": 2, "name": "Peru"}],
        "city": [
            {"id": 10, "name": "Santiago", "country_id": 1},
            {"id": 11, "name": "Lima", "country_id": 2},
            {"id": 12, "name": "Valparaiso", "country_id": 1},
        ],
        "address": [
            {"id": 100, "city_id": 10, "line1": "Av. Providencia 1", "line2": "", "phone": "555-0100"},
            {"id": 101, "city_id": 11, "line1": "Jr. de la Union 2", "line2": None, "phone": "555-0101"},
        ],
    }


@pytest.fixture
def geo_extractor(geo_tables, geo_rows):
    return StaticExtractor(SchemaModel(tables=geo_tables, source="static"), geo_rows)


@pytest.fixture
def memory_loader():
    return InMemoryLoader()


@pytest.fixture
def make_extractor():
    """Factory for extractors over in-memory tables and rows."""
    def factory(tables, rows=None):
        return StaticExtractor(SchemaModel(tables=list(tables), source="static"), rows)
    return factory
