"""Tests for relational schema compatibility analysis."""

import pytest

from docbridge.services.analyzer import (
    SchemaAnalyzer,
    map_type,
    lookup_type,
    normalize_type,
    is_integer_type,
    relationship_hint,
)
from conftest import make_table


class TestTypeMapping:
    @pytest.mark.parametrize("declared, expected", [
        ("integer", "Number"),
        ("BIGINT", "Number"),
        ("numeric(4,2)", "Number"),
        ("double precision", "Number"),
        ("VARCHAR(50)", "String"),
        ("character varying(20)", "String"),
        ("text", "String"),
        ("uuid", "String"),
        ("boolean", "Boolean"),
        ("timestamp", "Date"),
        ("timestamp with time zone", "Date"),
        ("date", "Date"),
        ("jsonb", "Object"),
        ("bytea", "Binary"),
    ])
    def test_known_types(self, declared, expected):
        assert map_type(declared) == expected

    def test_unknown_type_falls_back_to_string(self):
        assert lookup_type("geography") is None
        assert map_type("geography") == "String"

    def test_array_types_have_no_mapping(self):
        assert lookup_type("integer[]") is None
        assert lookup_type("ARRAY") is None
        assert map_type("text[]") == "String"

    def test_normalize_strips_size(self):
        assert normalize_type(" VARCHAR(255) ") == "varchar"

    @pytest.mark.parametrize("declared, expected", [
        ("integer", True),
        ("smallint", True),
        ("bigserial", True),
        ("numeric(5,2)", False),
        ("real", False),
    ])
    def test_integer_family(self, declared, expected):
        assert is_integer_type(declared) is expected


class TestRelationshipHint:
    @pytest.mark.parametrize("fk_count, expected", [
        (0, "No relationships"),
        (1, "Consider embedding for simple one-to-many relationships"),
        (2, "Hybrid approach: embed simple relationships, reference complex ones"),
        (3, "Hybrid approach: embed simple relationships, reference complex ones"),
        (4, "Use references (ObjectId) for complex relationships"),
    ])
    def test_hint_by_foreign_key_count(self, fk_count, expected):
        columns = [("id", "integer")] + [(f"ref{i}_id", "integer") for i in range(fk_count)]
        fks = [(f"ref{i}_id", f"ref{i}") for i in range(fk_count)]
        assert relationship_hint(make_table("t", columns, fks)) == expected


class TestSchemaAnalyzer:
    def test_compatible_schema(self, geo_tables):
        report = SchemaAnalyzer().analyze(geo_tables)

        assert report.compatible_tables == ["country", "city", "address"]
        assert report.incompatible_tables == []
        assert report.is_fully_compatible
        assert report.type_mappings["city.country_id"] == "Number"
        assert report.type_mappings["address.phone"] == "String"
        assert report.relationship_strategies["country"] == "No relationships"
        assert report.performance_considerations

    def test_array_column_marks_table_incompatible(self):
        table = make_table("post", [("id", "integer"), ("tags", "text[]")])
        report = SchemaAnalyzer().analyze([table])

        assert report.incompatible_tables == ["post"]
        assert any("tags" in issue for issue in report.issues["post"])
        assert report.type_mappings["post.tags"] == "String"
        assert "Array columns may require special handling in the document store" in report.warnings

    def test_unsupported_type_is_reported_but_kept(self):
        table = make_table("store", [("id", "integer"), ("location", "geography")])
        report = SchemaAnalyzer().analyze([table])

        assert report.incompatible_tables == ["store"]
        assert "Unsupported type: geography for column location" in report.issues["store"]
        assert report.type_mappings["store.location"] == "String"
        assert "Review incompatible tables: store" in report.recommendations

    def test_json_columns_warn(self):
        table = make_table("event", [("id", "integer"), ("payload", "jsonb")])
        report = SchemaAnalyzer().analyze([table])

        assert report.compatible_tables == ["event"]
        assert "JSON fields will be preserved but may need validation rules" in report.warnings

    def test_recommendations_include_relationship_hints(self, geo_tables):
        report = SchemaAnalyzer().analyze(geo_tables)
        assert (
            "Table 'city': Consider embedding for simple one-to-many relationships"
            in report.recommendations
        )

    def test_analysis_is_repeatable(self, film_tables):
        analyzer = SchemaAnalyzer()
        assert analyzer.analyze(film_tables).to_dict() == analyzer.analyze(film_tables).to_dict()
