"""Compatibility analysis of relational schemas for document-store conversion."""

import re
import logging
from typing import Dict, Iterable, List, Optional

from ..models.schema import (
    Table,
    Column,
    CompatibilityReport,
)

logger = logging.getLogger(__name__)


# Source type -> target type family
TYPE_MAPPINGS: Dict[str, str] = {
    'integer': 'Number',
    'int': 'Number',
    'int2': 'Number',
    'int4': 'Number',
    'int8': 'Number',
    'bigint': 'Number',
    'smallint': 'Number',
    'tinyint': 'Number',
    'mediumint': 'Number',
    'serial': 'Number',
    'smallserial': 'Number',
    'bigserial': 'Number',
    'numeric': 'Number',
    'decimal': 'Number',
    'real': 'Number',
    'float': 'Number',
    'float4': 'Number',
    'float8': 'Number',
    'double': 'Number',
    'double precision': 'Number',
    'money': 'Number',
    'text': 'String',
    'varchar': 'String',
    'nvarchar': 'String',
    'char': 'String',
    'nchar': 'String',
    'bpchar': 'String',
    'citext': 'String',
    'uuid': 'String',
    'time': 'String',
    'interval': 'String',
    'boolean': 'Boolean',
    'bool': 'Boolean',
    'timestamp': 'Date',
    'timestamptz': 'Date',
    'datetime': 'Date',
    'date': 'Date',
    'json': 'Object',
    'jsonb': 'Object',
    'point': 'Object',
    'line': 'Object',
    'circle': 'Object',
    'polygon': 'Object',
    'bytea': 'Binary',
    'blob': 'Binary',
}

INTEGER_TYPES = {
    'integer', 'int', 'int2', 'int4', 'int8', 'bigint', 'smallint', 'tinyint',
    'mediumint', 'serial', 'smallserial', 'bigserial',
}

FALLBACK_TYPE = 'String'

_SIZE_PATTERN = re.compile(r"\s*\(.*\)")


def normalize_type(declared_type: str) -> str:
    """Lower-case a declared type and strip size parameters, e.g. 'VARCHAR(50)' -> 'varchar'."""
    return _SIZE_PATTERN.sub("", declared_type.strip().lower()).strip()


def is_array_type(declared_type: str) -> bool:
    lowered = declared_type.lower()
    return lowered.endswith("[]") or "array" in lowered


def lookup_type(declared_type: str) -> Optional[str]:
    """
    Look up the target type family for a declared source type.

    Returns None when the type has no mapping (array types never map).
    """
    if is_array_type(declared_type):
        return None

    base = normalize_type(declared_type)
    target = TYPE_MAPPINGS.get(base)
    if target:
        return target

    # Full SQL spellings, e.g. "timestamp without time zone", "character varying"
    if 'timestamp' in base:
        return 'Date'
    if 'varying' in base or 'character' in base:
        return 'String'
    if 'serial' in base:
        return 'Number'
    return None


def map_type(declared_type: str) -> str:
    """Target type family for a declared type, falling back to String."""
    return lookup_type(declared_type) or FALLBACK_TYPE


def is_integer_type(declared_type: str) -> bool:
    return normalize_type(declared_type) in INTEGER_TYPES


def relationship_hint(table: Table) -> str:
    """
    Advisory relationship strategy based on foreign-key count.

    Informational only: the synthesizer makes its own structural decision.
    """
    fk_count = len(table.foreign_keys)
    if fk_count == 0:
        return "No relationships"
    if fk_count == 1:
        return "Consider embedding for simple one-to-many relationships"
    if fk_count <= 3:
        return "Hybrid approach: embed simple relationships, reference complex ones"
    return "Use references (ObjectId) for complex relationships"


class SchemaAnalyzer:
    """
    Analyzer for relational-to-document compatibility.

    Produces:
    - Per-column type mappings
    - Compatible / incompatible table lists with diagnostics
    - Advisory relationship strategies
    - Performance considerations, warnings and recommendations
    """

    PERFORMANCE_CONSIDERATIONS = [
        "Consider creating compound indexes for frequently queried field combinations",
        "Embed related documents for read-heavy workloads",
        "Use references for write-heavy workloads with complex relationships",
        "Consider sharding strategies for large collections",
    ]

    def analyze(self, tables: Iterable[Table]) -> CompatibilityReport:
        """
        Analyze tables for conversion to a document store.

        Args:
            tables: Source tables (a list or a SchemaModel)

        Returns:
            CompatibilityReport covering every input table
        """
        tables = list(tables)
        report = CompatibilityReport()

        for table in tables:
            table_issues = self._analyze_table(table, report)
            report.relationship_strategies[table.name] = relationship_hint(table)

            if table_issues:
                report.incompatible_tables.append(table.name)
                report.issues[table.name] = table_issues
                logger.warning(f"Table {table.name} has {len(table_issues)} compatibility issue(s)")
            else:
                report.compatible_tables.append(table.name)

        report.performance_considerations = list(self.PERFORMANCE_CONSIDERATIONS)
        report.warnings = self._collect_warnings(tables)
        report.recommendations = self._collect_recommendations(report)

        logger.info(
            f"Analyzed {len(tables)} tables: {len(report.compatible_tables)} compatible, "
            f"{len(report.incompatible_tables)} incompatible"
        )
        return report

    def _analyze_table(self, table: Table, report: CompatibilityReport) -> List[str]:
        """Map every column of a table, returning its diagnostics."""
        issues = []

        for column in table.columns:
            target_type = lookup_type(column.type)
            if target_type is None:
                if not is_array_type(column.type):
                    issues.append(f"Unsupported type: {column.type} for column {column.name}")
                target_type = FALLBACK_TYPE
            report.type_mappings[f"{table.name}.{column.name}"] = target_type

        array_columns = [c.name for c in table.columns if is_array_type(c.type)]
        if array_columns:
            issues.append(
                f"Array columns may not translate directly to documents: {', '.join(array_columns)}"
            )

        return issues

    def _collect_warnings(self, tables: List[Table]) -> List[str]:
        warnings = []
        all_columns: List[Column] = [c for t in tables for c in t.columns]

        if any(is_array_type(c.type) for c in all_columns):
            warnings.append("Array columns may require special handling in the document store")
        if any('json' in c.type.lower() for c in all_columns):
            warnings.append("JSON fields will be preserved but may need validation rules")

        return warnings

    def _collect_recommendations(self, report: CompatibilityReport) -> List[str]:
        recommendations = []

        if report.incompatible_tables:
            recommendations.append(
                f"Review incompatible tables: {', '.join(report.incompatible_tables)}"
            )
            recommendations.append(
                "Consider data transformation strategies for complex relational types"
            )

        for table_name, strategy in report.relationship_strategies.items():
            if strategy != "No relationships":
                recommendations.append(f"Table '{table_name}': {strategy}")

        return recommendations
