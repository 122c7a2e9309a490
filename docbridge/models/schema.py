"""Schema models for relational tables and target document collections."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
import json


@dataclass(frozen=True)
class Column:
    """A column read from the relational source."""
    name: str
    type: str
    nullable: bool = True
    default: Optional[Any] = None
    is_primary: bool = False
    is_foreign: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "default": self.default,
            "is_primary": self.is_primary,
            "is_foreign": self.is_foreign,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        """Create from dictionary representation."""
        return cls(
            name=data.get("name", ""),
            type=data.get("type", "text"),
            nullable=data.get("nullable", True),
            default=data.get("default"),
            is_primary=data.get("is_primary", False),
            is_foreign=data.get("is_foreign", False),
        )


@dataclass(frozen=True)
class ForeignKey:
    """A foreign key owned by a table."""
    column: str
    referenced_table: str
    referenced_column: str = "id"
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "column": self.column,
            "referenced_table": self.referenced_table,
            "referenced_column": self.referenced_column,
            "on_delete": self.on_delete,
            "on_update": self.on_update,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForeignKey":
        """Create from dictionary representation."""
        return cls(
            column=data.get("column", ""),
            referenced_table=data.get("referenced_table", ""),
            referenced_column=data.get("referenced_column", "id"),
            on_delete=data.get("on_delete"),
            on_update=data.get("on_update"),
        )


@dataclass(frozen=True)
class Index:
    """An index declared on the relational source."""
    name: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "columns": list(self.columns), "unique": self.unique}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Index":
        return cls(
            name=data.get("name", ""),
            columns=list(data.get("columns", [])),
            unique=data.get("unique", False),
        )


@dataclass(frozen=True)
class Table:
    """A relational table with its columns, keys and indexes."""
    name: str
    columns: List[Column] = field(default_factory=list)
    primary_key: Optional[str] = None
    foreign_keys: List[ForeignKey] = field(default_factory=list)
    indexes: List[Index] = field(default_factory=list)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[Column]:
        """Get a column by name."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "primary_key": self.primary_key,
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
            "indexes": [i.to_dict() for i in self.indexes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Table":
        """
        Create from dictionary representation.

        Primary and foreign flags on columns are filled in from the table's
        primary key and foreign keys when the export leaves them out.
        """
        primary_key = data.get("primary_key")
        foreign_keys = [ForeignKey.from_dict(fk) for fk in data.get("foreign_keys", [])]
        fk_columns = {fk.column for fk in foreign_keys}

        columns = []
        for column_data in data.get("columns", []):
            column_data = dict(column_data)
            name = column_data.get("name", "")
            column_data.setdefault("is_primary", name == primary_key)
            column_data.setdefault("is_foreign", name in fk_columns)
            columns.append(Column.from_dict(column_data))

        return cls(
            name=data.get("name", ""),
            columns=columns,
            primary_key=primary_key,
            foreign_keys=foreign_keys,
            indexes=[Index.from_dict(i) for i in data.get("indexes", [])],
        )


@dataclass(frozen=True)
class SchemaModel:
    """
    Immutable snapshot of a relational schema.

    Passed explicitly into the analyzer, synthesizer and planner; nothing
    caches it between runs.
    """
    tables: List[Table] = field(default_factory=list)
    source: str = ""

    def __iter__(self) -> Iterator[Table]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> Optional[Table]:
        """Get a table by name."""
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "tables": [t.to_dict() for t in self.tables],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaModel":
        return cls(
            tables=[Table.from_dict(t) for t in data.get("tables", [])],
            source=data.get("source", ""),
        )

    @classmethod
    def from_json_file(cls, file_path: str) -> "SchemaModel":
        """Load an exported schema from a JSON file."""
        with open(file_path, 'r') as f:
            data = json.load(f)
        if isinstance(data, list):
            data = {"tables": data}
        return cls.from_dict(data)


@dataclass
class CompatibilityReport:
    """Result of analyzing a relational schema for document-store conversion."""
    compatible_tables: List[str] = field(default_factory=list)
    incompatible_tables: List[str] = field(default_factory=list)
    type_mappings: Dict[str, str] = field(default_factory=dict)  # "table.column" -> target type
    relationship_strategies: Dict[str, str] = field(default_factory=dict)  # advisory text
    performance_considerations: List[str] = field(default_factory=list)
    issues: Dict[str, List[str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def is_fully_compatible(self) -> bool:
        return not self.incompatible_tables

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "compatible_tables": self.compatible_tables,
            "incompatible_tables": self.incompatible_tables,
            "type_mappings": self.type_mappings,
            "relationship_strategies": self.relationship_strategies,
            "performance_considerations": self.performance_considerations,
            "issues": self.issues,
            "warnings": self.warnings,
            "recommendations": self.recommendations,
        }


@dataclass
class TargetField:
    """A field in a target collection schema."""
    name: str
    type: str
    required: bool = False
    description: str = ""
    validation: Dict[str, Any] = field(default_factory=dict)
    default_value: Optional[Any] = None
    source_column: Optional[str] = None  # Originating column, for traceability
    source_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "description": self.description,
        }
        if self.validation:
            result["validation"] = self.validation
        if self.default_value is not None:
            result["default"] = self.default_value
        if self.source_column:
            result["source_column"] = self.source_column
            result["source_type"] = self.source_type
        return result


@dataclass
class EmbeddedDocument:
    """A small related table folded into its parent document."""
    name: str
    source_table: str
    source_column: str  # Foreign key column absorbed by the embed
    fields: List[TargetField] = field(default_factory=list)
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "source_table": self.source_table,
            "source_column": self.source_column,
            "fields": [f.to_dict() for f in self.fields],
            "description": self.description,
        }


@dataclass
class Reference:
    """A related table kept as its own collection and linked by id."""
    field: str
    collection: str
    source_foreign_key: str  # "table.column"
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "collection": self.collection,
            "source_foreign_key": self.source_foreign_key,
            "description": self.description,
        }


@dataclass
class TargetIndex:
    """An index on a target collection."""
    name: str
    fields: Dict[str, int] = field(default_factory=dict)
    unique: bool = False
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "fields": self.fields,
            "unique": self.unique,
            "description": self.description,
        }


@dataclass
class CollectionSchema:
    """Target document schema synthesized from one source table."""
    name: str
    source_table: str
    description: str = ""
    fields: List[TargetField] = field(default_factory=list)
    indexes: List[TargetIndex] = field(default_factory=list)
    embedded_documents: List[EmbeddedDocument] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)
    sample_document: Dict[str, Any] = field(default_factory=dict)
    migration_notes: List[str] = field(default_factory=list)

    def get_field(self, name: str) -> Optional[TargetField]:
        """Get a field by name."""
        for target_field in self.fields:
            if target_field.name == name:
                return target_field
        return None

    def accounted_columns(self) -> List[str]:
        """
        Source columns represented by this schema.

        Each source column shows up once: as a field, as the foreign key
        absorbed by an embedded document, or as the primary key replaced by
        the surrogate id.
        """
        columns = [f.source_column for f in self.fields if f.source_column]
        columns.extend(e.source_column for e in self.embedded_documents)
        return columns

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "source_table": self.source_table,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
            "indexes": [i.to_dict() for i in self.indexes],
            "embedded_documents": [e.to_dict() for e in self.embedded_documents],
            "references": [r.to_dict() for r in self.references],
            "sample_document": self.sample_document,
            "migration_notes": self.migration_notes,
        }
