"""Synthesis of target document schemas from relational tables."""

import re
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models.schema import (
    Table,
    Column,
    ForeignKey,
    TargetField,
    EmbeddedDocument,
    Reference,
    TargetIndex,
    CollectionSchema,
)
from .analyzer import map_type, is_integer_type, normalize_type

logger = logging.getLogger(__name__)


SURROGATE_ID = "_id"
SURROGATE_TYPE = "ObjectId"
OBJECT_ID_PLACEHOLDER = 'ObjectId("...")'

# A referenced table is embedded only when it is this small and has no
# foreign keys of its own.
EMBED_MAX_COLUMNS = 5

SAMPLE_VALUES: Dict[str, Any] = {
    'String': 'sample_string',
    'Number': 42,
    'Boolean': True,
    'Date': '2025-01-27T00:00:00.000Z',
    'Object': {'key': 'value'},
    'Array': ['item1', 'item2'],
    'ObjectId': OBJECT_ID_PLACEHOLDER,
    'Binary': 'Binary data',
}

_SIZED_STRING = re.compile(r"(?:varchar|character varying|char|character|nvarchar|nchar)\s*\((\d+)\)")


def pluralize(name: str) -> str:
    """Pluralize a table name into a collection name."""
    if name.endswith('y'):
        return name[:-1] + 'ies'
    if name.endswith(('s', 'x', 'z', 'ch', 'sh')):
        return name + 'es'
    return name + 's'


def embed_name(fk_column: str) -> str:
    """Embedded document name for a foreign key column, e.g. 'country_id' -> 'country'."""
    name = re.sub(r"_id$", "", fk_column)
    return re.sub(r"_fk$", "", name)


def should_embed(referenced_table: Table) -> bool:
    """Structural embed rule: small leaf tables are embedded, everything else referenced."""
    return (
        len(referenced_table.columns) <= EMBED_MAX_COLUMNS
        and not referenced_table.foreign_keys
    )


class DocumentSchemaSynthesizer:
    """
    Synthesizer for target collection schemas.

    For every table it decides, per foreign key, whether the referenced
    table is embedded or referenced, then derives fields, indexes, a sample
    document and migration notes.
    """

    def synthesize(self, tables: Iterable[Table]) -> List[CollectionSchema]:
        """
        Synthesize one collection schema per input table.

        Args:
            tables: Source tables (a list or a SchemaModel)

        Returns:
            Collection schemas in input order
        """
        tables = list(tables)
        by_name = {t.name: t for t in tables}
        collections = [self.synthesize_table(table, by_name) for table in tables]
        logger.info(f"Synthesized {len(collections)} collection schemas")
        return collections

    def synthesize_table(
        self,
        table: Table,
        all_tables: Union[Dict[str, Table], List[Table]]
    ) -> CollectionSchema:
        """Synthesize the collection schema for a single table."""
        if not isinstance(all_tables, dict):
            all_tables = {t.name: t for t in all_tables}

        notes: List[str] = []
        embedded_documents: List[EmbeddedDocument] = []
        references: List[Reference] = []

        for fk in table.foreign_keys:
            referenced = all_tables.get(fk.referenced_table)
            if referenced is None:
                notes.append(
                    f"Foreign key '{fk.column}' references unknown table "
                    f"'{fk.referenced_table}'; relationship skipped"
                )
                logger.warning(
                    f"Unresolved foreign key {table.name}.{fk.column} -> {fk.referenced_table}"
                )
                continue

            if should_embed(referenced):
                embedded_documents.append(self._build_embedded_document(fk, referenced))
            else:
                references.append(self._build_reference(table, fk, referenced))

        absorbed = {e.source_column for e in embedded_documents}
        fields = self._build_fields(table, absorbed)
        indexes = self._build_indexes(table, fields)

        return CollectionSchema(
            name=pluralize(table.name),
            source_table=table.name,
            description=f"Collection converted from relational table: {table.name}",
            fields=fields,
            indexes=indexes,
            embedded_documents=embedded_documents,
            references=references,
            sample_document=self._build_sample_document(fields, embedded_documents, references),
            migration_notes=self._build_notes(table, fields) + notes,
        )

    def _build_fields(self, table: Table, absorbed_columns: set) -> List[TargetField]:
        """Surrogate id plus one field per remaining column."""
        id_column = self._conventional_id(table)

        fields = [TargetField(
            name=SURROGATE_ID,
            type=SURROGATE_TYPE,
            required=True,
            description="Document identifier",
            validation={"type": SURROGATE_TYPE},
            source_column=id_column.name if id_column else None,
            source_type=id_column.type if id_column else None,
        )]

        for column in table.columns:
            if column is id_column or column.name in absorbed_columns:
                continue
            fields.append(self.convert_column(column))

        return fields

    def _conventional_id(self, table: Table) -> Optional[Column]:
        """The primary 'id' column replaced by the surrogate, if the table has one."""
        column = table.get_column("id")
        if column and (column.is_primary or table.primary_key == "id"):
            return column
        return None

    def convert_column(self, column: Column, description: str = "") -> TargetField:
        """Convert a relational column to a target field."""
        target_type = map_type(column.type)
        return TargetField(
            name=column.name,
            type=target_type,
            required=not column.nullable,
            description=description or f"Converted from {column.type} column",
            validation=self._build_validation(target_type, column),
            default_value=column.default,
            source_column=column.name,
            source_type=column.type,
        )

    def _build_validation(self, target_type: str, column: Column) -> Dict[str, Any]:
        validation: Dict[str, Any] = {"type": target_type}

        if target_type == 'String':
            match = _SIZED_STRING.search(column.type.lower())
            if match:
                validation["maxLength"] = int(match.group(1))
        elif target_type == 'Number':
            if is_integer_type(column.type):
                validation["integer"] = True

        return validation

    def _build_embedded_document(self, fk: ForeignKey, referenced: Table) -> EmbeddedDocument:
        fields = [
            self.convert_column(col, description=f"Embedded from {referenced.name}.{col.name}")
            for col in referenced.columns
        ]
        return EmbeddedDocument(
            name=embed_name(fk.column),
            source_table=referenced.name,
            source_column=fk.column,
            fields=fields,
            description=f"Embedded document from {referenced.name}",
        )

    def _build_reference(self, table: Table, fk: ForeignKey, referenced: Table) -> Reference:
        return Reference(
            field=fk.column,
            collection=pluralize(referenced.name),
            source_foreign_key=f"{table.name}.{fk.column}",
            description=f"Reference to {referenced.name}",
        )

    def _build_indexes(self, table: Table, fields: List[TargetField]) -> List[TargetIndex]:
        indexes = []

        if table.primary_key and table.primary_key != "id":
            indexes.append(TargetIndex(
                name=f"{table.name}_{table.primary_key}_idx",
                fields={table.primary_key: 1},
                unique=True,
                description="Primary key index from the relational source",
            ))

        for fk in table.foreign_keys:
            indexes.append(TargetIndex(
                name=f"{table.name}_{fk.column}_idx",
                fields={fk.column: 1},
                unique=False,
                description=f"Foreign key index for {fk.referenced_table}",
            ))

        text_fields = [f.name for f in fields if f.type == 'String' and f.name != SURROGATE_ID]
        if text_fields:
            indexes.append(TargetIndex(
                name=f"{table.name}_text_search_idx",
                fields={name: 1 for name in text_fields},
                unique=False,
                description="Text search index for string fields",
            ))

        return indexes

    def _build_sample_document(
        self,
        fields: List[TargetField],
        embedded_documents: List[EmbeddedDocument],
        references: List[Reference]
    ) -> Dict[str, Any]:
        sample: Dict[str, Any] = {}

        for target_field in fields:
            sample[target_field.name] = sample_value(target_field.type)

        for embedded in embedded_documents:
            sample[embedded.name] = {f.name: sample_value(f.type) for f in embedded.fields}

        for reference in references:
            sample[reference.field] = OBJECT_ID_PLACEHOLDER

        return sample

    def _build_notes(self, table: Table, fields: List[TargetField]) -> List[str]:
        notes = [f"Table '{table.name}' converted to collection '{pluralize(table.name)}'"]

        if table.primary_key and table.primary_key != "id":
            notes.append(
                f"Primary key '{table.primary_key}' kept as a regular field alongside {SURROGATE_ID}"
            )

        conversions = [
            f"{f.source_column} ({f.source_type} → {f.type})"
            for f in fields
            if f.source_type and f.name != SURROGATE_ID and normalize_type(f.source_type) != f.type.lower()
        ]
        if conversions:
            notes.append(f"Type conversions: {', '.join(conversions)}")

        if table.foreign_keys:
            notes.append("Foreign key relationships converted to embedded documents or references")

        return notes


def sample_value(target_type: str) -> Any:
    """Representative literal for a target type family."""
    value = SAMPLE_VALUES.get(target_type, 'sample_value')
    if isinstance(value, (dict, list)):
        return type(value)(value)
    return value
