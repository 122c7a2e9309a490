"""Data models for docbridge."""

from .schema import (
    Column,
    ForeignKey,
    Index,
    Table,
    SchemaModel,
    CompatibilityReport,
    TargetField,
    EmbeddedDocument,
    Reference,
    TargetIndex,
    CollectionSchema,
)
from .migration import (
    MigrationStrategy,
    MigrationStatus,
    DependencyNode,
    PhaseTable,
    MigrationPhase,
    MigrationPlan,
    TableMigrationResult,
    MigrationStep,
    MigrationRun,
    MigrationConfig,
    DataSource,
    DataSourceType,
    TargetStore,
    TargetStoreType,
)
from .record import (
    Row,
    JoinStrategy,
    JoinSpec,
    JoinedRow,
    FederatedQueryResult,
)

__all__ = [
    "Column",
    "ForeignKey",
    "Index",
    "Table",
    "SchemaModel",
    "CompatibilityReport",
    "TargetField",
    "EmbeddedDocument",
    "Reference",
    "TargetIndex",
    "CollectionSchema",
    "MigrationStrategy",
    "MigrationStatus",
    "DependencyNode",
    "PhaseTable",
    "MigrationPhase",
    "MigrationPlan",
    "TableMigrationResult",
    "MigrationStep",
    "MigrationRun",
    "MigrationConfig",
    "DataSource",
    "DataSourceType",
    "TargetStore",
    "TargetStoreType",
    "Row",
    "JoinStrategy",
    "JoinSpec",
    "JoinedRow",
    "FederatedQueryResult",
]
