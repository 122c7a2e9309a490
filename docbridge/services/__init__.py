"""Service layer for schema migration planning and federation."""

from .analyzer import SchemaAnalyzer
from .synthesizer import DocumentSchemaSynthesizer
from .planner import (
    PhasePlanner,
    TopologicalPlanner,
    PlanningError,
    build_dependency_graph,
    determine_migration_strategy,
    create_planner,
    fetch_counts,
)
from .transformer import DocumentTransformer
from .executor import MigrationExecutor
from .join import CrossStoreJoinEngine
from .federation import FederatedQueryService

__all__ = [
    "SchemaAnalyzer",
    "DocumentSchemaSynthesizer",
    "PhasePlanner",
    "TopologicalPlanner",
    "PlanningError",
    "build_dependency_graph",
    "determine_migration_strategy",
    "create_planner",
    "fetch_counts",
    "DocumentTransformer",
    "MigrationExecutor",
    "CrossStoreJoinEngine",
    "FederatedQueryService",
]
