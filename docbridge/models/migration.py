"""Migration planning and execution models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
from enum import Enum
from datetime import datetime, timezone
import json
import os
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MigrationStrategy(str, Enum):
    """How a table's rows are represented in the document store."""
    STANDALONE = "standalone"
    EMBEDDED = "embedded"
    REFERENCED = "referenced"


class MigrationStatus(str, Enum):
    """Status of a migration run or step."""
    PENDING = "pending"
    VALIDATING = "validating"
    READING_SCHEMA = "reading_schema"
    PLANNING = "planning"
    MIGRATING = "migrating"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"
    SKIPPED = "skipped"


class DataSourceType(str, Enum):
    """Types of relational sources."""
    SQLALCHEMY = "sqlalchemy"  # Live database through a SQLAlchemy URL
    FILE = "file"  # Exported schema JSON plus per-table row files


class TargetStoreType(str, Enum):
    """Types of document stores."""
    COUCHDB = "couchdb"
    MEMORY = "memory"


@dataclass
class DependencyNode:
    """A table in the dependency graph."""
    table: str
    dependencies: Set[str] = field(default_factory=set)  # Tables this one references
    dependents: Set[str] = field(default_factory=set)  # Tables referencing this one

    @property
    def is_independent(self) -> bool:
        return not self.dependencies

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "dependencies": sorted(self.dependencies),
            "dependents": sorted(self.dependents),
        }


@dataclass
class PhaseTable:
    """A table entry inside a migration phase."""
    name: str
    source_record_count: int
    dependencies: List[str] = field(default_factory=list)
    strategy: MigrationStrategy = MigrationStrategy.STANDALONE
    reason: str = ""
    needs_migration: bool = True
    current_target_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "source_record_count": self.source_record_count,
            "dependencies": self.dependencies,
            "strategy": self.strategy.value,
            "reason": self.reason,
            "needs_migration": self.needs_migration,
            "current_target_count": self.current_target_count,
        }


@dataclass
class MigrationPhase:
    """A batch of tables whose dependencies are satisfied by earlier phases."""
    phase: int
    name: str
    description: str = ""
    tables: List[PhaseTable] = field(default_factory=list)

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    @property
    def tables_to_migrate(self) -> List[PhaseTable]:
        return [t for t in self.tables if t.needs_migration]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "name": self.name,
            "description": self.description,
            "tables": [t.to_dict() for t in self.tables],
        }


@dataclass
class MigrationPlan:
    """Ordered migration phases for a schema."""
    phases: List[MigrationPhase] = field(default_factory=list)
    leveling: str = "fixed"
    created_at: datetime = field(default_factory=utcnow)

    @property
    def total_phases(self) -> int:
        return len(self.phases)

    @property
    def total_tables_to_migrate(self) -> int:
        """Number of tables across all phases that still need migration."""
        return sum(len(p.tables_to_migrate) for p in self.phases)

    def get_phase_for(self, table_name: str) -> Optional[MigrationPhase]:
        """Get the phase a table was placed in."""
        for phase in self.phases:
            if table_name in phase.table_names:
                return phase
        return None

    def get_table(self, table_name: str) -> Optional[PhaseTable]:
        """Get a table's plan entry."""
        for phase in self.phases:
            for entry in phase.tables:
                if entry.name == table_name:
                    return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "leveling": self.leveling,
            "created_at": self.created_at.isoformat(),
            "total_phases": self.total_phases,
            "total_tables_to_migrate": self.total_tables_to_migrate,
            "phases": [p.to_dict() for p in self.phases],
        }


@dataclass
class TableMigrationResult:
    """Outcome of migrating one table."""
    table: str
    migrated_count: int
    collection_name: str
    strategy: MigrationStrategy
    duration: float  # Seconds
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "table": self.table,
            "success": self.success,
            "migrated_count": self.migrated_count,
            "collection_name": self.collection_name,
            "strategy": self.strategy.value,
            "duration": self.duration,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class MigrationStep:
    """A single table migration inside a run."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    table: str = ""
    phase: int = 0
    status: MigrationStatus = MigrationStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[TableMigrationResult] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "table": self.table,
            "phase": self.phase,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result.to_dict() if self.result else None,
            "warnings": self.warnings,
        }


@dataclass
class MigrationRun:
    """A complete migration run."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    status: MigrationStatus = MigrationStatus.PENDING
    dry_run: bool = False

    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    plan: Optional[MigrationPlan] = None
    steps: List[MigrationStep] = field(default_factory=list)

    errors: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def results(self) -> List[TableMigrationResult]:
        return [s.result for s in self.steps if s.result is not None]

    @property
    def failed_tables(self) -> List[str]:
        """Tables whose migration failed, for re-submission."""
        return [r.table for r in self.results if not r.success]

    @property
    def total_documents_migrated(self) -> int:
        return sum(r.migrated_count for r in self.results)

    def add_step(self, table: str, phase: int) -> MigrationStep:
        """Add a new step to the run."""
        step = MigrationStep(name=f"Migrate {table}", table=table, phase=phase)
        self.steps.append(step)
        return step

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "plan": self.plan.to_dict() if self.plan else None,
            "steps": [s.to_dict() for s in self.steps],
            "failed_tables": self.failed_tables,
            "total_documents_migrated": self.total_documents_migrated,
            "errors": self.errors,
            "metadata": self.metadata,
        }


@dataclass
class DataSource:
    """Configuration for the relational source."""
    type: DataSourceType
    name: str = "source"

    # For SQLAlchemy sources
    url: Optional[str] = None
    schema: Optional[str] = None

    # For file exports
    schema_file: Optional[str] = None
    data_dir: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "url": self.url,
            "schema": self.schema,
            "schema_file": self.schema_file,
            "data_dir": self.data_dir,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataSource":
        return cls(
            type=DataSourceType(data.get("type", "sqlalchemy")),
            name=data.get("name", "source"),
            url=data.get("url"),
            schema=data.get("schema"),
            schema_file=data.get("schema_file"),
            data_dir=data.get("data_dir"),
        )


@dataclass
class TargetStore:
    """Configuration for the document store."""
    type: TargetStoreType
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    database_prefix: str = ""
    retry_config: Dict[str, Any] = field(default_factory=lambda: {
        "max_retries": 3,
        "backoff_factor": 2.0,
    })

    def to_dict(self) -> Dict[str, Any]:
        # Credentials are never written out
        return {
            "type": self.type.value,
            "url": self.url,
            "database_prefix": self.database_prefix,
            "retry_config": self.retry_config,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetStore":
        return cls(
            type=TargetStoreType(data.get("type", "memory")),
            url=data.get("url"),
            username=data.get("username") or os.environ.get("DOCBRIDGE_TARGET_USERNAME"),
            password=data.get("password") or os.environ.get("DOCBRIDGE_TARGET_PASSWORD"),
            database_prefix=data.get("database_prefix", ""),
            retry_config=data.get("retry_config", {"max_retries": 3, "backoff_factor": 2.0}),
        )


@dataclass
class MigrationConfig:
    """Configuration for a migration."""
    name: str
    source: DataSource
    target: TargetStore

    # Execution options
    dry_run: bool = False
    batch_size: int = 1000
    parallel_workers: int = 1  # Tables migrated concurrently within one phase
    count_workers: int = 4  # Concurrent record-count lookups while planning
    continue_on_error: bool = True
    leveling: str = "fixed"  # "fixed" five-phase scheme or "topological"
    only_tables: List[str] = field(default_factory=list)

    # Output
    output_dir: str = "./data"
    save_design: bool = True
    save_plan: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "source": self.source.to_dict(),
            "target": self.target.to_dict(),
            "dry_run": self.dry_run,
            "batch_size": self.batch_size,
            "parallel_workers": self.parallel_workers,
            "count_workers": self.count_workers,
            "continue_on_error": self.continue_on_error,
            "leveling": self.leveling,
            "only_tables": self.only_tables,
            "output_dir": self.output_dir,
            "save_design": self.save_design,
            "save_plan": self.save_plan,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from dictionary representation."""
        leveling = data.get("leveling", "fixed")
        if leveling not in ("fixed", "topological"):
            raise ValueError(f"Unknown leveling mode: {leveling}")

        return cls(
            name=data.get("name", ""),
            source=DataSource.from_dict(data.get("source", {})),
            target=TargetStore.from_dict(data.get("target", {})),
            dry_run=data.get("dry_run", False),
            batch_size=data.get("batch_size", 1000),
            parallel_workers=data.get("parallel_workers", 1),
            count_workers=data.get("count_workers", 4),
            continue_on_error=data.get("continue_on_error", True),
            leveling=leveling,
            only_tables=data.get("only_tables", []),
            output_dir=data.get("output_dir", "./data"),
            save_design=data.get("save_design", True),
            save_plan=data.get("save_plan", True),
        )

    @classmethod
    def from_json_file(cls, file_path: str) -> "MigrationConfig":
        """Load configuration from a JSON file."""
        with open(file_path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)
