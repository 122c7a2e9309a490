"""Migration orchestrator - coordinates analysis, planning and phased execution."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .models.schema import SchemaModel, CompatibilityReport, CollectionSchema
from .models.migration import (
    MigrationConfig,
    MigrationRun,
    MigrationStep,
    MigrationStatus,
    MigrationPlan,
    MigrationPhase,
    PhaseTable,
    DataSource,
    DataSourceType,
    TargetStoreType,
    utcnow,
)
from .services.analyzer import SchemaAnalyzer
from .services.synthesizer import DocumentSchemaSynthesizer
from .services.planner import build_dependency_graph, create_planner, fetch_counts
from .services.transformer import DocumentTransformer
from .services.executor import MigrationExecutor
from .extractors.base import BaseExtractor
from .extractors.sqlalchemy_extractor import SQLAlchemyExtractor
from .extractors.file_extractor import FileExtractor
from .loaders.base import BaseLoader
from .loaders.couchdb_loader import CouchDBLoader
from .loaders.memory_loader import InMemoryLoader

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Orchestrates the complete migration process.

    Handles:
    - Reading the relational schema
    - Compatibility analysis and collection design
    - Dependency planning with source and target counts
    - Phase-by-phase execution, one phase finishing before the next starts
    - Progress tracking and reporting
    """

    def __init__(
        self,
        config: MigrationConfig,
        extractor: Optional[BaseExtractor] = None,
        loader: Optional[BaseLoader] = None,
        transformer: Optional[DocumentTransformer] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration
            extractor: Relational source (created from config.source if omitted)
            loader: Document store (created from config.target if omitted)
            transformer: Row transformer shared by all tables
        """
        self.config = config
        self.extractor = extractor or self._create_extractor(config.source)
        self.loader = loader or self._create_loader()

        # Adapters built from config are closed at the end of a run
        self._owns_extractor = extractor is None
        self._owns_loader = loader is None

        self.analyzer = SchemaAnalyzer()
        self.synthesizer = DocumentSchemaSynthesizer()
        self.planner = create_planner(config.leveling)
        self.executor = MigrationExecutor(
            self.extractor,
            self.loader,
            transformer=transformer,
            batch_size=config.batch_size,
        )

        # Runtime state
        self.run: Optional[MigrationRun] = None
        self.schema: Optional[SchemaModel] = None
        self.report: Optional[CompatibilityReport] = None
        self.collections: List[CollectionSchema] = []

        self._setup_directories()

    def _setup_directories(self):
        """Create output directories."""
        base = Path(self.config.output_dir)
        self.design_dir = base / "design"
        self.plans_dir = base / "plans"
        self.logs_dir = base / "logs"

        for dir in [self.design_dir, self.plans_dir, self.logs_dir]:
            dir.mkdir(parents=True, exist_ok=True)

    def read_schema(self) -> SchemaModel:
        """Read (and cache) the source schema."""
        if self.schema is None:
            self.schema = self.extractor.read_schema()
        return self.schema

    def design(self) -> Tuple[CompatibilityReport, List[CollectionSchema]]:
        """Analyze the schema and synthesize target collections."""
        schema = self.read_schema()
        self.report = self.analyzer.analyze(schema)
        self.collections = self.synthesizer.synthesize(schema)

        if self.config.save_design:
            self._save_design()

        return self.report, self.collections

    def plan_only(self) -> MigrationPlan:
        """
        Build the migration plan without executing it.

        Returns:
            MigrationPlan annotated with current source and target counts
        """
        schema = self.read_schema()
        graph = build_dependency_graph(schema)

        source_counts, target_counts = fetch_counts(
            schema.table_names,
            self.extractor.count_records,
            self.loader.count_documents,
            max_workers=self.config.count_workers,
        )

        plan = self.planner.plan(graph, schema, source_counts, target_counts)

        if self.config.save_plan:
            self._save_plan(plan)

        return plan

    def run_migration(self) -> MigrationRun:
        """
        Run the complete migration.

        Returns:
            MigrationRun with per-table results
        """
        self.run = MigrationRun(
            name=self.config.name,
            dry_run=self.config.dry_run,
        )
        self.run.started_at = utcnow()
        self.run.metadata["config"] = self.config.to_dict()

        try:
            logger.info("=== VALIDATING CONNECTIONS ===")
            self.run.status = MigrationStatus.VALIDATING
            self._validate_connections()

            logger.info("=== READING SCHEMA ===")
            self.run.status = MigrationStatus.READING_SCHEMA
            self.read_schema()

            logger.info("=== PLANNING ===")
            self.run.status = MigrationStatus.PLANNING
            self.design()
            self.run.plan = self.plan_only()
            self.run.metadata["incompatible_tables"] = list(self.report.incompatible_tables)

            logger.info("=== MIGRATING ===")
            self.run.status = MigrationStatus.MIGRATING
            for phase in self.run.plan.phases:
                self._run_phase(phase)

            if self.run.failed_tables:
                self.run.status = MigrationStatus.COMPLETED_WITH_ERRORS
                logger.warning(f"Migration completed with failed tables: {', '.join(self.run.failed_tables)}")
            else:
                self.run.status = MigrationStatus.COMPLETED
                logger.info("=== MIGRATION COMPLETED ===")

        except Exception as e:
            logger.error(f"Migration failed during {self.run.status.value}: {e}")
            self.run.errors.append({
                "phase": self.run.status.value,
                "error": str(e),
                "timestamp": utcnow().isoformat(),
            })
            self.run.status = MigrationStatus.FAILED

        finally:
            self.run.completed_at = utcnow()
            self._save_report()
            self.close()

        return self.run

    def _validate_connections(self):
        """Check both stores before any work is done."""
        source_errors = self.extractor.validate_source()
        if source_errors:
            raise RuntimeError(f"Source validation failed: {'; '.join(source_errors)}")

        if not self.loader.validate_connection():
            raise RuntimeError("Failed to connect to target store")

    def close(self):
        """Close the extractor and loader this orchestrator created."""
        if self._owns_extractor:
            self.extractor.close()
        if self._owns_loader:
            self.loader.close()

    def _run_phase(self, phase: MigrationPhase):
        """Run all tables of a phase; returns once every table has finished."""
        logger.info(f"--- Phase {phase.phase}: {phase.name} ({len(phase.tables)} tables) ---")

        pending: List[Tuple[MigrationStep, PhaseTable]] = []
        for entry in phase.tables:
            step = self.run.add_step(entry.name, phase.phase)

            if self.config.only_tables and entry.name not in self.config.only_tables:
                step.status = MigrationStatus.SKIPPED
                step.warnings.append("Not selected for this run")
            elif not entry.needs_migration:
                step.status = MigrationStatus.SKIPPED
                step.warnings.append(entry.reason)
                logger.info(f"Skipping {entry.name}: {entry.reason}")
            else:
                pending.append((step, entry))

        if self.config.parallel_workers > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.config.parallel_workers) as pool:
                list(pool.map(lambda item: self._migrate_step(*item), pending))
        else:
            for step, entry in pending:
                self._migrate_step(step, entry)

        failed = [step.table for step, _ in pending if step.status == MigrationStatus.FAILED]
        if failed and not self.config.continue_on_error:
            raise RuntimeError(f"Phase {phase.phase} failed for tables: {', '.join(failed)}")

    def _migrate_step(self, step: MigrationStep, entry: PhaseTable):
        """Migrate one table and record the outcome on its step."""
        step.status = MigrationStatus.MIGRATING
        step.started_at = utcnow()
        self.run.metadata["current_table"] = entry.name

        try:
            table = self.schema.get_table(entry.name) if self.schema else None
            result = self.executor.migrate_table(entry.name, entry.strategy, table=table)
            step.result = result

            if result.success:
                step.status = MigrationStatus.COMPLETED
                if not self.config.dry_run:
                    step.warnings.extend(self.executor.validate_table(entry.name))
            else:
                step.status = MigrationStatus.FAILED
                logger.error(f"Migration failed for {entry.name}: {result.error}")

        except Exception as e:
            step.status = MigrationStatus.FAILED
            step.warnings.append(str(e))
            logger.error(f"Migration failed for {entry.name}: {e}")

        finally:
            step.completed_at = utcnow()

    def _create_extractor(self, source: DataSource) -> BaseExtractor:
        """Create an appropriate extractor for the source."""
        if source.type == DataSourceType.SQLALCHEMY:
            return SQLAlchemyExtractor(source)
        elif source.type == DataSourceType.FILE:
            return FileExtractor(source)
        else:
            raise ValueError(f"Unsupported source type: {source.type}")

    def _create_loader(self) -> BaseLoader:
        """Create an appropriate loader for the target."""
        target = self.config.target

        if target.type == TargetStoreType.COUCHDB:
            return CouchDBLoader(
                target,
                dry_run=self.config.dry_run,
                batch_size=self.config.batch_size,
            )
        elif target.type == TargetStoreType.MEMORY:
            return InMemoryLoader(dry_run=self.config.dry_run, batch_size=self.config.batch_size)
        else:
            raise ValueError(f"Unsupported target type: {target.type}")

    def _timestamp(self) -> str:
        return utcnow().strftime('%Y%m%d_%H%M%S')

    def _write_json(self, filepath: Path, data: Any):
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2, default=str)

    def _save_design(self):
        """Save the compatibility report and collection designs."""
        filepath = self.design_dir / f"collection_design_{self._timestamp()}.json"
        data: Dict[str, Any] = {
            "compatibility": self.report.to_dict() if self.report else None,
            "collections": [c.to_dict() for c in self.collections],
        }
        self._write_json(filepath, data)
        logger.info(f"Saved collection design to {filepath}")

    def _save_plan(self, plan: MigrationPlan):
        """Save the migration plan."""
        filepath = self.plans_dir / f"migration_plan_{self._timestamp()}.json"
        self._write_json(filepath, plan.to_dict())
        logger.info(f"Saved migration plan to {filepath}")

    def _save_report(self):
        """Save the migration report."""
        filepath = self.logs_dir / f"migration_report_{self._timestamp()}.json"
        self._write_json(filepath, self.run.to_dict())
        logger.info(f"Saved migration report to {filepath}")
