"""Tests for the end-to-end migration orchestrator."""

import json

import pytest

from docbridge.extractors.file_extractor import FileExtractor
from docbridge.extractors.sqlalchemy_extractor import SQLAlchemyExtractor
from docbridge.loaders.couchdb_loader import CouchDBLoader
from docbridge.loaders.memory_loader import InMemoryLoader
from docbridge.models.migration import (
    DataSource,
    DataSourceType,
    MigrationConfig,
    MigrationStatus,
    TargetStore,
    TargetStoreType,
)
from docbridge.orchestrator import MigrationOrchestrator
from conftest import StaticExtractor


class RejectingLoader(InMemoryLoader):
    """Loader that refuses writes to some collections."""

    def __init__(self, rejected):
        super().__init__()
        self.rejected = set(rejected)

    def _write_batch(self, collection, documents):
        if collection in self.rejected:
            raise RuntimeError(f"write to {collection} refused")
        return super()._write_batch(collection, documents)


class UnreadableExtractor(StaticExtractor):
    def read_schema(self):
        raise ConnectionError("source database unreachable")


class MisconfiguredExtractor(StaticExtractor):
    def validate_source(self):
        return ["Schema file not found: schema.json"]

    def read_schema(self):
        raise AssertionError("schema must not be read after a failed validation")


class OfflineLoader(InMemoryLoader):
    def validate_connection(self):
        return False


class ClosingExtractor(StaticExtractor):
    def __init__(self, schema, rows=None):
        super().__init__(schema, rows)
        self.closed = 0

    def close(self):
        self.closed += 1


@pytest.fixture
def make_config(tmp_path):
    def factory(**options):
        return MigrationConfig(
            name="geo",
            source=DataSource(type=DataSourceType.FILE),
            target=TargetStore(type=TargetStoreType.MEMORY),
            output_dir=str(tmp_path / "out"),
            **options
        )
    return factory


def statuses(run):
    return {step.table: step.status for step in run.steps}


class TestRunMigration:
    def test_migrates_every_table(self, make_config, geo_extractor, memory_loader, tmp_path):
        orchestrator = MigrationOrchestrator(make_config(), geo_extractor, memory_loader)
        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert statuses(run) == {
            "country": MigrationStatus.COMPLETED,
            "city": MigrationStatus.COMPLETED,
            "address": MigrationStatus.COMPLETED,
        }
        assert [s.phase for s in run.steps] == [1, 2, 4]
        assert run.total_documents_migrated == 7
        assert memory_loader.count_documents("city") == 3
        assert [c.name for c in orchestrator.collections] == ["countries", "cities", "addresses"]

        out = tmp_path / "out"
        assert len(list((out / "logs").glob("migration_report_*.json"))) == 1
        assert len(list((out / "plans").glob("migration_plan_*.json"))) == 1
        design_file = next((out / "design").glob("collection_design_*.json"))
        design = json.loads(design_file.read_text())
        assert design["compatibility"]["compatible_tables"] == ["country", "city", "address"]

    def test_rerun_skips_synced_tables(self, make_config, geo_extractor, memory_loader):
        MigrationOrchestrator(make_config(), geo_extractor, memory_loader).run_migration()
        run = MigrationOrchestrator(make_config(), geo_extractor, memory_loader).run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert set(statuses(run).values()) == {MigrationStatus.SKIPPED}
        assert run.plan.total_tables_to_migrate == 0
        assert run.steps[0].warnings == ["Already migrated and synced"]

    def test_failed_table_does_not_stop_other_tables(self, make_config, geo_extractor):
        loader = RejectingLoader(["city"])
        run = MigrationOrchestrator(make_config(), geo_extractor, loader).run_migration()

        assert run.status == MigrationStatus.COMPLETED_WITH_ERRORS
        assert run.failed_tables == ["city"]
        assert statuses(run)["address"] == MigrationStatus.COMPLETED
        assert "write to city refused" in run.steps[1].result.error

    def test_stop_on_error(self, make_config, geo_extractor):
        loader = RejectingLoader(["city"])
        config = make_config(continue_on_error=False)
        run = MigrationOrchestrator(config, geo_extractor, loader).run_migration()

        assert run.status == MigrationStatus.FAILED
        assert "address" not in statuses(run)
        assert "Phase 2 failed for tables: city" in run.errors[0]["error"]

    def test_schema_failure(self, make_config, geo_tables, memory_loader):
        extractor = UnreadableExtractor(schema=None)
        run = MigrationOrchestrator(make_config(), extractor, memory_loader).run_migration()

        assert run.status == MigrationStatus.FAILED
        assert run.errors[0]["phase"] == "reading_schema"
        assert run.steps == []

    def test_invalid_source_stops_the_run(self, make_config, geo_extractor, memory_loader):
        extractor = MisconfiguredExtractor(geo_extractor.schema, geo_extractor.rows)
        run = MigrationOrchestrator(make_config(), extractor, memory_loader).run_migration()

        assert run.status == MigrationStatus.FAILED
        assert run.errors[0]["phase"] == "validating"
        assert "Schema file not found" in run.errors[0]["error"]
        assert run.plan is None

    def test_unreachable_target_stops_the_run(self, make_config, geo_extractor):
        loader = OfflineLoader()
        run = MigrationOrchestrator(make_config(), geo_extractor, loader).run_migration()

        assert run.status == MigrationStatus.FAILED
        assert run.errors[0] == {
            "phase": "validating",
            "error": "Failed to connect to target store",
            "timestamp": run.errors[0]["timestamp"],
        }
        assert loader.collections == {}

    def test_closes_only_adapters_it_created(self, make_config, geo_extractor, monkeypatch):
        extractor = ClosingExtractor(geo_extractor.schema, geo_extractor.rows)
        orchestrator = MigrationOrchestrator(make_config(), extractor)
        closed = []
        monkeypatch.setattr(orchestrator.loader, "close", lambda: closed.append("loader"))

        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert closed == ["loader"]
        assert extractor.closed == 0

    def test_dry_run_leaves_target_untouched(self, make_config, geo_extractor):
        orchestrator = MigrationOrchestrator(make_config(dry_run=True), geo_extractor)
        run = orchestrator.run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert run.total_documents_migrated == 7
        assert orchestrator.loader.collections == {}

    def test_only_selected_tables(self, make_config, geo_extractor, memory_loader):
        config = make_config(only_tables=["country"])
        run = MigrationOrchestrator(config, geo_extractor, memory_loader).run_migration()

        assert statuses(run) == {
            "country": MigrationStatus.COMPLETED,
            "city": MigrationStatus.SKIPPED,
            "address": MigrationStatus.SKIPPED,
        }
        assert memory_loader.count_documents("city") == 0

    def test_parallel_workers(self, make_config, make_extractor, film_tables, memory_loader):
        rows = {
            "language": [{"id": i, "name": f"lang{i}"} for i in range(3)],
            "actor": [{"id": i, "first_name": "A", "last_name": "B"} for i in range(150)],
            "film": [{"id": i, "title": f"film{i}", "language_id": 0} for i in range(120)],
            "film_actor": [{"actor_id": i, "film_id": i} for i in range(110)],
        }
        config = make_config(parallel_workers=4)
        run = MigrationOrchestrator(config, make_extractor(film_tables, rows), memory_loader).run_migration()

        assert run.status == MigrationStatus.COMPLETED
        assert run.total_documents_migrated == 383
        assert run.plan.get_table("film_actor").strategy.value == "embedded"
        docs = memory_loader.read_documents("film_actor", limit=1)
        assert docs[0]["migration_note"] == "Marked for embedding in parent documents"

    def test_report_serializes(self, make_config, geo_extractor, memory_loader):
        run = MigrationOrchestrator(make_config(), geo_extractor, memory_loader).run_migration()
        data = run.to_dict()

        assert data["status"] == "completed"
        assert data["failed_tables"] == []
        assert data["steps"][0]["result"]["migrated_count"] == 2
        assert "password" not in json.dumps(data["metadata"])


class TestPlanOnly:
    def test_plan_only_does_not_migrate(self, make_config, geo_extractor, memory_loader, tmp_path):
        plan = MigrationOrchestrator(make_config(), geo_extractor, memory_loader).plan_only()

        assert plan.total_tables_to_migrate == 3
        assert plan.get_table("city").source_record_count == 3
        assert memory_loader.collections == {}
        assert len(list((tmp_path / "out" / "plans").glob("*.json"))) == 1

    def test_topological_leveling(self, make_config, geo_extractor, memory_loader):
        config = make_config(leveling="topological")
        plan = MigrationOrchestrator(config, geo_extractor, memory_loader).plan_only()

        assert [p.phase for p in plan.phases] == [1, 2, 3]
        assert plan.leveling == "topological"


class TestAdapterSelection:
    def test_sqlalchemy_source_and_memory_target(self, tmp_path):
        config = MigrationConfig.from_dict({
            "name": "sqlite",
            "source": {"type": "sqlalchemy", "url": f"sqlite:///{tmp_path / 'db.sqlite'}"},
            "target": {"type": "memory"},
            "output_dir": str(tmp_path / "out"),
        })
        orchestrator = MigrationOrchestrator(config)

        assert isinstance(orchestrator.extractor, SQLAlchemyExtractor)
        assert isinstance(orchestrator.loader, InMemoryLoader)

    def test_file_source_and_couchdb_target(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCBRIDGE_TARGET_PASSWORD", "from-env")
        config = MigrationConfig.from_dict({
            "name": "files",
            "source": {"type": "file", "schema_file": "schema.json", "data_dir": "data"},
            "target": {"type": "couchdb", "url": "http://localhost:5984", "username": "admin"},
            "batch_size": 250,
            "output_dir": str(tmp_path / "out"),
        })
        orchestrator = MigrationOrchestrator(config)

        assert isinstance(orchestrator.extractor, FileExtractor)
        assert isinstance(orchestrator.loader, CouchDBLoader)
        assert orchestrator.loader.target.password == "from-env"
        assert orchestrator.executor.batch_size == 250
        assert "password" not in config.to_dict()["target"]

    def test_unknown_leveling_rejected(self):
        with pytest.raises(ValueError):
            MigrationConfig.from_dict({"name": "x", "leveling": "random"})
