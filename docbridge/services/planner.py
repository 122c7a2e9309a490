"""Dependency graph construction and phase planning for table migration."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..models.schema import Table
from ..models.migration import (
    DependencyNode,
    MigrationStrategy,
    PhaseTable,
    MigrationPhase,
    MigrationPlan,
)

logger = logging.getLogger(__name__)


SMALL_TABLE_THRESHOLD = 100
ALREADY_SYNCED = "Already migrated and synced"


class PlanningError(RuntimeError):
    """A table could not be placed in any phase."""


def build_dependency_graph(tables: Iterable[Table]) -> Dict[str, DependencyNode]:
    """
    Build the table -> referenced-tables graph.

    Every table becomes a node, including tables without foreign keys.
    """
    tables = list(tables)
    graph = {table.name: DependencyNode(table=table.name) for table in tables}

    for table in tables:
        for fk in table.foreign_keys:
            graph[table.name].dependencies.add(fk.referenced_table)
            if fk.referenced_table in graph:
                graph[fk.referenced_table].dependents.add(table.name)

    return graph


def determine_migration_strategy(table: Table, record_count: int) -> MigrationStrategy:
    """
    Pick a migration strategy for a table.

    Checked in order: small tables are standalone, junction-shaped tables
    (a '_' in the name and exactly two foreign keys) are embedded, any other
    table with foreign keys is referenced.
    """
    if record_count < SMALL_TABLE_THRESHOLD:
        return MigrationStrategy.STANDALONE

    if '_' in table.name and len(table.foreign_keys) == 2:
        return MigrationStrategy.EMBEDDED

    if table.foreign_keys:
        return MigrationStrategy.REFERENCED

    return MigrationStrategy.STANDALONE


def needs_migration(source_count: int, target_count: int) -> bool:
    return target_count == 0 or target_count != source_count


def fetch_counts(
    table_names: Iterable[str],
    record_counter: Callable[[str], int],
    document_counter: Callable[[str], int],
    max_workers: int = 4
) -> Tuple[Dict[str, int], Dict[str, int]]:
    """
    Look up source record counts and target document counts for every table.

    Lookups are independent and run concurrently. A failed lookup counts as
    zero, which makes the table show up as needing migration.

    Returns:
        (source_counts, target_counts)
    """
    names = list(table_names)

    def safe_count(counter: Callable[[str], int], name: str, side: str) -> int:
        try:
            return int(counter(name) or 0)
        except Exception as e:
            logger.warning(f"Failed to get {side} count for {name}: {e}")
            return 0

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        source_futures = {n: pool.submit(safe_count, record_counter, n, "source") for n in names}
        target_futures = {n: pool.submit(safe_count, document_counter, n, "target") for n in names}
        source_counts = {n: f.result() for n, f in source_futures.items()}
        target_counts = {n: f.result() for n, f in target_futures.items()}

    return source_counts, target_counts


class PhasePlanner:
    """
    Fixed-depth phase planner.

    Tables are leveled into at most five phases:
    1. Independent - no foreign keys
    2. Dependent - every dependency in phase 1 (or a self reference)
    3. Mixed - dependencies from both phase 1 and phase 2, nothing else
    4. Resolved - every dependency in phases 1-3
    5. Complex - everything left over
    """

    PHASES = [
        (1, "Independent Tables", "Tables with no foreign key dependencies - safe to migrate first",
         "No dependencies - can migrate first"),
        (2, "Dependent Tables", "Tables with dependencies on Phase 1 tables",
         "All dependencies met from Phase 1"),
        (3, "Mixed Dependencies", "Tables with dependencies from both Phase 1 and Phase 2",
         "Mixed dependencies from Phase 1 and Phase 2"),
        (4, "Resolved Dependencies", "Tables with dependencies resolved from previous phases",
         "All dependencies met from previous phases"),
        (5, "Complex Relationships", "Tables with complex dependency relationships",
         "Complex dependencies requiring careful ordering"),
    ]

    leveling = "fixed"

    def plan(
        self,
        graph: Mapping[str, DependencyNode],
        tables: Iterable[Table],
        source_counts: Optional[Mapping[str, int]] = None,
        target_counts: Optional[Mapping[str, int]] = None
    ) -> MigrationPlan:
        """
        Level tables into migration phases.

        Args:
            graph: Dependency graph from build_dependency_graph
            tables: Source tables, in the order entries should appear
            source_counts: Table -> current source record count
            target_counts: Table -> current target document count

        Returns:
            MigrationPlan with every table placed exactly once
        """
        tables = list(tables)
        source_counts = source_counts or {}
        target_counts = target_counts or {}

        buckets = self._level(graph, tables)

        placed = [name for bucket in buckets for name in bucket]
        missing = [t.name for t in tables if t.name not in placed]
        if missing or len(placed) != len(set(placed)):
            raise PlanningError(f"Tables not placed exactly once: missing={missing}")

        by_name = {t.name: t for t in tables}
        phases = []
        for (number, name, description, reason), bucket in zip(self.PHASES, buckets):
            if not bucket:
                continue
            entries = [
                self._entry(by_name[t], graph, reason, source_counts, target_counts)
                for t in bucket
            ]
            phases.append(MigrationPhase(phase=number, name=name, description=description, tables=entries))

        plan = MigrationPlan(phases=phases, leveling=self.leveling)
        logger.info(
            f"Planned {len(tables)} tables into {plan.total_phases} phases, "
            f"{plan.total_tables_to_migrate} need migration"
        )
        return plan

    def _level(self, graph: Mapping[str, DependencyNode], tables: List[Table]) -> List[List[str]]:
        placed: Set[str] = set()

        def deps(table: Table) -> Set[str]:
            return {d for d in graph[table.name].dependencies if d != table.name}

        def unplaced() -> List[Table]:
            return [t for t in tables if t.name not in placed]

        phase1 = [t.name for t in tables if not t.foreign_keys]
        placed.update(phase1)
        p1 = set(phase1)

        phase2 = [t.name for t in unplaced() if deps(t) <= p1]
        placed.update(phase2)
        p2 = set(phase2)

        phase3 = [
            t.name for t in unplaced()
            if deps(t) <= (p1 | p2) and deps(t) & p1 and deps(t) & p2
        ]
        placed.update(phase3)
        p3 = set(phase3)

        phase4 = [t.name for t in unplaced() if deps(t) <= (p1 | p2 | p3)]
        placed.update(phase4)

        phase5 = [t.name for t in unplaced()]
        if phase5:
            logger.warning(f"Tables with complex dependencies placed last: {', '.join(phase5)}")

        return [phase1, phase2, phase3, phase4, phase5]

    def _entry(
        self,
        table: Table,
        graph: Mapping[str, DependencyNode],
        reason: str,
        source_counts: Mapping[str, int],
        target_counts: Mapping[str, int]
    ) -> PhaseTable:
        source_count = source_counts.get(table.name, 0)
        target_count = target_counts.get(table.name, 0)
        pending = needs_migration(source_count, target_count)

        dependencies = []
        for fk in table.foreign_keys:
            if fk.referenced_table not in dependencies:
                dependencies.append(fk.referenced_table)

        return PhaseTable(
            name=table.name,
            source_record_count=source_count,
            dependencies=dependencies,
            strategy=determine_migration_strategy(table, source_count),
            reason=reason if pending else ALREADY_SYNCED,
            needs_migration=pending,
            current_target_count=target_count,
        )


class TopologicalPlanner(PhasePlanner):
    """
    Kahn's-algorithm planner with an unbounded number of phases.

    Each phase holds the tables whose dependencies were all placed in
    earlier phases. Tables caught in a cycle, or depending on a table that
    is not part of the schema, end up in a final complex phase.
    """

    leveling = "topological"

    def plan(
        self,
        graph: Mapping[str, DependencyNode],
        tables: Iterable[Table],
        source_counts: Optional[Mapping[str, int]] = None,
        target_counts: Optional[Mapping[str, int]] = None
    ) -> MigrationPlan:
        tables = list(tables)
        source_counts = source_counts or {}
        target_counts = target_counts or {}

        levels, leftover = self._kahn_levels(graph, tables)
        by_name = {t.name: t for t in tables}

        phases = []
        for number, level in enumerate(levels, 1):
            if number == 1:
                name, description, reason = self.PHASES[0][1:]
            else:
                name = f"Level {number}"
                description = f"Tables whose dependencies are met by phases 1-{number - 1}"
                reason = "All dependencies met from previous phases"
            entries = [self._entry(by_name[t], graph, reason, source_counts, target_counts) for t in level]
            phases.append(MigrationPhase(phase=number, name=name, description=description, tables=entries))

        if leftover:
            logger.warning(f"Tables with cyclic or unresolved dependencies: {', '.join(leftover)}")
            _, name, description, reason = self.PHASES[4]
            entries = [self._entry(by_name[t], graph, reason, source_counts, target_counts) for t in leftover]
            phases.append(MigrationPhase(
                phase=len(levels) + 1, name=name, description=description, tables=entries
            ))

        plan = MigrationPlan(phases=phases, leveling=self.leveling)
        logger.info(
            f"Planned {len(tables)} tables into {plan.total_phases} phases, "
            f"{plan.total_tables_to_migrate} need migration"
        )
        return plan

    def _kahn_levels(
        self,
        graph: Mapping[str, DependencyNode],
        tables: List[Table]
    ) -> Tuple[List[List[str]], List[str]]:
        order = [t.name for t in tables]
        remaining = {
            name: {d for d in graph[name].dependencies if d != name}
            for name in order
        }

        levels = []
        while True:
            ready = [name for name in order if name in remaining and not remaining[name]]
            if not ready:
                break
            levels.append(ready)
            for name in ready:
                del remaining[name]
            for pending in remaining.values():
                pending.difference_update(ready)

        leftover = [name for name in order if name in remaining]
        return levels, leftover


def create_planner(leveling: str = "fixed") -> PhasePlanner:
    """Get a planner for a leveling mode ('fixed' or 'topological')."""
    if leveling == "fixed":
        return PhasePlanner()
    if leveling == "topological":
        return TopologicalPlanner()
    raise ValueError(f"Unknown leveling mode: {leveling}")
