"""
docbridge

Schema migration planning and federation for moving a relational database
into a document store.

Supports:
- Compatibility analysis and type mapping of relational schemas
- Collection design with embed-vs-reference decisions
- Dependency-ordered migration phases with idempotent re-planning
- Batched table migration with per-table error reporting
- Cross-store joins during the transition period
"""

__version__ = "0.1.0"
