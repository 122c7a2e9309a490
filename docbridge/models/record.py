"""Record models for cross-store query results."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


Row = Dict[str, Any]


class JoinStrategy(str, Enum):
    """Supported cross-store join strategies."""
    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"


@dataclass(frozen=True)
class JoinSpec:
    """Join key and strategy for a cross-store join."""
    join_key: str
    strategy: JoinStrategy = JoinStrategy.INNER

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JoinSpec":
        return cls(
            join_key=data.get("join_key", ""),
            strategy=JoinStrategy(data.get("strategy", "inner")),
        )


@dataclass
class JoinedRow:
    """A row from source A paired with a row from source B on a shared key."""
    source_a: Optional[Row]
    source_b: Optional[Row]
    join_key: Any = None

    def __post_init__(self):
        if self.source_a is None and self.source_b is None:
            raise ValueError("A joined row needs at least one side")

    @property
    def is_matched(self) -> bool:
        return self.source_a is not None and self.source_b is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source_a": self.source_a,
            "source_b": self.source_b,
            "join_key": self.join_key,
        }


@dataclass
class FederatedQueryResult:
    """Rows fetched from both stores plus their combination."""
    relational_rows: List[Row] = field(default_factory=list)
    documents: List[Row] = field(default_factory=list)
    joined: List[JoinedRow] = field(default_factory=list)
    join_key: Optional[str] = None
    join_strategy: Optional[JoinStrategy] = None
    execution_time: float = 0.0  # Seconds
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            "success": self.success,
            "relational": {"count": len(self.relational_rows), "rows": self.relational_rows},
            "document": {"count": len(self.documents), "rows": self.documents},
            "join_key": self.join_key,
            "join_strategy": self.join_strategy.value if self.join_strategy else None,
            "execution_time": self.execution_time,
            "errors": self.errors,
        }
        if self.join_key:
            result["joined"] = [r.to_dict() for r in self.joined]
        return result
