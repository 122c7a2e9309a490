"""Pydantic models for API requests and responses."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from enum import Enum

from ..models.schema import Table, SchemaModel


class LevelingEnum(str, Enum):
    FIXED = "fixed"
    TOPOLOGICAL = "topological"


class JoinStrategyEnum(str, Enum):
    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"


# Request Models
class ColumnModel(BaseModel):
    name: str
    type: str
    nullable: bool = True
    default: Optional[Any] = None
    is_primary: Optional[bool] = None
    is_foreign: Optional[bool] = None


class ForeignKeyModel(BaseModel):
    column: str
    referenced_table: str
    referenced_column: str = "id"
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


class IndexModel(BaseModel):
    name: str
    columns: List[str] = Field(default_factory=list)
    unique: bool = False


class TableModel(BaseModel):
    name: str
    columns: List[ColumnModel] = Field(default_factory=list)
    primary_key: Optional[str] = None
    foreign_keys: List[ForeignKeyModel] = Field(default_factory=list)
    indexes: List[IndexModel] = Field(default_factory=list)

    def to_table(self) -> Table:
        """Convert to the domain table; unset column flags are derived from the keys."""
        return Table.from_dict(self.model_dump(exclude_none=True))


class SchemaRequest(BaseModel):
    tables: List[TableModel]

    def to_schema(self) -> SchemaModel:
        return SchemaModel(tables=[t.to_table() for t in self.tables], source="api")


class PlanRequest(SchemaRequest):
    source_counts: Dict[str, int] = Field(default_factory=dict)
    target_counts: Dict[str, int] = Field(default_factory=dict)
    leveling: LevelingEnum = LevelingEnum.FIXED


class JoinRequest(BaseModel):
    rows_a: List[Dict[str, Any]]
    rows_b: List[Dict[str, Any]]
    join_key: str
    strategy: JoinStrategyEnum = JoinStrategyEnum.INNER


# Response Models
class CollectionListResponse(BaseModel):
    collections: List[Dict[str, Any]]
    total: int


class PlanResponse(BaseModel):
    plan: Dict[str, Any]
    graph: Dict[str, Dict[str, Any]]


class JoinedRowResponse(BaseModel):
    source_a: Optional[Dict[str, Any]] = None
    source_b: Optional[Dict[str, Any]] = None
    join_key: Any = None


class JoinResponse(BaseModel):
    rows: List[JoinedRowResponse]
    total: int
    matched: int
