"""Migration planning endpoint."""

import logging
from fastapi import APIRouter, HTTPException

from ..models import PlanRequest, PlanResponse
from ...services.planner import PlanningError, build_dependency_graph, create_planner

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=PlanResponse)
async def create_plan(request: PlanRequest):
    """Order tables into migration phases from supplied record counts."""
    schema = request.to_schema()
    graph = build_dependency_graph(schema)

    try:
        plan = create_planner(request.leveling.value).plan(
            graph, schema, request.source_counts, request.target_counts
        )
    except PlanningError as e:
        logger.error(f"Planning failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return PlanResponse(
        plan=plan.to_dict(),
        graph={name: node.to_dict() for name, node in graph.items()},
    )
