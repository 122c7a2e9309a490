"""Cross-store join endpoint."""

from fastapi import APIRouter

from ..models import JoinRequest, JoinResponse, JoinedRowResponse
from ...services.join import CrossStoreJoinEngine

router = APIRouter()


@router.post("", response_model=JoinResponse)
async def join_rows(request: JoinRequest):
    """Join two already fetched result sets on a shared key."""
    joined = CrossStoreJoinEngine().join(
        request.rows_a, request.rows_b, request.join_key, request.strategy.value
    )
    return JoinResponse(
        rows=[JoinedRowResponse(**row.to_dict()) for row in joined],
        total=len(joined),
        matched=sum(1 for row in joined if row.is_matched),
    )
