"""Schema analysis and collection design endpoints."""

from typing import Any, Dict
from fastapi import APIRouter, HTTPException

from ..models import SchemaRequest, CollectionListResponse
from ...services.analyzer import SchemaAnalyzer
from ...services.synthesizer import DocumentSchemaSynthesizer

router = APIRouter()


@router.post("/analyze")
async def analyze_schema(request: SchemaRequest) -> Dict[str, Any]:
    """Analyze a relational schema for document-store compatibility."""
    if not request.tables:
        raise HTTPException(status_code=400, detail="No tables provided")
    report = SchemaAnalyzer().analyze(request.to_schema())
    return report.to_dict()


@router.post("/synthesize", response_model=CollectionListResponse)
async def synthesize_collections(request: SchemaRequest):
    """Design one document collection per relational table."""
    if not request.tables:
        raise HTTPException(status_code=400, detail="No tables provided")
    collections = DocumentSchemaSynthesizer().synthesize(request.to_schema())
    return CollectionListResponse(
        collections=[c.to_dict() for c in collections],
        total=len(collections),
    )
