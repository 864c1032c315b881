from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_query_service
from exposure_kb.service.errors import DataNotFoundError
from exposure_kb.service.query import QueryService, SearchFilters

router = APIRouter(prefix="/occupations", tags=["occupations"])


@router.get("/search")
def search_occupations(
    q: str = "",
    min_risk: Optional[float] = Query(None, ge=0, le=1),
    max_risk: Optional[float] = Query(None, ge=0, le=1),
    limit: Optional[int] = Query(None, ge=1),
    service: QueryService = Depends(get_query_service),
):
    filters = SearchFilters(min_risk_score=min_risk, max_risk_score=max_risk, limit=limit)
    return [r.to_dict() for r in service.search_occupations(q, filters)]


@router.get("/top")
def top_occupations(limit: int = Query(10, ge=1), service: QueryService = Depends(get_query_service)):
    return [o.to_dict() for o in service.get_top_risk_occupations(limit)]


@router.get("/{identifier}/risk")
def occupation_risk(identifier: str, fallback: bool = False, service: QueryService = Depends(get_query_service)):
    if not fallback:
        return service.get_occupation_risk(identifier).to_dict()
    risk = service.get_occupation_risk_with_fallback(identifier)
    if risk is None:
        raise DataNotFoundError("Occupation", identifier)
    return risk.to_dict()


@router.get("/{identifier}/compare")
def compare_with_benchmark(
    identifier: str,
    user_risk: float = Query(..., ge=0, le=1),
    service: QueryService = Depends(get_query_service),
):
    return service.compare_with_benchmark(user_risk, identifier).to_dict()
