from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_query_service
from exposure_kb.service.query import QueryService

router = APIRouter(tags=["research"])


@router.get("/industries")
def list_industries(service: QueryService = Depends(get_query_service)):
    return [i.to_dict() for i in service.get_industry_data()]


@router.get("/tasks")
def list_task_automation(service: QueryService = Depends(get_query_service)):
    return [t.to_dict() for t in service.get_task_automation_data()]


@router.get("/tables/{table_id}")
def get_table(table_id: str, service: QueryService = Depends(get_query_service)):
    return service.get_table_data(table_id).to_dict()


@router.get("/visualizations/{chart_type}")
def get_visualization(chart_type: str, service: QueryService = Depends(get_query_service)):
    return service.get_visualization_config(chart_type).to_dict()


@router.get("/cache/stats")
def cache_stats(service: QueryService = Depends(get_query_service)):
    return service.get_cache_stats().to_dict()


@router.delete("/cache")
def clear_cache(service: QueryService = Depends(get_query_service)):
    service.clear_cache()
    return {"status": "cleared"}
