"""Visit recording and statistics routes."""

import json
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from ..request_info import direct_address, request_headers
from ..schemas.visit import ErrorResponse, ResetResponse, VisitResponse
from ..services.validation import validate_visit_payload
from ..services.visits import VisitService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["visits"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def get_visit_service(request: Request) -> VisitService:
    return request.app.state.visit_service


def _validation_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"success": False, "error": "validation_error", "detail": detail},
    )


@router.post("/visits", response_model=VisitResponse, responses=ERROR_RESPONSES)
async def create_visit(request: Request, service: VisitService = Depends(get_visit_service)):
    """Record a visit.

    Body: ``{"country": "us"}``. Without a country the visitor's country is
    detected from the request address.
    """
    body = await request.body()
    payload = None
    if body.strip():
        try:
            payload = json.loads(body)
        except (ValueError, RecursionError):
            raise _validation_error("Invalid JSON body")

    try:
        country = validate_visit_payload(payload)
    except ValueError as e:
        raise _validation_error(str(e))

    record = await service.record_visit(country, request_headers(request), direct_address(request))
    return VisitResponse(country=record.country, count=record.count)


@router.get("/stats", response_model=Dict[str, int], responses=ERROR_RESPONSES)
async def get_stats(service: VisitService = Depends(get_visit_service)):
    """Visit counts for all countries."""
    return await service.get_all_stats()


@router.get("/stats/{country}", response_model=VisitResponse, responses=ERROR_RESPONSES)
async def get_country_stats(country: str, service: VisitService = Depends(get_visit_service)):
    """Visit count for one country (0 if none recorded)."""
    record = await service.get_country_stats(country)
    return VisitResponse(country=record.country, count=record.count)


@router.delete("/stats", response_model=ResetResponse, responses={403: {"model": ErrorResponse}, **ERROR_RESPONSES})
async def reset_stats(request: Request, service: VisitService = Depends(get_visit_service)):
    """Clear all visit counters."""
    if not request.app.state.settings.allow_reset:
        raise HTTPException(
            status_code=403,
            detail={"success": False, "error": "forbidden", "detail": "Resetting statistics is disabled"},
        )
    await service.reset_stats()
    logger.info("Visit statistics reset via API")
    return ResetResponse(success=True, message="Visit statistics reset")
