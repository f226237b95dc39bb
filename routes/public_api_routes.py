"""
GET /api/public/data: paginated measurement points behind the access gate.

Query parameters are parsed permissively (see PublicDataQuery); a malformed
value falls back to its default instead of failing the request.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from builders.public_data import build_public_data_plan
from dependencies import get_measurement_repository, require_api_client
from repositories.measurement_repository import MeasurementRepository
from schemas.dto.responses.common import ERROR_RESPONSES
from schemas.dto.responses.public_data import PublicDataResponse
from services.access_gate import ApiClient
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/api/public", tags=["public-data"], responses=ERROR_RESPONSES)


@router.get("/data", response_model=PublicDataResponse)
async def get_public_data(
    request: Request,
    client: ApiClient = Depends(require_api_client),
    repo: MeasurementRepository = Depends(get_measurement_repository),
) -> PublicDataResponse:
    params = {
        name: request.query_params.getlist(name)
        for name in request.query_params.keys()
    }
    plan = build_public_data_plan(params)
    items, total = await repo.fetch_page(plan)
    log.debug(
        "public_data_served",
        client_kind=client.kind,
        page=plan.page,
        limit=plan.limit,
        returned=len(items),
        total=total,
    )
    return PublicDataResponse(page=plan.page, limit=plan.limit, count=total, items=items)
