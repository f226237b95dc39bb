"""
Admin data API, for signed-in admin users only.

POST   /api/admin/points                     - new measurement point
POST   /api/admin/measurements/batch         - one month of readings
PATCH  /api/admin/points/{point_id}/active   - switch a point on or off
GET    /api/admin/users                      - list admin users
POST   /api/admin/users                      - add an admin user
DELETE /api/admin/users/{user_id}            - remove an admin user

Every route requires a session whose user_id names an existing admin user;
otherwise 401 session_required.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_admin_service, require_admin_user
from schemas.dto.requests.admin import (
    CreatePointRequest,
    CreateUserRequest,
    MeasurementBatchRequest,
    PointActiveRequest,
)
from schemas.dto.responses.admin import (
    AdminUserResponse,
    MeasurementBatchResponse,
    PointActiveResponse,
    SavedPeriod,
    SuccessResponse,
)
from schemas.dto.responses.common import ERROR_RESPONSES
from schemas.models.measurement import MeasurementPointDoc
from services.admin_service import AdminService
from shared.datetime_utils import to_iso

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_user)],
    responses=ERROR_RESPONSES,
)


@router.post(
    "/points",
    status_code=201,
    response_model=MeasurementPointDoc,
    response_model_exclude_none=True,
)
async def create_point(
    body: CreatePointRequest,
    service: AdminService = Depends(get_admin_service),
) -> MeasurementPointDoc:
    return await service.create_point(body)


@router.post("/measurements/batch", response_model=MeasurementBatchResponse)
async def save_measurement_batch(
    body: MeasurementBatchRequest,
    service: AdminService = Depends(get_admin_service),
) -> MeasurementBatchResponse:
    modified = await service.save_batch(body)
    return MeasurementBatchResponse(
        modified_count=modified,
        saved_period=SavedPeriod(year=body.year, month=body.month),
        measurement_date_utc=to_iso(body.measured_on),
    )


@router.patch("/points/{point_id}/active", response_model=PointActiveResponse)
async def set_point_active(
    point_id: str,
    body: PointActiveRequest,
    service: AdminService = Depends(get_admin_service),
) -> PointActiveResponse:
    active = await service.set_point_active(point_id, body.active)
    return PointActiveResponse(active=active)


@router.get("/users", response_model=list[AdminUserResponse])
async def list_users(
    service: AdminService = Depends(get_admin_service),
) -> list[AdminUserResponse]:
    return [AdminUserResponse.from_doc(u) for u in await service.list_users()]


@router.post("/users", status_code=201, response_model=AdminUserResponse)
async def create_user(
    body: CreateUserRequest,
    service: AdminService = Depends(get_admin_service),
) -> AdminUserResponse:
    return AdminUserResponse.from_doc(await service.create_user(body.email))


@router.delete("/users/{user_id}", response_model=SuccessResponse)
async def delete_user(
    user_id: str,
    service: AdminService = Depends(get_admin_service),
) -> SuccessResponse:
    await service.delete_user(user_id)
    return SuccessResponse()
