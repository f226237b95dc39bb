"""
Full-dataset downloads.

GET /download/json  - all points as pretty-printed JSON
GET /download/csv   - one row per measurement, dotted column names
GET /download/xlsx  - same rows as the CSV in a single "Export" sheet

Downloads are public and are not behind the access gate.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from dependencies import get_measurement_repository
from errors import ValidationError
from repositories.measurement_repository import MeasurementRepository
from services.export_service import EXPORT_FORMATS, build_export
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/download", tags=["download"])


@router.get("/{fmt}")
async def download_dataset(
    fmt: str,
    repo: MeasurementRepository = Depends(get_measurement_repository),
) -> Response:
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(
            f"Unsupported format. Use one of: {', '.join(EXPORT_FORMATS)}.",
            field="format",
        )

    points = await repo.fetch_all()
    export = build_export(fmt, points)
    log.info("dataset_downloaded", format=fmt, points=len(points))
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
