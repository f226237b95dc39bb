"""
Response DTO for GET /api/public/data.

``count`` is the total number of matching points, independent of the page
window; ``items`` are the projected point documents of the current page.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class PublicDataResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int
    limit: int
    count: int
    items: list[dict[str, Any]]
