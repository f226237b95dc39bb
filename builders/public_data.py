from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from schemas.dto.requests.public_data import PublicDataQuery

POINT_FIELDS = (
    "point_number",
    "location",
    "coordinates",
    "description",
    "start_date",
    "active",
)


@dataclass(frozen=True)
class PublicDataPlan:
    """Read plan for one page of measurement points plus its count-only twin."""

    pipeline: List[Dict[str, Any]]
    count_pipeline: List[Dict[str, Any]]
    page: int
    limit: int
    query: Optional[PublicDataQuery] = field(default=None, compare=False)


class PublicDataPipelineBuilder:
    """Builder for the public measurement-data aggregation pipeline.

    Stage order is fixed: $match, $sort, measurement trim, $project, then the
    $skip/$limit pagination tail. The count pipeline reuses every stage except
    the pagination tail.
    """

    def __init__(self, query: PublicDataQuery):
        self.query = query
        self.match: Dict[str, Any] = {}
        self.shape_stages: List[Dict[str, Any]] = []
        self.projection: Dict[str, int] = {}

    def with_active_filter(self) -> "PublicDataPipelineBuilder":
        if self.query.active is not None:
            self.match["active"] = self.query.active
        return self

    def with_point_filter(self) -> "PublicDataPipelineBuilder":
        q = self.query
        if q.point is not None:
            self.match["point_number"] = q.point
        elif q.point_min is not None or q.point_max is not None:
            bounds: Dict[str, int] = {}
            if q.point_min is not None:
                bounds["$gte"] = q.point_min
            if q.point_max is not None:
                bounds["$lte"] = q.point_max
            self.match["point_number"] = bounds
        return self

    def with_start_date_filter(self) -> "PublicDataPipelineBuilder":
        q = self.query
        if q.start_from or q.start_to:
            bounds: Dict[str, datetime] = {}
            if q.start_from:
                bounds["$gte"] = q.start_from
            if q.start_to:
                bounds["$lt"] = q.start_to_exclusive
            self.match["start_date"] = bounds
        return self

    def with_measurements(self) -> "PublicDataPipelineBuilder":
        """Window-filter and trim the embedded measurements when requested."""
        q = self.query
        if not q.include_measurements:
            return self

        if q.has_measurement_window:
            conditions: List[Dict[str, Any]] = []
            if q.m_from:
                conditions.append({"$gte": ["$$m.date", q.m_from]})
            if q.m_to:
                conditions.append({"$lt": ["$$m.date", q.m_to_exclusive]})
            self.shape_stages.append(
                {
                    "$addFields": {
                        "measurements": {
                            "$filter": {
                                "input": "$measurements",
                                "as": "m",
                                "cond": conditions[0]
                                if len(conditions) == 1
                                else {"$and": conditions},
                            }
                        }
                    }
                }
            )

        if q.trims_measurements:
            # Newest N by date, then back to chronological order
            self.shape_stages.append(
                {
                    "$addFields": {
                        "measurements": {
                            "$slice": [
                                {
                                    "$sortArray": {
                                        "input": "$measurements",
                                        "sortBy": {"date": -1},
                                    }
                                },
                                q.measurement_take,
                            ]
                        }
                    }
                }
            )
            self.shape_stages.append(
                {"$addFields": {"measurements": {"$reverseArray": "$measurements"}}}
            )
        return self

    def with_projection(self) -> "PublicDataPipelineBuilder":
        self.projection = {"_id": 0}
        for name in POINT_FIELDS:
            self.projection[name] = 1
        if self.query.include_measurements:
            self.projection["measurements"] = 1
        return self

    def build(self) -> PublicDataPlan:
        base: List[Dict[str, Any]] = [
            {"$match": dict(self.match)},
            {"$sort": {"point_number": 1}},
            *self.shape_stages,
            {"$project": dict(self.projection or {"_id": 0})},
        ]
        pipeline = base + [{"$skip": self.query.skip}, {"$limit": self.query.limit}]
        count_pipeline = base + [{"$count": "count"}]
        return PublicDataPlan(
            pipeline=pipeline,
            count_pipeline=count_pipeline,
            page=self.query.page,
            limit=self.query.limit,
            query=self.query,
        )


def build_public_data_plan(params: Mapping[str, Any]) -> PublicDataPlan:
    """Turn raw query parameters into a read plan. Never raises."""
    query = PublicDataQuery.from_params(params)
    return (
        PublicDataPipelineBuilder(query)
        .with_active_filter()
        .with_point_filter()
        .with_start_date_filter()
        .with_measurements()
        .with_projection()
        .build()
    )
