"""
Query builders: turn request parameters into MongoDB aggregation pipelines,
separate from the HTTP layer.
"""

from .public_data import (
    PublicDataPipelineBuilder,
    PublicDataPlan,
    build_public_data_plan,
)

__all__ = [
    "PublicDataPipelineBuilder",
    "PublicDataPlan",
    "build_public_data_plan",
]
