"""Apps module exports"""

from .udf_query import UDFQuery
from .mesh_intersector import MeshIntersector
from .visibility_query import VisibilityQuery
from .benchmark import (
    ConsistencyReport,
    distance_query_speed,
    intersection_query_speed,
    check_query_consistency,
)

__all__ = [
    "UDFQuery",
    "MeshIntersector",
    "VisibilityQuery",
    "ConsistencyReport",
    "distance_query_speed",
    "intersection_query_speed",
    "check_query_consistency",
]
