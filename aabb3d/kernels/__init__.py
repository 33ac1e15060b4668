"""
aabb3d geometric kernel

Pure torch predicates and constructions consumed by the tree:
- linear query / box slab test (pruning filter)
- exact-with-tolerance linear query / primitive intersection
- closest point on primitives and point / box lower bounds
"""

from .intersection import (
    parametric_form,
    linear_query_hits_boxes,
    intersection,
    do_intersect,
)
from .distance import (
    closest_point,
    squared_distance,
    closest_point_and_squared_distance,
    point_box_squared_distance,
)

__all__ = [
    "parametric_form",
    "linear_query_hits_boxes",
    "intersection",
    "do_intersect",
    "closest_point",
    "squared_distance",
    "closest_point_and_squared_distance",
    "point_box_squared_distance",
]
