"""Core module exports"""

from .bbox import BoundingBox
from .data_structures import (
    Ray,
    Line,
    Segment,
    Triangle,
    PointAndPrimitiveId,
    ObjectAndPrimitiveId,
    ClosestPointResult,
    SegmentIntersectResult,
    VisibilityResult,
)
from .exceptions import (
    AABBTreeError,
    EmptyTreeError,
    UnknownPrimitiveError,
    AcceleratorError,
    DegenerateQueryError,
)
from .primitives import (
    Primitive,
    TrianglePrimitive,
    SegmentPrimitive,
    ObjectPrimitive,
    triangle_primitives,
    segment_primitives,
    mesh_edges,
)
from .aabb_tree import AABBTree, build

__all__ = [
    "BoundingBox",
    "Ray",
    "Line",
    "Segment",
    "Triangle",
    "PointAndPrimitiveId",
    "ObjectAndPrimitiveId",
    "ClosestPointResult",
    "SegmentIntersectResult",
    "VisibilityResult",
    "AABBTreeError",
    "EmptyTreeError",
    "UnknownPrimitiveError",
    "AcceleratorError",
    "DegenerateQueryError",
    "Primitive",
    "TrianglePrimitive",
    "SegmentPrimitive",
    "ObjectPrimitive",
    "triangle_primitives",
    "segment_primitives",
    "mesh_edges",
    "AABBTree",
    "build",
]
