"""
aabb3d: AABB trees for 3D meshes

Static bounding volume hierarchy over triangles, segments and points,
answering ray / line / segment intersection queries and closest point
queries, with torch tensors as the geometry representation.
"""

import logging

__version__ = "0.1.0"
__author__ = "aabb3d Contributors"

from .core.aabb_tree import AABBTree, build
from .core.bbox import BoundingBox
from .core.data_structures import (
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
from .core.exceptions import (
    AABBTreeError,
    EmptyTreeError,
    UnknownPrimitiveError,
    AcceleratorError,
    DegenerateQueryError,
)
from .core.primitives import (
    Primitive,
    TrianglePrimitive,
    SegmentPrimitive,
    ObjectPrimitive,
    triangle_primitives,
    segment_primitives,
    mesh_edges,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Core
    "AABBTree",
    "build",
    "BoundingBox",
    # Shapes
    "Ray",
    "Line",
    "Segment",
    "Triangle",
    # Data structures
    "PointAndPrimitiveId",
    "ObjectAndPrimitiveId",
    "ClosestPointResult",
    "SegmentIntersectResult",
    "VisibilityResult",
    # Errors
    "AABBTreeError",
    "EmptyTreeError",
    "UnknownPrimitiveError",
    "AcceleratorError",
    "DegenerateQueryError",
    # Primitives
    "Primitive",
    "TrianglePrimitive",
    "SegmentPrimitive",
    "ObjectPrimitive",
    "triangle_primitives",
    "segment_primitives",
    "mesh_edges",
]
