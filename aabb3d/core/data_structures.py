"""
Data structures for aabb3d

Geometric shapes handled by the kernel, the (object, id) pairs returned by
tree queries, and the batched result containers used by the apps.
"""

from dataclasses import dataclass
from typing import Any, Hashable, NamedTuple, Optional, Union
import torch

from .bbox import BoundingBox


# ==================== Shapes ====================

@dataclass(frozen=True)
class Ray:
    """Half-line origin + t * direction, t >= 0"""
    origin: torch.Tensor        # [3]
    direction: torch.Tensor     # [3] need not be normalized


@dataclass(frozen=True)
class Line:
    """Unbounded line point_on_line + t * direction"""
    point_on_line: torch.Tensor  # [3]
    direction: torch.Tensor      # [3]


@dataclass(frozen=True)
class Segment:
    """Closed segment between source and target"""
    source: torch.Tensor        # [3]
    target: torch.Tensor        # [3]

    def vertex(self, i: int) -> torch.Tensor:
        return (self.source, self.target)[i % 2]

    def to_vector(self) -> torch.Tensor:
        return self.target - self.source

    def squared_length(self) -> float:
        return float((self.to_vector() ** 2).sum())

    def bbox(self) -> BoundingBox:
        return BoundingBox(torch.minimum(self.source, self.target),
                           torch.maximum(self.source, self.target))


@dataclass(frozen=True)
class Triangle:
    """Triangle a, b, c (orientation given by the vertex order)"""
    a: torch.Tensor             # [3]
    b: torch.Tensor             # [3]
    c: torch.Tensor             # [3]

    def vertex(self, i: int) -> torch.Tensor:
        return (self.a, self.b, self.c)[i % 3]

    def vertices(self) -> torch.Tensor:
        """[3, 3] stacked vertices"""
        return torch.stack([self.a, self.b, self.c])

    def bbox(self) -> BoundingBox:
        return BoundingBox.from_points(self.vertices())


LinearQuery = Union[Ray, Line, Segment]
Shape = Union[Triangle, Segment, torch.Tensor]
PrimitiveId = Hashable


# ==================== Query results ====================

class PointAndPrimitiveId(NamedTuple):
    """A point together with the primitive it lies on"""
    point: torch.Tensor         # [3]
    id: PrimitiveId


class ObjectAndPrimitiveId(NamedTuple):
    """An intersection object (point [3] or Segment) and the primitive it came from"""
    object: Any
    id: PrimitiveId


@dataclass
class ClosestPointResult:
    """Batched closest point query result (UDF)"""
    distances: torch.Tensor       # [N] unsigned distance
    closest_points: torch.Tensor  # [N, 3]
    primitive_ids: list           # [N] ids of the closest primitives


@dataclass
class SegmentIntersectResult:
    """Batched segment-tree intersection result"""
    hit: torch.Tensor             # [N] bool whether each segment hits the tree
    segment_ids: torch.Tensor     # [total] int64 index of the hitting segment
    primitive_ids: list           # [total] ids of the hit primitives
    objects: list                 # [total] intersection objects (point [3] or Segment)

    def hit_points(self) -> torch.Tensor:
        """[total, 3] one point per intersection (source of overlapping segments)"""
        if not self.objects:
            return torch.empty(0, 3)
        return torch.stack([
            obj.source if isinstance(obj, Segment) else obj for obj in self.objects
        ])


@dataclass
class VisibilityResult:
    """Visibility query result"""
    visibility: torch.Tensor        # [N] float visibility ratio [0, 1]
    visible_mask: Optional[torch.Tensor] = None  # [N, M] bool visibility of each point from each direction
