"""
Primitive adapters

A primitive pairs a lightweight external identifier (a face index, an edge
index, any hashable handle) with on-demand construction of the geometric
object it stands for. The tree stores primitives, never the objects: the
object is rebuilt from the mesh arrays every time a query needs it, so the
mesh must not change while a tree built on it is alive.
"""

import abc
from typing import Hashable, List, Optional
import torch

from .. import config
from .bbox import BoundingBox
from .data_structures import Segment, Triangle
from .device_utils import ensure_same_device


class Primitive(abc.ABC):
    """Capability interface used by the builder and the traversal."""
    __slots__ = ()

    @property
    @abc.abstractmethod
    def id(self) -> Hashable:
        """Opaque identifier, never interpreted by the tree."""

    @abc.abstractmethod
    def object(self):
        """Build the geometric object (Triangle, Segment or [3] point)."""

    def bbox(self) -> BoundingBox:
        obj = self.object()
        if isinstance(obj, torch.Tensor):
            return BoundingBox(obj, obj)
        return obj.bbox()

    def reference_point(self) -> torch.Tensor:
        """A point lying on the object, indexed by the distance accelerator."""
        obj = self.object()
        if isinstance(obj, torch.Tensor):
            return obj
        return obj.vertex(0)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r})"


class TrianglePrimitive(Primitive):
    """
    Mesh facet → Triangle.

    Args:
        vertices: [V, 3] vertex coordinates
        faces: [F, 3] vertex indices per face
        face_index: which face this primitive stands for (also its id)
    """
    __slots__ = ('vertices', 'faces', 'face_index')

    def __init__(self, vertices: torch.Tensor, faces: torch.Tensor, face_index: int):
        self.vertices = vertices
        self.faces = faces
        self.face_index = int(face_index)

    @property
    def id(self) -> int:
        return self.face_index

    def object(self) -> Triangle:
        i, j, k = self.faces[self.face_index].tolist()
        return Triangle(self.vertices[i], self.vertices[j], self.vertices[k])


class SegmentPrimitive(Primitive):
    """
    Mesh edge → Segment.

    Args:
        vertices: [V, 3] vertex coordinates
        edges: [E, 2] vertex indices per edge
        edge_index: which edge this primitive stands for (also its id)
    """
    __slots__ = ('vertices', 'edges', 'edge_index')

    def __init__(self, vertices: torch.Tensor, edges: torch.Tensor, edge_index: int):
        self.vertices = vertices
        self.edges = edges
        self.edge_index = int(edge_index)

    @property
    def id(self) -> int:
        return self.edge_index

    def object(self) -> Segment:
        i, j = self.edges[self.edge_index].tolist()
        return Segment(self.vertices[i], self.vertices[j])


class ObjectPrimitive(Primitive):
    """
    Already-built shape with a caller-chosen id.

    Args:
        shape: Triangle, Segment or [3] point tensor
        primitive_id: any hashable identifier
    """
    __slots__ = ('shape', '_id')

    def __init__(self, shape, primitive_id: Hashable):
        self.shape = shape
        self._id = primitive_id

    @property
    def id(self) -> Hashable:
        return self._id

    def object(self):
        return self.shape


# ==================== Factories ====================

def _prepare_mesh(vertices: torch.Tensor, indices: torch.Tensor, width: int, dtype):
    vertices = torch.as_tensor(vertices)
    indices = torch.as_tensor(indices)
    if vertices.ndim != 2 or vertices.shape[1] != 3:
        raise ValueError(f"vertices must be shape (V, 3), got {tuple(vertices.shape)}")
    if indices.ndim != 2 or indices.shape[1] != width:
        raise ValueError(f"indices must be shape (N, {width}), got {tuple(indices.shape)}")
    if indices.numel() > 0 and (int(indices.min()) < 0 or int(indices.max()) >= vertices.shape[0]):
        raise ValueError("indices refer to vertices out of range")
    vertices, indices = ensure_same_device(vertices, indices)
    return vertices.to(dtype or config.DTYPE), indices.long()


def triangle_primitives(
    vertices: torch.Tensor,
    faces: torch.Tensor,
    dtype: Optional[torch.dtype] = None
) -> List[TrianglePrimitive]:
    """
    One TrianglePrimitive per face.

    Args:
        vertices: [V, 3] float
        faces: [F, 3] int
        dtype: geometry dtype (None = config.DTYPE)
    """
    vertices, faces = _prepare_mesh(vertices, faces, 3, dtype)
    return [TrianglePrimitive(vertices, faces, i) for i in range(faces.shape[0])]


def segment_primitives(
    vertices: torch.Tensor,
    edges: torch.Tensor,
    dtype: Optional[torch.dtype] = None
) -> List[SegmentPrimitive]:
    """
    One SegmentPrimitive per edge.

    Args:
        vertices: [V, 3] float
        edges: [E, 2] int (see mesh_edges to derive them from faces)
        dtype: geometry dtype (None = config.DTYPE)
    """
    vertices, edges = _prepare_mesh(vertices, edges, 2, dtype)
    return [SegmentPrimitive(vertices, edges, i) for i in range(edges.shape[0])]


def mesh_edges(faces: torch.Tensor) -> torch.Tensor:
    """
    Unique undirected edges of a triangle mesh.

    Args:
        faces: [F, 3] int

    Returns:
        edges: [E, 2] int64, each row sorted (low, high), rows in lexicographic order
    """
    faces = torch.as_tensor(faces).long()
    if faces.numel() == 0:
        return torch.empty(0, 2, dtype=torch.long, device=faces.device)
    edges = faces[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2)
    edges = torch.sort(edges, dim=1).values
    return torch.unique(edges, dim=0)
