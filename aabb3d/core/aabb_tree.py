"""
AABBTree: static bounding volume hierarchy over geometric primitives

Answers three families of queries:
- intersection tests and enumeration against rays, lines and segments
- closest point / squared distance / closest primitive to a point
- optional k-d tree accelerator that seeds distance queries with a hint

The tree is built once and is read-only afterwards, so one instance can be
queried from several threads as long as the mesh arrays behind its
primitives are not modified.
"""

import logging
import math
from typing import Hashable, Iterable, Iterator, List, Optional, Sequence, Tuple, Union
import torch

from .. import config
from .. import kernels
from . import builder
from .bbox import BoundingBox
from .data_structures import LinearQuery, ObjectAndPrimitiveId, PointAndPrimitiveId
from .device_utils import as_point, resolve_device
from .exceptions import (
    AcceleratorError,
    EmptyTreeError,
    UnknownPrimitiveError,
)
from .primitives import Primitive
from .search_tree import DistanceAccelerator

logger = logging.getLogger(__name__)

Hint = Union[PointAndPrimitiveId, torch.Tensor, Hashable]


class _Best:
    """Running best of a distance traversal."""
    __slots__ = ('squared_distance', 'point', 'index')

    def __init__(self, squared_distance=math.inf, point=None, index=None):
        self.squared_distance = squared_distance
        self.point = point
        self.index = index

    def improved_by(self, value: float) -> bool:
        # Without a primitive yet, equal values must still be explored
        if self.index is None:
            return value <= self.squared_distance
        return value < self.squared_distance


class AABBTree:
    """
    Axis-aligned bounding box tree.

    Args:
        primitives: sequence of Primitive (may be empty)
        epsilon: relative tolerance of the kernel predicates
            (None = config.GEOMETRIC_EPSILON)
        dtype: dtype of node boxes and query points (None = config.DTYPE)
        device: device of node boxes (None = config.DEVICE)

    Raises:
        TypeError: if a primitive id is not hashable

    Example:
        tree = AABBTree(triangle_primitives(vertices, faces))
        tree.do_intersect(Ray(origin, direction))
        tree.closest_point_and_primitive(point)
    """

    def __init__(
        self,
        primitives: Iterable[Primitive] = (),
        epsilon: Optional[float] = None,
        dtype: Optional[torch.dtype] = None,
        device: Optional[Union[str, torch.device]] = None
    ):
        self.epsilon = config.GEOMETRIC_EPSILON if epsilon is None else epsilon
        self.dtype = dtype or config.DTYPE
        self.device = resolve_device(device=device)
        self._clear()
        self._build(list(primitives))

    def _clear(self):
        self._primitives: List[Primitive] = []
        self._id_index = {}
        self._nodes = builder.NodeStore.empty(self.dtype, self.device)
        self._accelerator: Optional[DistanceAccelerator] = None

    def _build(self, primitives: List[Primitive]):
        try:
            id_index = {}
            for i, primitive in enumerate(primitives):
                id_index[primitive.id] = i
            nodes = builder.build(primitives, dtype=self.dtype, device=self.device)
        except Exception:
            self._clear()
            raise
        self._primitives = primitives
        self._id_index = id_index
        self._nodes = nodes

    # ==================== Properties ====================

    def __len__(self) -> int:
        return len(self._primitives)

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(primitives={len(self)}, "
                f"depth={self.depth()}, accelerated={self._accelerator is not None})")

    def size(self) -> int:
        return len(self)

    def empty(self) -> bool:
        return len(self) == 0

    def depth(self) -> int:
        return self._nodes.depth()

    @property
    def primitives(self) -> Tuple[Primitive, ...]:
        return tuple(self._primitives)

    @property
    def nodes(self) -> builder.NodeStore:
        return self._nodes

    def primitive(self, primitive_id: Hashable) -> Primitive:
        """Primitive with the given id."""
        return self._primitives[self._index_of(primitive_id)]

    def bbox(self) -> BoundingBox:
        """
        Root box, the union of all primitive boxes.

        Raises:
            EmptyTreeError: if the tree holds no primitive
        """
        if self.empty():
            raise EmptyTreeError("an empty tree has no bounding box")
        return self._nodes.box(0)

    def _index_of(self, primitive_id: Hashable) -> int:
        try:
            return self._id_index[primitive_id]
        except KeyError:
            raise UnknownPrimitiveError(primitive_id) from None
        except TypeError:
            # Unhashable, e.g. a point hint given as a list
            raise TypeError(
                f"primitive ids must be hashable, got {type(primitive_id).__name__}; "
                "pass point hints as tensors"
            ) from None

    def _as_point(self, point) -> torch.Tensor:
        return as_point(point, dtype=self.dtype, device=self.device)

    # ==================== Intersection queries ====================

    def _candidates(self, query: LinearQuery) -> Iterator[int]:
        """Primitive indices of the leaves whose box `query` hits, left subtree first."""
        if self.empty():
            return
        nodes = self._nodes
        root_hit = kernels.linear_query_hits_boxes(query, nodes.mins[:1], nodes.maxs[:1], self.epsilon)
        if not bool(root_hit[0]):
            return
        stack = [0]
        while stack:
            node = stack.pop()
            if nodes.is_leaf(node):
                yield nodes.primitive[node]
                continue
            children = nodes.children(node)
            left_hit, right_hit = kernels.linear_query_hits_boxes(
                query, nodes.mins[children], nodes.maxs[children], self.epsilon
            ).tolist()
            if right_hit:
                stack.append(children[1])
            if left_hit:
                stack.append(children[0])

    def all_intersected_primitives(self, query: LinearQuery) -> Iterator[Hashable]:
        """
        Lazily enumerate the ids of all primitives intersected by `query`.

        Args:
            query: Ray, Line or Segment

        Yields:
            primitive ids in traversal order
        """
        for index in self._candidates(query):
            primitive = self._primitives[index]
            if kernels.do_intersect(query, primitive.object(), self.epsilon):
                yield primitive.id

    def all_intersections(self, query: LinearQuery) -> Iterator[ObjectAndPrimitiveId]:
        """
        Lazily enumerate all intersections with `query`.

        Yields:
            ObjectAndPrimitiveId(object, id) where object is a [3] point or a
            Segment (overlap of a coplanar / collinear query)
        """
        for index in self._candidates(query):
            primitive = self._primitives[index]
            obj = kernels.intersection(query, primitive.object(), self.epsilon)
            if obj is not None:
                yield ObjectAndPrimitiveId(obj, primitive.id)

    def do_intersect(self, query: LinearQuery) -> bool:
        """True iff at least one primitive intersects `query`; stops at the first hit."""
        for _ in self.all_intersected_primitives(query):
            return True
        return False

    def number_of_intersected_primitives(self, query: LinearQuery) -> int:
        return sum(1 for _ in self.all_intersected_primitives(query))

    def any_intersected_primitive(self, query: LinearQuery) -> Optional[Hashable]:
        """Id of the first intersected primitive in traversal order, None if none."""
        return next(self.all_intersected_primitives(query), None)

    def any_intersection(self, query: LinearQuery) -> Optional[ObjectAndPrimitiveId]:
        """First intersection in traversal order, None if none."""
        return next(self.all_intersections(query), None)

    # ==================== Distance queries ====================

    def squared_distance(self, point, hint: Optional[Hint] = None) -> float:
        """
        Squared distance from `point` to the closest primitive.

        Args:
            point: [3] tensor or sequence
            hint: optional PointAndPrimitiveId, point on the primitives, or
                primitive id used as the initial bound

        Raises:
            EmptyTreeError: if the tree holds no primitive
            UnknownPrimitiveError: if the hint names an id not in the tree
            TypeError: if the hint is not hashable (point hints must be tensors)
        """
        return self._nearest(point, hint).squared_distance

    def closest_point(self, point, hint: Optional[Hint] = None) -> torch.Tensor:
        """Closest point on the primitives to `point` (see squared_distance)."""
        return self._nearest(point, hint).point

    def closest_point_and_primitive(self, point, hint: Optional[Hint] = None) -> PointAndPrimitiveId:
        """
        Closest point and the primitive achieving it.

        When several primitives are at the same minimal distance, any one
        of them may be returned, and hinted / unhinted calls may disagree.
        """
        best = self._nearest(point, hint)
        return PointAndPrimitiveId(best.point, self._primitives[best.index].id)

    def _nearest(self, point, hint: Optional[Hint]) -> _Best:
        if self.empty():
            raise EmptyTreeError("distance query on an empty tree")
        point = self._as_point(point)
        if hint is None and self._accelerator is not None:
            hint = self._accelerator.nearest(point)

        best = self._branch_and_bound(point, self._seed(point, hint))
        if best.index is None:
            logger.debug("hint point undercuts every primitive, searching without hint")
            best = self._branch_and_bound(point, _Best())
        return best

    def _seed(self, point: torch.Tensor, hint: Optional[Hint]) -> _Best:
        """Initial bound from a hint."""
        if hint is None:
            return _Best()
        if isinstance(hint, torch.Tensor):
            hint_point = self._as_point(hint)
            return _Best(float(((hint_point - point) ** 2).sum()), hint_point, None)
        if isinstance(hint, PointAndPrimitiveId):
            index = self._index_of(hint.id)
        else:
            index = self._index_of(hint)
        closest, sqd = kernels.closest_point_and_squared_distance(
            point, self._primitives[index].object()
        )
        return _Best(sqd, closest, index)

    def _branch_and_bound(self, point: torch.Tensor, best: _Best) -> _Best:
        """Nearer-child-first traversal pruning boxes that cannot beat `best`."""
        nodes = self._nodes
        root_bound = float(kernels.point_box_squared_distance(point, nodes.mins[:1], nodes.maxs[:1])[0])
        stack = [(root_bound, 0)]
        while stack:
            bound, node = stack.pop()
            if not best.improved_by(bound):
                continue
            if nodes.is_leaf(node):
                index = nodes.primitive[node]
                closest, sqd = kernels.closest_point_and_squared_distance(
                    point, self._primitives[index].object()
                )
                if best.improved_by(sqd):
                    best.squared_distance, best.point, best.index = sqd, closest, index
                continue
            children = nodes.children(node)
            bounds = kernels.point_box_squared_distance(
                point, nodes.mins[children], nodes.maxs[children]
            ).tolist()
            # Push the farther child first so the nearer one is expanded next
            for child_bound, child in sorted(zip(bounds, children), reverse=True):
                if best.improved_by(child_bound):
                    stack.append((child_bound, child))
        return best

    # ==================== Distance accelerator ====================

    def accelerate_distance_queries(
        self,
        points: Optional[Union[torch.Tensor, Iterable[Tuple[torch.Tensor, Hashable]]]] = None,
        owners: Optional[Sequence[Hashable]] = None
    ):
        """
        Index sample points so distance queries start from a tight bound.

        Args:
            points: None to index one reference point per primitive,
                a [K, 3] tensor (then `owners` is required), or an iterable
                of (point, owner id) pairs
            owners: K primitive ids when `points` is a tensor

        Raises:
            AcceleratorError: if the accelerator was already built
            UnknownPrimitiveError: if an owner is not a primitive of the tree
            ValueError: on mismatched points / owners
        """
        if self._accelerator is not None:
            raise AcceleratorError(
                "distance accelerator already built; build a new tree for another point set"
            )

        if points is None:
            pairs = [(p.reference_point(), p.id) for p in self._primitives]
            points, owners = self._stack_pairs(pairs)
        elif isinstance(points, torch.Tensor):
            if owners is None:
                raise ValueError("owners are required when points is a tensor")
            points = torch.as_tensor(points).to(dtype=self.dtype, device=self.device)
            owners = list(owners)
        else:
            if owners is not None:
                raise ValueError("owners must not be given with (point, owner) pairs")
            points, owners = self._stack_pairs(list(points))

        for owner in owners:
            self._index_of(owner)

        self._accelerator = DistanceAccelerator(points, owners)
        if self._accelerator.empty():
            logger.info("distance accelerator built over no points, queries stay unhinted")
        else:
            logger.debug("distance accelerator holds %d points", len(self._accelerator))

    def _stack_pairs(self, pairs) -> Tuple[torch.Tensor, list]:
        if not pairs:
            return torch.empty(0, 3, dtype=self.dtype, device=self.device), []
        points = torch.stack([self._as_point(p) for p, _ in pairs])
        return points, [owner for _, owner in pairs]

    @property
    def accelerated(self) -> bool:
        return self._accelerator is not None and not self._accelerator.empty()

    def any_reference_point_and_id(self) -> PointAndPrimitiveId:
        """
        One indexed point and its owner, usable as a hint.

        Falls back to the first primitive's reference point when no
        accelerator points are available.

        Raises:
            EmptyTreeError: if there is neither an indexed point nor a primitive
        """
        if self._accelerator is not None:
            entry = self._accelerator.any_point_and_id()
            if entry is not None:
                return entry
        if self.empty():
            raise EmptyTreeError("an empty tree has no reference point")
        first = self._primitives[0]
        return PointAndPrimitiveId(self._as_point(first.reference_point()), first.id)


def build(primitives: Iterable[Primitive], **kwargs) -> AABBTree:
    """Build an AABBTree (keyword arguments as in AABBTree)."""
    return AABBTree(primitives, **kwargs)
