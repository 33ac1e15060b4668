"""
UDFQuery: Unsigned Distance Field query with gradient support.
"""

from typing import Optional
import torch

from .. import config
from ..core.aabb_tree import AABBTree
from ..core.data_structures import ClosestPointResult


class UDFQuery:
    """
    Unsigned Distance Field query application.

    Wraps AABBTree.closest_point_and_primitive with:
    - Batch processing over [N, 3] points
    - Gradient support via autograd

    Args:
        tree: AABBTree instance (must not be empty)
    """

    def __init__(self, tree: AABBTree):
        self.tree = tree

    def query(
        self,
        points: torch.Tensor,
        compute_grad: bool = False,
        batch_size: Optional[int] = None
    ) -> ClosestPointResult:
        """
        Query unsigned distance field.

        Args:
            points: [N, 3] query points
                If compute_grad=True, should have requires_grad=True
            compute_grad: Whether to enable gradient computation
            batch_size: Points per batch (None = config.UDF_BATCH_SIZE)

        Returns:
            result: ClosestPointResult
                - distances: [N] in the dtype of `points`
                - closest_points: [N, 3]
                - primitive_ids: N ids of the closest primitives

        Raises:
            EmptyTreeError: if the tree holds no primitive
        """
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"points must be shape (N, 3), got {tuple(points.shape)}")
        batch_size = config.UDF_BATCH_SIZE if batch_size is None else batch_size
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        all_distances = []
        all_closest_points = []
        all_primitive_ids = []

        for i in range(0, points.shape[0], batch_size):
            result = self._query_batch(points[i:i + batch_size], compute_grad)
            all_distances.append(result.distances)
            all_closest_points.append(result.closest_points)
            all_primitive_ids.extend(result.primitive_ids)

        if not all_distances:
            return ClosestPointResult(
                distances=points.new_empty(0),
                closest_points=points.new_empty(0, 3),
                primitive_ids=[],
            )
        return ClosestPointResult(
            distances=torch.cat(all_distances),
            closest_points=torch.cat(all_closest_points),
            primitive_ids=all_primitive_ids,
        )

    def _query_batch(self, points: torch.Tensor, compute_grad: bool) -> ClosestPointResult:
        """
        Closest points of one batch.

        Gradient: d(distance)/d(point) = (point - closest_point) / distance
        """
        # Closest points carry no gradient
        with torch.no_grad():
            answers = [self.tree.closest_point_and_primitive(p) for p in points.detach()]
            closest_points = torch.stack([a.point for a in answers]).to(
                dtype=points.dtype, device=points.device
            )

        if compute_grad:
            distances = (points - closest_points).norm(dim=1)
        else:
            with torch.no_grad():
                distances = (points - closest_points).norm(dim=1)

        return ClosestPointResult(
            distances=distances,
            closest_points=closest_points,
            primitive_ids=[a.id for a in answers],
        )
