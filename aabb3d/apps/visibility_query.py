"""
VisibilityQuery: Visibility query application with statistical probability
"""

from typing import Optional, Union
import torch

from .. import config
from ..core.aabb_tree import AABBTree
from ..core.data_structures import Ray, Segment, VisibilityResult


class VisibilityQuery:
    """
    Visibility query application.

    = AABBTree.do_intersect + statistical probability

    The visibility of a query point is the fraction of view directions
    along which a ray leaving the point hits no primitive.

    Args:
        tree: AABBTree instance
        offset: distance the ray origin is moved along the view direction,
            so points lying on the surface do not occlude themselves
            (None = config.VISIBILITY_OFFSET)
    """

    def __init__(self, tree: AABBTree, offset: Optional[float] = None):
        self.tree = tree
        self.offset = config.VISIBILITY_OFFSET if offset is None else offset

    def query(
        self,
        points: torch.Tensor,
        view_directions: torch.Tensor,
        return_details: bool = False
    ) -> Union[torch.Tensor, VisibilityResult]:
        """
        Visibility ratio of points over view directions.

        Args:
            points: [N, 3] query points
            view_directions: [M, 3] view directions (need not be normalized)
            return_details: also return the per-direction mask

        Returns:
            If return_details=False:
                visibility: [N] float visibility ratio in [0, 1]
            If return_details=True:
                result: VisibilityResult

        Raises:
            DegenerateQueryError: if a view direction is the zero vector
        """
        N = points.shape[0]
        M = view_directions.shape[0]
        device = points.device

        directions = view_directions.to(dtype=points.dtype, device=device)
        norms = directions.norm(dim=1, keepdim=True)
        unit = torch.where(norms > 0, directions / norms.clamp_min(1e-30), directions)

        visible_mask = torch.zeros(N, M, dtype=torch.bool, device=device)
        for i in range(N):
            for j in range(M):
                origin = points[i] + self.offset * unit[j]
                visible_mask[i, j] = not self.tree.do_intersect(Ray(origin, unit[j]))

        visibility = visible_mask.to(points.dtype).mean(dim=1) if M > 0 else points.new_ones(N)

        if return_details:
            return VisibilityResult(visibility=visibility, visible_mask=visible_mask)
        return visibility

    def query_from_cameras(
        self,
        points: torch.Tensor,
        camera_positions: torch.Tensor
    ) -> torch.Tensor:
        """
        Visibility of points from camera positions.

        Args:
            points: [N, 3] query points
            camera_positions: [M, 3] camera positions

        Returns:
            visibility: [N] fraction of cameras that see each point
                (no primitive on the segment between point and camera)
        """
        N = points.shape[0]
        M = camera_positions.shape[0]
        cameras = camera_positions.to(dtype=points.dtype, device=points.device)

        visible_count = points.new_zeros(N)
        for cam_pos in cameras:
            for i in range(N):
                direction = cam_pos - points[i]
                length = float(direction.norm())
                if length <= self.offset:
                    visible_count[i] += 1
                    continue
                origin = points[i] + direction * (self.offset / length)
                if not self.tree.do_intersect(Segment(origin, cam_pos)):
                    visible_count[i] += 1

        if M == 0:
            return points.new_ones(N)
        return visible_count / M

    def query_uniform_sphere(
        self,
        points: torch.Tensor,
        num_samples: int = 32
    ) -> torch.Tensor:
        """
        Visibility over uniformly distributed sphere directions.

        Args:
            points: [N, 3] query points
            num_samples: number of sphere directions

        Returns:
            visibility: [N] fraction of unoccluded directions
        """
        directions = self._fibonacci_sphere(num_samples, points.dtype, points.device)
        return self.query(points, directions, return_details=False)

    def _fibonacci_sphere(self, n: int, dtype: torch.dtype, device) -> torch.Tensor:
        """Generate n uniformly distributed points on sphere"""
        indices = torch.arange(n, dtype=dtype, device=device)

        phi = torch.acos(1 - 2 * (indices + 0.5) / n)
        theta = torch.pi * (1 + 5**0.5) * indices

        x = torch.sin(phi) * torch.cos(theta)
        y = torch.sin(phi) * torch.sin(theta)
        z = torch.cos(phi)

        return torch.stack([x, y, z], dim=1)
