"""
BoundingBox: axis-aligned box used as the per-primitive and per-node summary.
"""

import torch


class BoundingBox:
    """Axis-aligned bounding box.

    Stores per-axis minima and maxima as [3] tensors.

    Args:
        min_point: Minimum corner (x_min, y_min, z_min).
        max_point: Maximum corner (x_max, y_max, z_max).

    Raises:
        ValueError: if the corners are not [3] tensors or min > max on an axis.
    """

    __slots__ = ('min', 'max')

    def __init__(self, min_point: torch.Tensor, max_point: torch.Tensor):
        min_point = torch.as_tensor(min_point)
        max_point = torch.as_tensor(max_point, dtype=min_point.dtype, device=min_point.device)
        if min_point.shape != (3,) or max_point.shape != (3,):
            raise ValueError("bounding box corners must have shape (3,)")
        if bool((min_point > max_point).any()):
            raise ValueError(
                f"min corner {min_point.tolist()} exceeds max corner {max_point.tolist()}"
            )
        self.min = min_point
        self.max = max_point

    @classmethod
    def from_points(cls, points: torch.Tensor) -> 'BoundingBox':
        """Tight box around a [K, 3] point set (K >= 1)."""
        points = torch.as_tensor(points)
        if points.ndim != 2 or points.shape[1] != 3 or points.shape[0] == 0:
            raise ValueError("points must be a non-empty [K, 3] tensor")
        return cls(points.min(dim=0).values, points.max(dim=0).values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BoundingBox):
            return NotImplemented
        return bool(torch.equal(self.min, other.min) and torch.equal(self.max, other.max))

    def __repr__(self) -> str:
        return f"BoundingBox(min={self.min.tolist()}, max={self.max.tolist()})"

    @property
    def dtype(self) -> torch.dtype:
        return self.min.dtype

    def extent(self) -> torch.Tensor:
        """Return per-axis extent vector e = max - min."""
        return self.max - self.min

    def contains(self, other: 'BoundingBox') -> bool:
        """True if `other` lies inside this box (boundary included)."""
        return bool((self.min <= other.min).all() and (other.max <= self.max).all())
