"""
Distance kernels: closest points on primitive shapes and point-box bounds.
"""

from typing import Tuple
import torch

from ..core.data_structures import Segment, Shape, Triangle


def closest_point(point: torch.Tensor, shape: Shape) -> torch.Tensor:
    """
    Closest point on `shape` to `point`.

    Args:
        point: [3] query point
        shape: Triangle, Segment or [3] point tensor

    Returns:
        closest: [3] tensor in the dtype of `point`
    """
    if isinstance(shape, Triangle):
        return _closest_point_on_triangle(point, shape)
    if isinstance(shape, Segment):
        return _closest_point_on_segment(point, shape.source.to(point.dtype),
                                         shape.target.to(point.dtype))
    if isinstance(shape, torch.Tensor):
        return shape.to(point.dtype)
    raise TypeError(f"unsupported primitive shape {type(shape).__name__}")


def squared_distance(point: torch.Tensor, shape: Shape) -> float:
    """Squared distance from `point` to `shape`."""
    return float(((closest_point(point, shape) - point) ** 2).sum())


def closest_point_and_squared_distance(point: torch.Tensor, shape: Shape) -> Tuple[torch.Tensor, float]:
    closest = closest_point(point, shape)
    return closest, float(((closest - point) ** 2).sum())


def point_box_squared_distance(
    point: torch.Tensor,
    mins: torch.Tensor,
    maxs: torch.Tensor
) -> torch.Tensor:
    """
    Lower bound used by the distance traversal.

    Args:
        point: [3] query point
        mins: [K, 3] box minima
        maxs: [K, 3] box maxima

    Returns:
        squared_distances: [K] (0 for boxes containing the point)
    """
    point = point.to(mins.dtype)
    below = torch.clamp(mins - point, min=0)
    above = torch.clamp(point - maxs, min=0)
    return ((below + above) ** 2).sum(dim=-1)


def _closest_point_on_segment(point, source, target) -> torch.Tensor:
    edge = target - source
    squared_length = float(torch.dot(edge, edge))
    if squared_length == 0.0:
        return source
    t = float(torch.dot(point - source, edge)) / squared_length
    return source + min(max(t, 0.0), 1.0) * edge


def _closest_point_on_triangle(point: torch.Tensor, triangle: Triangle) -> torch.Tensor:
    """Voronoi region walk (Ericson, Real-Time Collision Detection 5.1.5)."""
    a = triangle.a.to(point.dtype)
    b = triangle.b.to(point.dtype)
    c = triangle.c.to(point.dtype)
    ab = b - a
    ac = c - a

    ap = point - a
    d1 = float(torch.dot(ab, ap))
    d2 = float(torch.dot(ac, ap))
    if d1 <= 0.0 and d2 <= 0.0:
        return a

    bp = point - b
    d3 = float(torch.dot(ab, bp))
    d4 = float(torch.dot(ac, bp))
    if d3 >= 0.0 and d4 <= d3:
        return b

    vc = d1 * d4 - d3 * d2
    if vc <= 0.0 and d1 >= 0.0 and d3 <= 0.0 and d1 != d3:
        return a + (d1 / (d1 - d3)) * ab

    cp = point - c
    d5 = float(torch.dot(ab, cp))
    d6 = float(torch.dot(ac, cp))
    if d6 >= 0.0 and d5 <= d6:
        return c

    vb = d5 * d2 - d1 * d6
    if vb <= 0.0 and d2 >= 0.0 and d6 <= 0.0 and d2 != d6:
        return a + (d2 / (d2 - d6)) * ac

    va = d3 * d6 - d5 * d4
    if va <= 0.0 and (d4 - d3) >= 0.0 and (d5 - d6) >= 0.0 and (d4 - d3) + (d5 - d6) > 0.0:
        return b + ((d4 - d3) / ((d4 - d3) + (d5 - d6))) * (c - b)

    total = va + vb + vc
    if total == 0.0:
        # Flat triangle: the answer lies on one of its edges
        candidates = [_closest_point_on_segment(point, p, q) for p, q in ((a, b), (b, c), (c, a))]
        return min(candidates, key=lambda q: float(((q - point) ** 2).sum()))
    v = vb / total
    w = vc / total
    return a + v * ab + w * ac
