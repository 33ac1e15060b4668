"""
Intersection kernels for linear queries (rays, lines, segments)

Every linear query is handled through its parametric form
origin + t * direction with t restricted to [t_min, t_max]:
    Ray      [0, inf)
    Line     (-inf, inf)
    Segment  [0, 1]   (direction = target - source)

Predicates are tolerant by a relative epsilon. Box tests are conservative
(they may report a hit on a grazing miss, never the opposite), which is what
the tree needs from a pruning filter.
"""

import math
from typing import Optional, Tuple, Union
import torch

from .. import config
from ..core.data_structures import Line, LinearQuery, Ray, Segment, Shape, Triangle
from ..core.exceptions import DegenerateQueryError


def parametric_form(query: LinearQuery) -> Tuple[torch.Tensor, torch.Tensor, float, float]:
    """
    Decompose a linear query into (origin, direction, t_min, t_max).

    Raises:
        DegenerateQueryError: if the query direction is the zero vector
        TypeError: if `query` is not a Ray, Line or Segment
    """
    if isinstance(query, Ray):
        origin, direction, t_min, t_max = query.origin, query.direction, 0.0, math.inf
    elif isinstance(query, Line):
        origin, direction, t_min, t_max = query.point_on_line, query.direction, -math.inf, math.inf
    elif isinstance(query, Segment):
        origin, direction, t_min, t_max = query.source, query.target - query.source, 0.0, 1.0
    else:
        raise TypeError(f"unsupported linear query type {type(query).__name__}")

    if not bool(direction.any()):
        raise DegenerateQueryError(
            f"{type(query).__name__} has a zero direction vector"
        )
    return origin, direction, t_min, t_max


def linear_query_hits_boxes(
    query: LinearQuery,
    mins: torch.Tensor,
    maxs: torch.Tensor,
    epsilon: Optional[float] = None
) -> torch.Tensor:
    """
    Slab test of one linear query against a batch of boxes.

    Args:
        query: Ray, Line or Segment
        mins: [K, 3] box minima
        maxs: [K, 3] box maxima
        epsilon: relative box inflation (None = config.GEOMETRIC_EPSILON)

    Returns:
        hit: [K] bool
    """
    eps = config.GEOMETRIC_EPSILON if epsilon is None else epsilon
    origin, direction, t_min, t_max = parametric_form(query)
    origin = origin.to(mins.dtype)
    direction = direction.to(mins.dtype)

    tol = eps * (1.0 + torch.maximum(mins.abs(), maxs.abs()))
    lo = mins - tol
    hi = maxs + tol

    parallel = direction == 0
    safe_direction = torch.where(parallel, torch.ones_like(direction), direction)
    t_a = (lo - origin) / safe_direction
    t_b = (hi - origin) / safe_direction
    t_near = torch.minimum(t_a, t_b)
    t_far = torch.maximum(t_a, t_b)

    # Axes the query runs parallel to: either always inside the slab or never
    in_slab = (origin >= lo) & (origin <= hi)
    inf = torch.full_like(t_near, math.inf)
    t_near = torch.where(parallel, torch.where(in_slab, -inf, inf), t_near)
    t_far = torch.where(parallel, torch.where(in_slab, inf, -inf), t_far)

    enter = torch.clamp(t_near.max(dim=-1).values, min=t_min)
    leave = torch.clamp(t_far.min(dim=-1).values, max=t_max)
    return enter <= leave


def intersection(query: LinearQuery, shape: Shape, epsilon: Optional[float] = None):
    """
    Intersection of a linear query with a primitive shape.

    Args:
        query: Ray, Line or Segment
        shape: Triangle, Segment or [3] point tensor
        epsilon: relative tolerance (None = config.GEOMETRIC_EPSILON)

    Returns:
        None if they do not meet, a [3] point tensor for a single point,
        or a Segment when the query overlaps the shape along a stretch
        (coplanar with a triangle, collinear with a segment).
    """
    eps = config.GEOMETRIC_EPSILON if epsilon is None else epsilon
    if isinstance(shape, Triangle):
        return _triangle_intersection(query, shape, eps)
    if isinstance(shape, Segment):
        return _segment_intersection(query, shape, eps)
    if isinstance(shape, torch.Tensor):
        origin, direction, t_min, t_max = parametric_form(query)
        point = shape.to(origin.dtype)
        return _point_on_query(point, origin, direction, t_min, t_max,
                               eps * _scale(origin, point))
    raise TypeError(f"unsupported primitive shape {type(shape).__name__}")


def do_intersect(query: LinearQuery, shape: Shape, epsilon: Optional[float] = None) -> bool:
    """True iff `query` meets `shape` (see intersection)."""
    return intersection(query, shape, epsilon) is not None


# ==================== Helpers ====================

def _scale(*points: torch.Tensor) -> float:
    """1 + largest absolute coordinate, the length unit of tolerances."""
    return 1.0 + max(float(p.abs().max()) for p in points)


def _dot(u: torch.Tensor, v: torch.Tensor) -> float:
    return float(torch.dot(u, v))


def _from_parameters(origin, direction, lo, hi, t_tol) -> Union[torch.Tensor, Segment, None]:
    """Point or Segment for the parameter interval [lo, hi], None if empty."""
    if lo > hi + t_tol:
        return None
    if hi - lo <= t_tol:
        return origin + 0.5 * (lo + hi) * direction
    return Segment(origin + lo * direction, origin + hi * direction)


def _point_on_query(point, origin, direction, t_min, t_max, length_tol):
    squared_norm = _dot(direction, direction)
    t = _dot(point - origin, direction) / squared_norm
    t_tol = length_tol / math.sqrt(squared_norm)
    if t < t_min - t_tol or t > t_max + t_tol:
        return None
    foot = origin + min(max(t, t_min), t_max) * direction
    if float(((foot - point) ** 2).sum()) > length_tol ** 2:
        return None
    return point


def _longest_edge(triangle: Triangle) -> Segment:
    edges = [Segment(triangle.a, triangle.b), Segment(triangle.b, triangle.c),
             Segment(triangle.c, triangle.a)]
    return max(edges, key=lambda e: e.squared_length())


# ==================== Triangle ====================

def _triangle_intersection(query: LinearQuery, triangle: Triangle, eps: float):
    origin, direction, t_min, t_max = parametric_form(query)
    a = triangle.a.to(origin.dtype)
    b = triangle.b.to(origin.dtype)
    c = triangle.c.to(origin.dtype)

    e1 = b - a
    e2 = c - a
    normal = torch.linalg.cross(e1, e2)
    normal_norm = float(normal.norm())
    if normal_norm <= eps * float(e1.norm()) * float(e2.norm()):
        # Flat triangle: it is covered by its longest edge
        return _segment_intersection(query, _longest_edge(triangle), eps)

    direction_norm = float(direction.norm())
    length_tol = eps * _scale(a, b, c, origin)
    t_tol = length_tol / direction_norm

    denom = _dot(normal, direction)
    if abs(denom) > eps * normal_norm * direction_norm:
        t = _dot(normal, a - origin) / denom
        if t < t_min - t_tol or t > t_max + t_tol:
            return None
        point = origin + min(max(t, t_min), t_max) * direction
        if _inside_triangle(point, a, e1, e2, eps):
            return point
        return None

    # Query parallel to the supporting plane
    offset = _dot(normal, origin - a) / normal_norm
    if abs(offset) > length_tol:
        return None
    return _coplanar_clip(origin, direction, t_min, t_max, (a, b, c), normal,
                          length_tol, t_tol, eps)


def _inside_triangle(point, a, e1, e2, eps: float) -> bool:
    ap = point - a
    d00 = _dot(e1, e1)
    d01 = _dot(e1, e2)
    d11 = _dot(e2, e2)
    d20 = _dot(ap, e1)
    d21 = _dot(ap, e2)
    denom = d00 * d11 - d01 * d01
    v = (d11 * d20 - d01 * d21) / denom
    w = (d00 * d21 - d01 * d20) / denom
    u = 1.0 - v - w
    return u >= -eps and v >= -eps and w >= -eps


def _coplanar_clip(origin, direction, t_min, t_max, vertices, normal,
                   length_tol, t_tol, eps):
    """Clip the query's parameter range by the three inward edge half-planes."""
    lo, hi = t_min, t_max
    direction_norm = float(direction.norm())
    a, b, c = vertices
    for p0, p1 in ((a, b), (b, c), (c, a)):
        inward = torch.linalg.cross(normal, p1 - p0)
        inward_norm = float(inward.norm())
        c0 = _dot(inward, origin - p0)
        c1 = _dot(inward, direction)
        if abs(c1) <= eps * inward_norm * direction_norm:
            if c0 < -length_tol * inward_norm:
                return None
            continue
        t = -c0 / c1
        if c1 > 0:
            lo = max(lo, t)
        else:
            hi = min(hi, t)
    return _from_parameters(origin, direction, lo, hi, t_tol)


# ==================== Segment ====================

def _segment_intersection(query: LinearQuery, segment: Segment, eps: float):
    origin, direction, t_min, t_max = parametric_form(query)
    source = segment.source.to(origin.dtype)
    target = segment.target.to(origin.dtype)
    length_tol = eps * _scale(source, target, origin)

    edge = target - source
    if not bool(edge.any()):
        return _point_on_query(source, origin, direction, t_min, t_max, length_tol)

    w0 = origin - source
    a = _dot(direction, direction)
    b = _dot(direction, edge)
    c = _dot(edge, edge)
    d = _dot(direction, w0)
    e = _dot(edge, w0)
    denom = a * c - b * b
    t_tol = length_tol / math.sqrt(a)

    if denom > eps * a * c:
        # Skew or crossing: closest points of the two supporting lines
        s_query = (b * e - c * d) / denom
        s_edge = (a * e - b * d) / denom
        edge_tol = length_tol / math.sqrt(c)
        if s_query < t_min - t_tol or s_query > t_max + t_tol:
            return None
        if s_edge < -edge_tol or s_edge > 1.0 + edge_tol:
            return None
        on_query = origin + min(max(s_query, t_min), t_max) * direction
        on_edge = source + min(max(s_edge, 0.0), 1.0) * edge
        if float(((on_query - on_edge) ** 2).sum()) > length_tol ** 2:
            return None
        return on_edge

    # Parallel: only collinear overlaps count
    off_line = torch.linalg.cross(source - origin, direction)
    if float((off_line ** 2).sum()) / a > length_tol ** 2:
        return None
    t0 = _dot(source - origin, direction) / a
    t1 = _dot(target - origin, direction) / a
    lo = max(min(t0, t1), t_min)
    hi = min(max(t0, t1), t_max)
    return _from_parameters(origin, direction, lo, hi, t_tol)
