"""
Query throughput and consistency harnesses.

Random queries are drawn inside the root box of the tree from a seeded
generator, so two runs over the same tree issue the same queries.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional
import torch

from .. import config
from ..core.aabb_tree import AABBTree
from ..core.bbox import BoundingBox
from ..core.data_structures import Ray
from ..core.exceptions import AABBTreeError

logger = logging.getLogger(__name__)

INTERSECTION_OPERATIONS = (
    "do_intersect",
    "number_of_intersected_primitives",
    "all_intersected_primitives",
    "all_intersections",
    "any_intersected_primitive",
    "any_intersection",
)


@dataclass
class ConsistencyReport:
    """Outcome of check_query_consistency"""
    num_points: int
    point_mismatches: int       # hinted closest point differs (allowed on ties)
    primitive_mismatches: int   # hinted closest primitive differs (allowed on ties)


def _generator(seed: Optional[int]) -> torch.Generator:
    return torch.Generator().manual_seed(config.BENCHMARK_SEED if seed is None else seed)


def _random_point(box: BoundingBox, generator: torch.Generator) -> torch.Tensor:
    u = torch.rand(3, generator=generator, dtype=box.dtype).to(box.min.device)
    return box.min + u * box.extent()


def _random_ray(box: BoundingBox, generator: torch.Generator) -> Ray:
    origin = _random_point(box, generator)
    direction = torch.randn(3, generator=generator, dtype=box.dtype).to(box.min.device)
    while float(direction.norm()) == 0.0:
        direction = torch.randn(3, generator=generator, dtype=box.dtype).to(box.min.device)
    return Ray(origin, direction)


def _run_for(duration: float, issue_query) -> float:
    if duration <= 0:
        raise ValueError("duration must be positive")
    queries = 0
    start = time.perf_counter()
    elapsed = 0.0
    while elapsed < duration:
        issue_query()
        queries += 1
        elapsed = time.perf_counter() - start
    return queries / elapsed


def distance_query_speed(tree: AABBTree, duration: float = 1.0, seed: Optional[int] = None) -> float:
    """
    Closest point queries per second over random points in the tree box.

    Raises:
        EmptyTreeError: if the tree holds no primitive
    """
    box = tree.bbox()
    generator = _generator(seed)
    rate = _run_for(duration, lambda: tree.closest_point(_random_point(box, generator)))
    logger.info("%.1f distance queries/s (%s)", rate,
                "accelerated" if tree.accelerated else "not accelerated")
    return rate


def intersection_query_speed(
    tree: AABBTree,
    duration: float = 1.0,
    operation: str = "do_intersect",
    seed: Optional[int] = None
) -> float:
    """
    Intersection queries per second with random rays through the tree box.

    Args:
        operation: name of the AABBTree intersection method to time

    Raises:
        EmptyTreeError: if the tree holds no primitive
        ValueError: if `operation` is not an intersection query
    """
    if operation not in INTERSECTION_OPERATIONS:
        raise ValueError(f"unknown intersection operation {operation!r}")
    box = tree.bbox()
    generator = _generator(seed)
    method = getattr(tree, operation)

    def issue_query():
        result = method(_random_ray(box, generator))
        if operation.startswith("all_"):
            for _ in result:
                pass

    rate = _run_for(duration, issue_query)
    logger.info("%.1f %s queries/s", rate, operation)
    return rate


def check_query_consistency(
    tree: AABBTree,
    num_points: int = 100,
    tolerance: float = 1e-9,
    seed: Optional[int] = None
) -> ConsistencyReport:
    """
    Compare hinted and unhinted distance queries on random points.

    Hints come from tree.any_reference_point_and_id() in its three forms
    (point and id, point only, id only). Differing closest points or
    primitives are only logged, since ties make them legitimate; differing
    squared distances beyond `tolerance` (relative) are errors.

    Raises:
        AABBTreeError: if a hinted squared distance diverges
        EmptyTreeError: if the tree holds no primitive
    """
    box = tree.bbox()
    generator = _generator(seed)
    reference = tree.any_reference_point_and_id()
    hints = (reference, reference.point, reference.id)

    point_mismatches = 0
    primitive_mismatches = 0
    for _ in range(num_points):
        query = _random_point(box, generator)
        sqd = tree.squared_distance(query)
        closest, primitive_id = tree.closest_point_and_primitive(query)
        slack = tolerance * max(1.0, sqd)

        for hint in hints:
            hinted_sqd = tree.squared_distance(query, hint=hint)
            if abs(hinted_sqd - sqd) > slack:
                raise AABBTreeError(
                    f"hinted squared distance {hinted_sqd} differs from {sqd} "
                    f"at {query.tolist()}"
                )
            hinted_closest, hinted_id = tree.closest_point_and_primitive(query, hint=hint)
            if float(((hinted_closest - closest) ** 2).sum()) > slack:
                point_mismatches += 1
                logger.warning("closest points differ at %s: %s vs %s",
                               query.tolist(), closest.tolist(), hinted_closest.tolist())
            if hinted_id != primitive_id:
                primitive_mismatches += 1
                logger.warning("closest primitives differ at %s: %r vs %r",
                               query.tolist(), primitive_id, hinted_id)

    return ConsistencyReport(
        num_points=num_points,
        point_mismatches=point_mismatches,
        primitive_mismatches=primitive_mismatches,
    )
