"""
MeshIntersector: segment and mesh-edge collision queries against a tree
"""

import torch

from ..core.aabb_tree import AABBTree
from ..core.data_structures import Segment, SegmentIntersectResult
from ..core.primitives import mesh_edges


class MeshIntersector:
    """
    Mesh collision application.

    = AABBTree.all_intersections over batches of segments

    Used to find where the edges of another mesh cross the primitives
    stored in the tree.

    Args:
        tree: AABBTree instance
    """

    def __init__(self, tree: AABBTree):
        self.tree = tree

    def intersect_segments(
        self,
        sources: torch.Tensor,
        targets: torch.Tensor
    ) -> SegmentIntersectResult:
        """
        Intersect N segments with the tree.

        Args:
            sources: [N, 3]
            targets: [N, 3]

        Returns:
            result: SegmentIntersectResult, one entry per
                (segment, intersected primitive) pair, grouped by segment

        Raises:
            DegenerateQueryError: if a segment has zero length
        """
        if sources.shape != targets.shape or sources.ndim != 2 or sources.shape[1] != 3:
            raise ValueError(
                f"sources and targets must both be shape (N, 3), "
                f"got {tuple(sources.shape)} and {tuple(targets.shape)}"
            )
        N = sources.shape[0]
        hit = torch.zeros(N, dtype=torch.bool, device=sources.device)
        segment_ids = []
        primitive_ids = []
        objects = []

        for i in range(N):
            for obj, primitive_id in self.tree.all_intersections(Segment(sources[i], targets[i])):
                hit[i] = True
                segment_ids.append(i)
                primitive_ids.append(primitive_id)
                objects.append(obj)

        return SegmentIntersectResult(
            hit=hit,
            segment_ids=torch.tensor(segment_ids, dtype=torch.long, device=sources.device),
            primitive_ids=primitive_ids,
            objects=objects,
        )

    def intersect_with_mesh(
        self,
        other_vertices: torch.Tensor,
        other_faces: torch.Tensor
    ) -> SegmentIntersectResult:
        """
        Intersect the edges of another mesh with the tree.

        Args:
            other_vertices: [M, 3]
            other_faces: [K, 3]

        Returns:
            result: SegmentIntersectResult whose segment_ids index
                mesh_edges(other_faces)
        """
        edges = mesh_edges(other_faces).to(other_vertices.device)
        return self.intersect_segments(other_vertices[edges[:, 0]], other_vertices[edges[:, 1]])

    def count_edge_crossings(
        self,
        other_vertices: torch.Tensor,
        other_faces: torch.Tensor
    ) -> torch.Tensor:
        """
        Number of intersected primitives per edge of another mesh.

        Returns:
            counts: [E] int64, aligned with mesh_edges(other_faces)
        """
        edges = mesh_edges(other_faces).to(other_vertices.device)
        counts = [
            self.tree.number_of_intersected_primitives(
                Segment(other_vertices[i], other_vertices[j])
            )
            for i, j in edges.tolist()
        ]
        return torch.tensor(counts, dtype=torch.long, device=other_vertices.device)
