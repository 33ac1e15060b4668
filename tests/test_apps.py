import logging

import pytest
import torch
import trimesh

from aabb3d import AABBTree, AABBTreeError, EmptyTreeError, build, triangle_primitives
from aabb3d.apps import (
    MeshIntersector,
    UDFQuery,
    VisibilityQuery,
    check_query_consistency,
    distance_query_speed,
    intersection_query_speed,
)
from aabb3d.apps.benchmark import INTERSECTION_OPERATIONS
from aabb3d.core.primitives import mesh_edges


def t(*coords):
    return torch.tensor(coords, dtype=torch.float64)


@pytest.fixture
def floor_tree():
    vertices = torch.tensor(
        [[-2.0, -2.0, 0.0], [2.0, -2.0, 0.0], [2.0, 2.0, 0.0], [-2.0, 2.0, 0.0]],
        dtype=torch.float64,
    )
    faces = torch.tensor([[0, 1, 2], [0, 2, 3]], dtype=torch.long)
    return AABBTree(triangle_primitives(vertices, faces))


@pytest.fixture
def shifted_box():
    mesh = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    mesh.apply_translation((0.3, 0.1, 0.0))
    return (
        torch.tensor(mesh.vertices, dtype=torch.float64),
        torch.tensor(mesh.faces, dtype=torch.long),
    )


class TestUDFQuery:
    """Tests for batched unsigned distance queries."""

    def test_matches_tree(self, sphere_tree, query_points):
        result = UDFQuery(sphere_tree).query(query_points)
        assert result.distances.shape == (query_points.shape[0],)
        assert result.closest_points.shape == query_points.shape
        assert len(result.primitive_ids) == query_points.shape[0]
        for point, distance in zip(query_points, result.distances):
            assert float(distance) ** 2 == pytest.approx(sphere_tree.squared_distance(point), rel=1e-9)

    def test_batching_does_not_change_results(self, sphere_tree, query_points):
        udf = UDFQuery(sphere_tree)
        whole = udf.query(query_points, batch_size=1000)
        batched = udf.query(query_points, batch_size=7)
        torch.testing.assert_close(whole.distances, batched.distances)
        torch.testing.assert_close(whole.closest_points, batched.closest_points)
        assert whole.primitive_ids == batched.primitive_ids

    def test_gradient_points_away_from_surface(self, sphere_tree):
        points = t(0.0, 0.0, 3.0).unsqueeze(0).repeat(2, 1)
        points[1] = t(0.1, 0.1, 0.1)
        points.requires_grad_(True)
        result = UDFQuery(sphere_tree).query(points, compute_grad=True)
        result.distances.sum().backward()
        torch.testing.assert_close(points.grad.norm(dim=1), torch.ones(2, dtype=torch.float64))
        assert float(points.grad[0, 2]) > 0.9

    def test_no_grad_by_default(self, sphere_tree):
        points = t(0.0, 0.0, 3.0).unsqueeze(0).requires_grad_(True)
        result = UDFQuery(sphere_tree).query(points)
        assert not result.distances.requires_grad

    def test_empty_points(self, sphere_tree):
        result = UDFQuery(sphere_tree).query(torch.empty(0, 3, dtype=torch.float64))
        assert result.distances.shape == (0,)
        assert result.closest_points.shape == (0, 3)
        assert result.primitive_ids == []

    def test_rejects_bad_input(self, sphere_tree):
        with pytest.raises(ValueError):
            UDFQuery(sphere_tree).query(torch.zeros(4, 2, dtype=torch.float64))
        with pytest.raises(ValueError):
            UDFQuery(sphere_tree).query(torch.zeros(4, 3, dtype=torch.float64), batch_size=0)

    def test_empty_tree_raises(self):
        with pytest.raises(EmptyTreeError):
            UDFQuery(build([])).query(torch.zeros(1, 3, dtype=torch.float64))


class TestMeshIntersector:
    """Tests for mesh edge / tree intersection."""

    def test_box_edges_crossing_floor(self, floor_tree, shifted_box):
        vertices, faces = shifted_box
        edges = mesh_edges(faces)
        z = vertices[:, 2]
        crossing = (z[edges[:, 0]] * z[edges[:, 1]]) < 0

        result = MeshIntersector(floor_tree).intersect_with_mesh(vertices, faces)
        assert torch.equal(result.hit, crossing)
        assert len(result.primitive_ids) == int(crossing.sum())
        assert sorted(result.segment_ids.tolist()) == torch.nonzero(crossing).flatten().tolist()
        torch.testing.assert_close(
            result.hit_points()[:, 2], torch.zeros(len(result.objects), dtype=torch.float64)
        )

    def test_count_edge_crossings(self, floor_tree, shifted_box):
        vertices, faces = shifted_box
        intersector = MeshIntersector(floor_tree)
        counts = intersector.count_edge_crossings(vertices, faces)
        result = intersector.intersect_with_mesh(vertices, faces)
        assert int(counts.sum()) == len(result.primitive_ids)

    def test_segments_missing_tree(self, floor_tree):
        sources = torch.tensor([[0.0, 0.0, 1.0], [5.0, 5.0, -1.0]], dtype=torch.float64)
        targets = torch.tensor([[0.0, 0.0, 2.0], [5.0, 5.0, 1.0]], dtype=torch.float64)
        result = MeshIntersector(floor_tree).intersect_segments(sources, targets)
        assert result.hit.tolist() == [False, False]
        assert result.segment_ids.shape == (0,)
        assert result.hit_points().shape == (0, 3)

    def test_rejects_mismatched_shapes(self, floor_tree):
        with pytest.raises(ValueError):
            MeshIntersector(floor_tree).intersect_segments(torch.zeros(2, 3), torch.zeros(3, 3))


class TestVisibilityQuery:
    """Tests for ray-based visibility ratios."""

    def test_view_directions(self, sphere_tree):
        points = t(5.0, 0.0, 0.0).unsqueeze(0)
        directions = torch.tensor([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]], dtype=torch.float64)
        result = VisibilityQuery(sphere_tree).query(points, directions, return_details=True)
        assert result.visible_mask.tolist() == [[True, False]]
        assert result.visibility.tolist() == [0.5]

    def test_center_is_hidden(self, sphere_tree):
        visibility = VisibilityQuery(sphere_tree).query_uniform_sphere(t(0.0, 0.0, 0.0).unsqueeze(0), 16)
        assert visibility.tolist() == [0.0]

    def test_far_point_is_partly_visible(self, sphere_tree):
        visibility = VisibilityQuery(sphere_tree).query_uniform_sphere(t(1.5, 0.0, 0.0).unsqueeze(0), 64)
        assert 0.5 < float(visibility[0]) < 1.0

    def test_from_cameras(self, sphere_tree):
        points = torch.tensor([[0.0, 0.0, 0.0], [3.0, 0.0, 0.0]], dtype=torch.float64)
        cameras = torch.tensor([[5.0, 0.0, 0.0]], dtype=torch.float64)
        visibility = VisibilityQuery(sphere_tree).query_from_cameras(points, cameras)
        assert visibility.tolist() == [0.0, 1.0]


class TestBenchmark:
    """Tests for throughput and consistency harnesses."""

    def test_distance_query_speed(self, sphere_tree, caplog):
        caplog.set_level(logging.INFO, logger="aabb3d")
        assert distance_query_speed(sphere_tree, duration=0.05) > 0.0
        assert "distance queries/s" in caplog.text

    @pytest.mark.parametrize("operation", INTERSECTION_OPERATIONS)
    def test_intersection_query_speed(self, sphere_tree, operation):
        assert intersection_query_speed(sphere_tree, duration=0.02, operation=operation) > 0.0

    def test_unknown_operation(self, sphere_tree):
        with pytest.raises(ValueError):
            intersection_query_speed(sphere_tree, duration=0.01, operation="closest_point")

    def test_duration_must_be_positive(self, sphere_tree):
        with pytest.raises(ValueError):
            distance_query_speed(sphere_tree, duration=0.0)

    def test_empty_tree(self):
        with pytest.raises(EmptyTreeError):
            distance_query_speed(build([]), duration=0.01)

    def test_consistency(self, sphere_tree):
        report = check_query_consistency(sphere_tree, num_points=10)
        assert report.num_points == 10

    def test_consistency_with_accelerator(self, sphere_tree):
        sphere_tree.accelerate_distance_queries()
        report = check_query_consistency(sphere_tree, num_points=10, seed=3)
        assert report.num_points == 10

    def test_consistency_raises_on_divergent_distance(self, sphere_tree, monkeypatch):
        unhinted = sphere_tree.squared_distance

        def divergent(point, hint=None):
            value = unhinted(point)
            return value if hint is None else value + 1.0

        monkeypatch.setattr(sphere_tree, "squared_distance", divergent)
        with pytest.raises(AABBTreeError):
            check_query_consistency(sphere_tree, num_points=3)
