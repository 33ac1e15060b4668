import pytest
import torch

from aabb3d import (
    AABBTree,
    EmptyTreeError,
    ObjectPrimitive,
    PointAndPrimitiveId,
    UnknownPrimitiveError,
    build,
)
from aabb3d import kernels


def t(*coords):
    return torch.tensor(coords, dtype=torch.float64)


def brute_force_squared_distance(tree, point):
    return min(kernels.squared_distance(point, p.object()) for p in tree.primitives)


class TestSingleTriangleDistance:
    """Distance queries on a tree holding one triangle."""

    def test_closest_point_below_vertex(self, unit_triangle_tree):
        closest = unit_triangle_tree.closest_point(t(0.0, 0.0, 1.0))
        torch.testing.assert_close(closest, t(0.0, 0.0, 0.0))
        assert unit_triangle_tree.squared_distance(t(0.0, 0.0, 1.0)) == pytest.approx(1.0)

    def test_closest_point_and_primitive(self, unit_triangle_tree):
        point, primitive_id = unit_triangle_tree.closest_point_and_primitive(t(0.2, 0.3, -2.0))
        torch.testing.assert_close(point, t(0.2, 0.3, 0.0))
        assert primitive_id == 0

    def test_accepts_sequences(self, unit_triangle_tree):
        assert unit_triangle_tree.squared_distance([2.0, 0.0, 0.0]) == pytest.approx(1.0)

    def test_returns_float(self, unit_triangle_tree):
        assert isinstance(unit_triangle_tree.squared_distance(t(1.0, 1.0, 1.0)), float)

    def test_rejects_bad_point(self, unit_triangle_tree):
        with pytest.raises(ValueError):
            unit_triangle_tree.squared_distance(t(1.0, 1.0))


class TestSphereDistance:
    """Distance queries on an icosphere compared with brute force."""

    def test_squared_distance_matches_brute_force(self, sphere_tree, query_points):
        for point in query_points:
            expected = brute_force_squared_distance(sphere_tree, point)
            assert sphere_tree.squared_distance(point) == pytest.approx(expected, rel=1e-12, abs=1e-15)

    def test_closest_point_is_on_reported_primitive(self, sphere_tree, query_points):
        for point in query_points:
            closest, primitive_id = sphere_tree.closest_point_and_primitive(point)
            triangle = sphere_tree.primitive(primitive_id).object()
            assert kernels.squared_distance(closest, triangle) < 1e-20
            assert float(((closest - point) ** 2).sum()) == pytest.approx(
                sphere_tree.squared_distance(point), rel=1e-12, abs=1e-15
            )

    def test_closest_point_agrees_with_pair(self, sphere_tree, query_points):
        for point in query_points:
            torch.testing.assert_close(
                sphere_tree.closest_point(point),
                sphere_tree.closest_point_and_primitive(point).point,
            )

    def test_idempotent(self, sphere_tree, query_points):
        for point in query_points[:5]:
            first = sphere_tree.closest_point_and_primitive(point)
            second = sphere_tree.closest_point_and_primitive(point)
            assert first.id == second.id
            assert torch.equal(first.point, second.point)


class TestHints:
    """Hinted queries return the same distance as unhinted ones."""

    def test_pair_hint(self, sphere_tree, query_points):
        hint = sphere_tree.any_reference_point_and_id()
        assert isinstance(hint, PointAndPrimitiveId)
        for point in query_points:
            assert sphere_tree.squared_distance(point, hint=hint) == pytest.approx(
                sphere_tree.squared_distance(point), rel=1e-12, abs=1e-15
            )

    def test_id_hint(self, sphere_tree, query_points):
        for point in query_points:
            assert sphere_tree.squared_distance(point, hint=17) == pytest.approx(
                sphere_tree.squared_distance(point), rel=1e-12, abs=1e-15
            )

    def test_point_hint(self, sphere_tree, query_points):
        hint = sphere_tree.primitive(3).reference_point()
        for point in query_points:
            assert sphere_tree.squared_distance(point, hint=hint) == pytest.approx(
                sphere_tree.squared_distance(point), rel=1e-12, abs=1e-15
            )

    def test_point_hint_closer_than_every_primitive(self, sphere_tree):
        point = t(0.1, 0.2, 0.3)
        hinted = sphere_tree.closest_point_and_primitive(point, hint=point)
        unhinted = sphere_tree.closest_point_and_primitive(point)
        assert sphere_tree.squared_distance(point, hint=point) == pytest.approx(
            sphere_tree.squared_distance(point)
        )
        torch.testing.assert_close(hinted.point, unhinted.point)

    def test_hint_from_previous_answer(self, sphere_tree, query_points):
        previous = sphere_tree.closest_point_and_primitive(query_points[0])
        for point in query_points[1:]:
            assert sphere_tree.squared_distance(point, hint=previous) == pytest.approx(
                sphere_tree.squared_distance(point), rel=1e-12, abs=1e-15
            )

    def test_unknown_id_raises(self, sphere_tree):
        with pytest.raises(UnknownPrimitiveError):
            sphere_tree.squared_distance(t(0.0, 0.0, 2.0), hint=10 ** 6)
        with pytest.raises(KeyError):
            sphere_tree.closest_point(t(0.0, 0.0, 2.0), hint=PointAndPrimitiveId(t(0.0, 0.0, 1.0), -1))

    def test_list_point_hint_is_a_type_error(self, sphere_tree):
        with pytest.raises(TypeError) as excinfo:
            sphere_tree.squared_distance(t(0.0, 0.0, 2.0), hint=[0.0, 0.0, 1.0])
        assert not isinstance(excinfo.value, UnknownPrimitiveError)
        assert "tensors" in str(excinfo.value)


class TestPointCloud:
    """Distance queries over point primitives with string ids."""

    @pytest.fixture
    def cloud_tree(self):
        generator = torch.Generator().manual_seed(7)
        points = torch.rand(64, 3, generator=generator, dtype=torch.float64)
        return AABBTree([ObjectPrimitive(p, f"p{i}") for i, p in enumerate(points)]), points

    def test_nearest_point(self, cloud_tree):
        tree, points = cloud_tree
        query = t(0.5, 0.5, 0.5)
        nearest = int(((points - query) ** 2).sum(dim=1).argmin())
        closest, primitive_id = tree.closest_point_and_primitive(query)
        assert primitive_id == f"p{nearest}"
        torch.testing.assert_close(closest, points[nearest])


class TestEmptyTreeDistance:
    """Distance queries on an empty tree are rejected."""

    def test_raises(self):
        tree = build([])
        with pytest.raises(EmptyTreeError):
            tree.squared_distance(t(0.0, 0.0, 0.0))
        with pytest.raises(EmptyTreeError):
            tree.closest_point(t(0.0, 0.0, 0.0))
        with pytest.raises(ValueError):
            tree.closest_point_and_primitive(t(0.0, 0.0, 0.0))
        with pytest.raises(EmptyTreeError):
            tree.any_reference_point_and_id()


@pytest.fixture
def leaf_calls(monkeypatch):
    """Record the shapes handed to the closest point kernel."""
    shapes = []
    original = kernels.closest_point_and_squared_distance

    def counting(point, shape):
        shapes.append(shape)
        return original(point, shape)

    monkeypatch.setattr(kernels, "closest_point_and_squared_distance", counting)
    return shapes


class TestPruning:
    """Distance traversal only visits a few leaves and starts at the hint."""

    def test_point_query_visits_few_leaves(self, sphere_tree, leaf_calls):
        point = t(0.3, 1.7, -0.4)
        sqd = sphere_tree.squared_distance(point)
        assert 0 < len(leaf_calls) < len(sphere_tree) // 8
        assert sqd == pytest.approx(brute_force_squared_distance(sphere_tree, point))

    def test_id_hint_is_tested_first(self, sphere_tree, leaf_calls):
        sphere_tree.squared_distance(t(0.3, 1.7, -0.4), hint=17)
        assert torch.equal(leaf_calls[0].vertices(), sphere_tree.primitive(17).object().vertices())

    def test_accelerator_seeds_the_search(self, sphere_tree, leaf_calls, monkeypatch):
        sphere_tree.accelerate_distance_queries()
        accelerator = sphere_tree._accelerator
        hints = []
        original = accelerator.nearest

        def recording(point):
            hint = original(point)
            hints.append(hint)
            return hint

        monkeypatch.setattr(accelerator, "nearest", recording)
        point = t(0.3, 1.7, -0.4)
        sphere_tree.squared_distance(point)
        assert len(hints) == 1
        seeded = sphere_tree.primitive(hints[0].id).object()
        assert torch.equal(leaf_calls[0].vertices(), seeded.vertices())
        assert len(leaf_calls) < len(sphere_tree) // 8

    def test_explicit_hint_skips_accelerator(self, sphere_tree, monkeypatch):
        sphere_tree.accelerate_distance_queries()

        def fail(point):
            raise AssertionError("accelerator consulted despite a hint")

        monkeypatch.setattr(sphere_tree._accelerator, "nearest", fail)
        sphere_tree.squared_distance(t(0.3, 1.7, -0.4), hint=17)
