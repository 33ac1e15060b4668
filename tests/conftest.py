import pytest
import torch
import trimesh

from aabb3d import (
    AABBTree,
    ObjectPrimitive,
    Segment,
    triangle_primitives,
)


@pytest.fixture
def unit_triangle():
    vertices = torch.tensor(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], dtype=torch.float64
    )
    faces = torch.tensor([[0, 1, 2]], dtype=torch.long)
    return vertices, faces


@pytest.fixture
def unit_triangle_tree(unit_triangle):
    vertices, faces = unit_triangle
    return AABBTree(triangle_primitives(vertices, faces))


@pytest.fixture
def sphere_mesh():
    mesh = trimesh.creation.icosphere(subdivisions=2, radius=1.0)
    return (
        torch.tensor(mesh.vertices, dtype=torch.float64),
        torch.tensor(mesh.faces, dtype=torch.long),
    )


@pytest.fixture
def sphere_tree(sphere_mesh):
    vertices, faces = sphere_mesh
    return AABBTree(triangle_primitives(vertices, faces))


@pytest.fixture
def disjoint_segments():
    near = Segment(
        torch.tensor([0.0, 0.0, 0.0], dtype=torch.float64),
        torch.tensor([1.0, 0.0, 0.0], dtype=torch.float64),
    )
    far = Segment(
        torch.tensor([100.0, 0.0, 0.0], dtype=torch.float64),
        torch.tensor([101.0, 0.0, 0.0], dtype=torch.float64),
    )
    return [ObjectPrimitive(near, "near"), ObjectPrimitive(far, "far")]


@pytest.fixture
def query_points():
    generator = torch.Generator().manual_seed(1234)
    return torch.rand(20, 3, generator=generator, dtype=torch.float64) * 4.0 - 2.0
