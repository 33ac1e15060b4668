#!/usr/bin/env python3
"""
Distance Query Example

Demonstrates closest point queries, hints, the accelerator and UDF gradients.
"""

import torch
import time

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from aabb3d import AABBTree, triangle_primitives
from aabb3d.apps import UDFQuery, distance_query_speed


def create_sphere_mesh():
    """Create icosphere mesh."""
    try:
        import trimesh
        mesh = trimesh.creation.icosphere(subdivisions=3, radius=0.5)
        return (
            torch.tensor(mesh.vertices, dtype=torch.float64),
            torch.tensor(mesh.faces, dtype=torch.int64)
        )
    except ImportError:
        raise RuntimeError("trimesh required: pip install trimesh")


def main():
    print("=" * 50)
    print("aabb3d: Distance Query Example")
    print("=" * 50)

    vertices, faces = create_sphere_mesh()
    print(f"Mesh: sphere with {len(faces)} faces, radius=0.5")

    t0 = time.time()
    tree = AABBTree(triangle_primitives(vertices, faces))
    print(f"Build: {time.time()-t0:.4f}s, depth {tree.depth()}")

    num_points = 500
    points = torch.randn(num_points, 3, dtype=torch.float64)
    points = points / points.norm(dim=1, keepdim=True) * torch.rand(num_points, 1, dtype=torch.float64) * 2

    print(f"\n--- Single queries ---")
    point = points[0]
    closest, face = tree.closest_point_and_primitive(point)
    print(f"Query {point.tolist()}")
    print(f"Closest point {closest.tolist()} on face {face}")

    hint = tree.any_reference_point_and_id()
    print(f"Hinted squared distance: {tree.squared_distance(point, hint=hint):.6f}")
    print(f"Unhinted squared distance: {tree.squared_distance(point):.6f}")

    print(f"\n--- Throughput ---")
    print(f"Without accelerator: {distance_query_speed(tree, duration=1.0):.1f} queries/s")
    tree.accelerate_distance_queries()
    print(f"With accelerator:    {distance_query_speed(tree, duration=1.0):.1f} queries/s")

    print(f"\n--- UDF Query (with gradient) ---")
    points_grad = points.clone().requires_grad_(True)

    t0 = time.time()
    result = UDFQuery(tree).query(points_grad, compute_grad=True)
    print(f"Time: {time.time()-t0:.4f}s")
    print(f"Distance range: [{result.distances.min():.4f}, {result.distances.max():.4f}]")

    loss = result.distances.mean()
    loss.backward()

    gradients = points_grad.grad
    print(f"Gradient norm mean: {gradients.norm(dim=1).mean():.4f} (should be ~{1.0/num_points:.4f})")

    print(f"\n--- Application: Move towards surface ---")
    with torch.no_grad():
        step_size = 0.1
        direction = (points - result.closest_points)
        direction = direction / (direction.norm(dim=1, keepdim=True) + 1e-8)

        new_points = points - step_size * direction
        new_result = UDFQuery(tree).query(new_points)

        print(f"Before: mean distance = {result.distances.mean():.4f}")
        print(f"After:  mean distance = {new_result.distances.mean():.4f}")

    print("\n" + "=" * 50)
    print("Done!")
    print("=" * 50)


if __name__ == "__main__":
    main()
