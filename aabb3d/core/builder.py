"""
Builder and node store for the AABB tree.

Node store data model:
  1. Nodes live in flat buffers indexed by non-negative integers; the root
     is node 0 and a tree over n primitives has exactly 2n - 1 nodes.
  2. `mins` / `maxs` hold the box of every node as [M, 3] tensors.
  3. `left` / `right` hold child node indices, -1 for leaves.
  4. `primitive` holds the index (into the builder's input sequence) of the
     single primitive of a leaf, -1 for internal nodes.
  5. A node's box contains the boxes of every primitive below it.

The build is top-down: split the current primitive range at the median
centroid along the longest axis of its box, recurse on both halves. Work
items are kept on an explicit stack, so deep trees never hit the Python
recursion limit.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence
import torch

from .. import config
from .bbox import BoundingBox
from .device_utils import resolve_device
from .primitives import Primitive

logger = logging.getLogger(__name__)


@dataclass
class NodeStore:
    """Arena of tree nodes (see module docstring for the layout)."""
    mins: torch.Tensor          # [M, 3]
    maxs: torch.Tensor          # [M, 3]
    left: List[int]             # [M]
    right: List[int]            # [M]
    primitive: List[int]        # [M]

    @classmethod
    def empty(cls, dtype: Optional[torch.dtype] = None, device=None) -> 'NodeStore':
        dtype = dtype or config.DTYPE
        device = resolve_device(device=device)
        return cls(
            mins=torch.empty(0, 3, dtype=dtype, device=device),
            maxs=torch.empty(0, 3, dtype=dtype, device=device),
            left=[],
            right=[],
            primitive=[],
        )

    def __len__(self) -> int:
        return len(self.primitive)

    def is_leaf(self, node: int) -> bool:
        return self.primitive[node] >= 0

    def children(self, node: int) -> List[int]:
        if self.is_leaf(node):
            return []
        return [self.left[node], self.right[node]]

    def box(self, node: int) -> BoundingBox:
        return BoundingBox(self.mins[node], self.maxs[node])

    def depth(self) -> int:
        """Number of levels (0 for an empty store, 1 for a single leaf)."""
        if len(self) == 0:
            return 0
        deepest = 0
        stack = [(0, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            for child in self.children(node):
                stack.append((child, level + 1))
        return deepest

    def leaves(self) -> List[int]:
        """Primitive indices in traversal (left-first) order."""
        order = []
        stack = [0] if len(self) else []
        while stack:
            node = stack.pop()
            if self.is_leaf(node):
                order.append(self.primitive[node])
            else:
                stack.append(self.right[node])
                stack.append(self.left[node])
        return order


def primitive_boxes(primitives: Sequence[Primitive], dtype=None, device=None):
    """
    Stack primitive boxes.

    Returns:
        mins: [n, 3]
        maxs: [n, 3]
    """
    dtype = dtype or config.DTYPE
    device = resolve_device(device=device)
    if len(primitives) == 0:
        empty = torch.empty(0, 3, dtype=dtype, device=device)
        return empty, empty.clone()
    boxes = [p.bbox() for p in primitives]
    mins = torch.stack([b.min for b in boxes]).to(dtype=dtype, device=device)
    maxs = torch.stack([b.max for b in boxes]).to(dtype=dtype, device=device)
    return mins, maxs


def build_node_store(box_mins: torch.Tensor, box_maxs: torch.Tensor) -> NodeStore:
    """
    Median-split build over precomputed primitive boxes.

    Args:
        box_mins: [n, 3] per-primitive box minima
        box_maxs: [n, 3] per-primitive box maxima

    Returns:
        NodeStore with 2n - 1 nodes (empty for n = 0)

    Partition is deterministic: the longest axis breaks ties toward x, and
    the centroid sort is stable, so equal centroids keep input order.
    """
    n = box_mins.shape[0]
    if n == 0:
        return NodeStore.empty(box_mins.dtype, box_mins.device)

    num_nodes = 2 * n - 1
    mins = torch.empty(num_nodes, 3, dtype=box_mins.dtype, device=box_mins.device)
    maxs = torch.empty_like(mins)
    left = [-1] * num_nodes
    right = [-1] * num_nodes
    primitive = [-1] * num_nodes

    centroids = (box_mins + box_maxs) * 0.5
    next_node = 1
    stack = [(torch.arange(n, device=box_mins.device), 0)]
    while stack:
        indices, node = stack.pop()
        node_min = box_mins[indices].min(dim=0).values
        node_max = box_maxs[indices].max(dim=0).values
        mins[node] = node_min
        maxs[node] = node_max

        if indices.shape[0] == 1:
            primitive[node] = int(indices[0])
            continue

        axis = int(torch.argmax(node_max - node_min))
        order = torch.sort(centroids[indices, axis], stable=True).indices
        ordered = indices[order]
        mid = ordered.shape[0] // 2

        left[node], right[node] = next_node, next_node + 1
        next_node += 2
        stack.append((ordered[mid:], right[node]))
        stack.append((ordered[:mid], left[node]))

    return NodeStore(mins=mins, maxs=maxs, left=left, right=right, primitive=primitive)


def build(primitives: Sequence[Primitive], dtype=None, device=None) -> NodeStore:
    """Compute primitive boxes and build the node store."""
    box_mins, box_maxs = primitive_boxes(primitives, dtype=dtype, device=device)
    nodes = build_node_store(box_mins, box_maxs)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("built node store: %d primitives, %d nodes, depth %d",
                     len(primitives), len(nodes), nodes.depth())
    return nodes
