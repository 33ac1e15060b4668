"""
DistanceAccelerator: k-d tree over sample points tagged with their primitive.

It is never the system of record. A nearest-neighbour lookup gives the
traversal a (point, primitive id) hint whose exact distance is a tight
initial upper bound for the branch and bound.
"""

import logging
import threading
from typing import Hashable, Optional, Sequence
import numpy as np
import torch
from scipy.spatial import cKDTree

from .data_structures import PointAndPrimitiveId

logger = logging.getLogger(__name__)


class DistanceAccelerator:
    """
    Lazily built nearest-neighbour index.

    Args:
        points: [K, 3] sample points (K may be 0)
        owners: K primitive ids, owners[i] is the primitive points[i] lies on
    """

    def __init__(self, points: torch.Tensor, owners: Sequence[Hashable]):
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"points must be shape (K, 3), got {tuple(points.shape)}")
        if points.shape[0] != len(owners):
            raise ValueError(
                f"got {points.shape[0]} points but {len(owners)} owners"
            )
        self.points = points
        self.owners = list(owners)
        self._kd_tree: Optional[cKDTree] = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.owners)

    def empty(self) -> bool:
        return len(self) == 0

    def _index(self) -> cKDTree:
        if self._kd_tree is None:
            with self._lock:
                if self._kd_tree is None:
                    data = self.points.detach().cpu().numpy().astype(np.float64)
                    self._kd_tree = cKDTree(data)
                    logger.debug("built k-d tree over %d points", len(self))
        return self._kd_tree

    def nearest(self, point: torch.Tensor) -> Optional[PointAndPrimitiveId]:
        """Indexed point nearest to `point`, None when the index is empty."""
        if self.empty():
            return None
        query = point.detach().cpu().numpy().astype(np.float64)
        _, i = self._index().query(query, k=1)
        i = int(i)
        return PointAndPrimitiveId(self.points[i], self.owners[i])

    def any_point_and_id(self) -> Optional[PointAndPrimitiveId]:
        """First indexed entry, None when the index is empty."""
        if self.empty():
            return None
        return PointAndPrimitiveId(self.points[0], self.owners[0])
