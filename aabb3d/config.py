"""
Default configuration for aabb3d.

Values are read once at import time. Constructors accept explicit keyword
overrides, so editing DEFAULTS is only needed to change package-wide
behaviour.
"""

from typing import Any, Dict
import torch


DEFAULTS: Dict[str, Any] = {
    "DTYPE": torch.float64,          # scalar type of primitive geometry
    "DEVICE": "cpu",                 # tree tensors live here unless inputs say otherwise
    "GEOMETRIC_EPSILON": 1e-9,       # relative tolerance of kernel predicates
    "UDF_BATCH_SIZE": 4096,          # points per batch in UDFQuery
    "VISIBILITY_OFFSET": 1e-6,       # ray origin offset away from the query point
    "BENCHMARK_SEED": 0,
}

DTYPE = DEFAULTS["DTYPE"]
DEVICE = DEFAULTS["DEVICE"]
GEOMETRIC_EPSILON = DEFAULTS["GEOMETRIC_EPSILON"]
UDF_BATCH_SIZE = DEFAULTS["UDF_BATCH_SIZE"]
VISIBILITY_OFFSET = DEFAULTS["VISIBILITY_OFFSET"]
BENCHMARK_SEED = DEFAULTS["BENCHMARK_SEED"]
