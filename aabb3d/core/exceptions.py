"""AABB tree exceptions."""


class AABBTreeError(Exception):
    """Base exception for tree construction and queries."""

    pass


class EmptyTreeError(AABBTreeError, ValueError):
    """Operation needs at least one primitive (distance queries, bbox)."""

    pass


class UnknownPrimitiveError(AABBTreeError, KeyError):
    """A hint or accelerator owner refers to an id that is not in the tree."""

    pass


class AcceleratorError(AABBTreeError, RuntimeError):
    """Distance accelerator was already built for this tree."""

    pass


class DegenerateQueryError(AABBTreeError, ValueError):
    """Linear query has a zero direction (e.g. ray with equal endpoints)."""

    pass
