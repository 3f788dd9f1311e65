"""
Bounding Volume Hierarchy (BVH) for accelerating ray-object intersection.

The tree is built once per scene and only traversed afterwards, so any
number of render workers can query it concurrently without locking.
Every interior node has exactly two children; a node built over a single
primitive holds that primitive on both sides.
"""

from __future__ import annotations
import itertools
import logging
import math
import random
from typing import Iterable, Iterator, List, Optional

from .ray import Ray
from .shapes import AABB, HitRecord, Hittable, InvalidGeometryError, T_MIN

logger = logging.getLogger(__name__)


class BVHNode(Hittable):
    """A node in the Bounding Volume Hierarchy tree.

    Attributes:
        id: Identifier unique within the tree (never 0), used to colour
            regions in diagnostic renders
        left, right: Child nodes or primitives
        box: Box enclosing both children
    """

    def __init__(self, node_id: int, left: Hittable, right: Hittable):
        left_box = left.bounding_box()
        right_box = right.bounding_box()
        if left_box.is_degenerate() or right_box.is_degenerate():
            raise InvalidGeometryError(
                f"BVH node {node_id} has a child without a bounding box: {left!r}, {right!r}"
            )

        self.id = node_id
        self.left = left
        self.right = right
        self.box = left_box.surrounding(right_box)

    def hit(self, ray: Ray, t_min: float = T_MIN, t_max: float = math.inf) -> Optional[HitRecord]:
        """Nearest hit among both subtrees.

        Both children are always visited with the full interval; there is
        no front-to-back ordering.
        """
        if not self.box.hit(ray, t_min, t_max):
            return None

        hit_left = self.left.hit(ray, t_min, t_max)
        hit_right = self.right.hit(ray, t_min, t_max)

        if hit_left is not None and not isinstance(self.left, BVHNode):
            hit_left.bvh_node = self
        if hit_right is not None and not isinstance(self.right, BVHNode):
            hit_right.bvh_node = self

        if hit_left is not None and hit_right is not None:
            return hit_left if hit_left.t < hit_right.t else hit_right
        if hit_left is not None:
            return hit_left
        return hit_right

    def bounding_box(self) -> AABB:
        return self.box

    def children(self) -> tuple:
        if self.left is self.right:
            return (self.left,)
        return (self.left, self.right)

    def leaves(self) -> Iterator[Hittable]:
        """Yield every primitive in the subtree, left to right."""
        for child in self.children():
            if isinstance(child, BVHNode):
                yield from child.leaves()
            else:
                yield child

    def depth(self) -> int:
        return 1 + max(
            (child.depth() for child in self.children() if isinstance(child, BVHNode)),
            default=0
        )

    def __repr__(self) -> str:
        return f"BVHNode(id={self.id}, box={self.box})"


def build_bvh(objects: Iterable[Hittable], rng=None) -> BVHNode:
    """Build a BVH over a non-empty collection of hittables.

    Args:
        objects: Primitives to accelerate (a HittableList or any iterable).
            The collection itself is left untouched.
        rng: Source of the per-node split axis; the ``random`` module when
            omitted

    Returns:
        The root node

    Raises:
        InvalidGeometryError: if the collection is empty or a primitive has
            no bounding box
    """
    items = list(objects)
    if not items:
        raise InvalidGeometryError("cannot build a BVH from an empty list")

    ids = itertools.count(1)
    root = _build(items, rng or random, ids)
    logger.debug("Built BVH over %d objects: %d nodes, depth %d",
                 len(items), next(ids) - 1, root.depth())
    return root


def _build(items: List[Hittable], rng, ids: Iterator[int]) -> BVHNode:
    axis = rng.randrange(3)
    node_id = next(ids)

    if len(items) == 1:
        return BVHNode(node_id, items[0], items[0])

    if len(items) == 2:
        first, second = items
        if not first.bounding_box().compare(second.bounding_box(), axis):
            first, second = second, first
        return BVHNode(node_id, _build([first], rng, ids), _build([second], rng, ids))

    ordered = sorted(items, key=lambda obj: _box_min(obj, axis))
    mid = len(ordered) // 2
    left = _build(ordered[:mid], rng, ids)
    right = _build(ordered[mid:], rng, ids)
    return BVHNode(node_id, left, right)


def _box_min(obj: Hittable, axis: int) -> float:
    box = obj.bounding_box()
    if box.is_degenerate():
        raise InvalidGeometryError(f"cannot order primitive without a bounding box: {obj!r}")
    return box.minimum[axis]
