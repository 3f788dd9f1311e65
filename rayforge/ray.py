"""
Ray class for representing rays in 3D space.

A ray is defined by an origin point and a direction vector.
Ray(t) = origin + t * direction
"""

from __future__ import annotations
import math
from typing import Tuple

from .vec3 import Vec3, Point3


class Ray:
    """A ray with origin and direction.

    The direction does not have to be normalized. The componentwise
    reciprocal of the direction is computed once here so that bounding
    box tests along the ray are multiplication only.
    """

    __slots__ = ('origin', 'direction', 'inv_direction')

    def __init__(self, origin: Point3, direction: Vec3):
        self.origin = origin
        self.direction = direction
        self.inv_direction: Tuple[float, float, float] = tuple(
            1.0 / d if d != 0 else math.copysign(math.inf, d)
            for d in direction
        )

    def at(self, t: float) -> Point3:
        """Get the point along the ray at parameter t."""
        return self.origin + self.direction * t

    def __repr__(self) -> str:
        return f"Ray(origin={self.origin}, direction={self.direction})"
