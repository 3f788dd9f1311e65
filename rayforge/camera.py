"""
Camera module for generating primary rays.

A pinhole camera positioned with look-from/look-at/up vectors, plus the
helpers that map frame pixels onto normalized image-plane coordinates.
"""

from __future__ import annotations
import math
import random
from functools import cached_property
from typing import Tuple

from .vec3 import Vec3, Point3
from .ray import Ray


class Camera:
    """A pinhole camera with perspective projection."""

    def __init__(
        self,
        look_from: Point3 = Point3(0, 0, 0),
        look_at: Point3 = Point3(0, 0, -1),
        vup: Vec3 = Vec3(0, 1, 0),
        vfov: float = 90.0,
        aspect_ratio: float = 16.0 / 9.0
    ):
        """Create a camera.

        Args:
            look_from: Camera position in world space
            look_at: Point the camera is looking at
            vup: World up vector (usually (0, 1, 0))
            vfov: Vertical field of view in degrees
            aspect_ratio: Width / Height ratio
        """
        self.look_from = look_from
        self.look_at = look_at
        self.vup = vup
        self.vfov = vfov
        self.aspect_ratio = aspect_ratio

    @cached_property
    def _viewport(self) -> Tuple[Vec3, Vec3, Vec3]:
        # Derived on first use; every worker afterwards reads the cached value.
        h = math.tan(math.radians(self.vfov) / 2)
        viewport_height = 2.0 * h
        viewport_width = self.aspect_ratio * viewport_height

        w = (self.look_from - self.look_at).normalize()  # Points backward from camera
        u = self.vup.cross(w).normalize()                # Points right
        v = w.cross(u)                                   # Points up

        horizontal = u * viewport_width
        vertical = v * viewport_height
        lower_left_corner = self.look_from - horizontal / 2 - vertical / 2 - w
        return lower_left_corner, horizontal, vertical

    def get_ray(self, s: float, t: float) -> Ray:
        """Generate a ray for the given UV coordinates on the image plane.

        Args:
            s: Horizontal coordinate [0, 1] (0 = left, 1 = right)
            t: Vertical coordinate [0, 1] (0 = bottom, 1 = top)

        Returns:
            A ray with unit direction from the camera through (s, t)
        """
        lower_left_corner, horizontal, vertical = self._viewport
        direction = lower_left_corner + horizontal * s + vertical * t - self.look_from
        return Ray(self.look_from, direction.normalize())

    def __repr__(self) -> str:
        return f"Camera(look_from={self.look_from}, look_at={self.look_at}, vfov={self.vfov})"


def camera_coordinates_from_pixel(row: int, col: int, width: int, height: int) -> Tuple[float, float]:
    """Image-plane coordinates of a pixel center. Row 0 is the bottom row."""
    return (col + 0.5) / width, (row + 0.5) / height


def jittered_camera_coordinates_from_pixel(
    row: int,
    col: int,
    width: int,
    height: int,
    rng=None
) -> Tuple[float, float]:
    """Image-plane coordinates of a uniformly random point inside a pixel."""
    rng = rng or random
    return (col + rng.random()) / width, (row + rng.random()) / height
