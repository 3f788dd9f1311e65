"""Tests for Ray class."""

import math

from rayforge.vec3 import Vec3, Point3
from rayforge.ray import Ray


class TestRay:
    """Test Ray class."""

    def test_at_origin(self):
        ray = Ray(Point3(1, 2, 3), Vec3(1, 0, 0))
        assert ray.at(0) == Point3(1, 2, 3)

    def test_at_distance(self):
        ray = Ray(Point3(0, 0, 0), Vec3(0, 0, -2))
        assert ray.at(1.5) == Point3(0, 0, -3)

    def test_inverse_direction(self):
        ray = Ray(Point3(0, 0, 0), Vec3(2, 0, -4))
        assert ray.inv_direction[0] == 0.5
        assert ray.inv_direction[1] == math.inf
        assert ray.inv_direction[2] == -0.25

    def test_negative_zero_direction(self):
        ray = Ray(Point3(0, 0, 0), Vec3(-0.0, 1, 1))
        assert ray.inv_direction[0] == -math.inf
