"""Tests for the path tracing and diagnostic integrators."""

import pytest
import math
import random

from rayforge.vec3 import Vec3, Point3, Color
from rayforge.ray import Ray
from rayforge.shapes import Sphere, HittableList
from rayforge.materials import Material, Lambertian, Metal, Dielectric
from rayforge.bvh import build_bvh
from rayforge.integrator import (
    ray_color, sky_color, ray_bvh_id, ray_distance,
    bvh_id_to_color, bvh_id_from_color, MAX_DISTANCE
)


class UntouchableWorld:
    """A scene that fails the test when queried."""

    def hit(self, ray, t_min=1e-4, t_max=math.inf):
        raise AssertionError("scene should not be queried")


class Absorbing(Material):
    def scatter(self, ray_in, rec, rng=None):
        return None


def forward_ray():
    return Ray(Point3(0, 0, 0), Vec3(0, 0, -1))


class TestSkyColor:
    """Test the background gradient."""

    def test_straight_up_is_blue(self):
        assert sky_color(Ray(Point3(0, 0, 0), Vec3(0, 1, 0))) == Color(0.5, 0.7, 1.0)

    def test_straight_down_is_white(self):
        assert sky_color(Ray(Point3(0, 0, 0), Vec3(0, -3, 0))) == Color(1, 1, 1)

    def test_horizon_is_halfway(self):
        assert sky_color(forward_ray()) == Color(0.75, 0.85, 1.0)


class TestRayColor:
    """Test the recursive path tracer."""

    def test_exhausted_budget_is_transparent(self):
        color = ray_color(forward_ray(), UntouchableWorld(), max_depth=3, bounce=3)
        assert color.is_transparent()

    def test_zero_depth_is_transparent(self):
        assert ray_color(forward_ray(), UntouchableWorld(), max_depth=0).is_transparent()

    def test_miss_returns_sky(self):
        color = ray_color(forward_ray(), HittableList(), max_depth=5)
        assert color == sky_color(forward_ray())

    def test_surface_without_material_absorbs(self):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0)])
        assert ray_color(forward_ray(), world, max_depth=5).is_transparent()

    def test_bare_surface_behind_path_gives_black(self):
        # The mirror bounces the ray back onto a sphere that has no material
        world = HittableList([
            Sphere(Point3(0, 0, -3), 1.0, Metal(Color(0.5, 0.5, 0.5))),
            Sphere(Point3(0, 0, 3), 1.0),
        ])
        assert ray_color(forward_ray(), world, max_depth=5) == Color(0, 0, 0)

    def test_absorbed_ray_is_transparent(self):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0, Absorbing())])
        assert ray_color(forward_ray(), world, max_depth=5).is_transparent()

    def test_single_bounce_budget_gives_black(self):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0, Lambertian(Color(0.5, 0.5, 0.5)))])
        color = ray_color(forward_ray(), world, max_depth=1, rng=random.Random(1))
        assert color == Color(0, 0, 0)
        assert not color.is_transparent()

    def test_mirror_shows_attenuated_sky(self):
        # Mirror facing the camera reflects straight back into empty sky
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0, Metal(Color(0.5, 0.5, 0.5)))])
        color = ray_color(forward_ray(), world, max_depth=2, rng=random.Random(2))
        assert color == Color(0.5, 0.5, 0.5) * sky_color(Ray(Point3(0, 0, 0), Vec3(0, 0, 1)))

    def test_diffuse_energy_never_exceeds_albedo(self):
        world = HittableList([
            Sphere(Point3(0, 0, -3), 1.0, Lambertian(Color(0.5, 0.5, 0.5))),
            Sphere(Point3(0, -101, -3), 100.0, Lambertian(Color(0.5, 0.5, 0.5))),
        ])
        rng = random.Random(3)
        for _ in range(50):
            color = ray_color(forward_ray(), world, max_depth=10, rng=rng)
            assert all(0.0 <= c <= 0.5 + 1e-9 for c in color)

    def test_glass_passes_light(self):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0, Dielectric(1.5))])
        rng = random.Random(4)
        for _ in range(20):
            color = ray_color(forward_ray(), world, max_depth=10, rng=rng)
            assert not color.is_transparent()
            assert all(0.0 <= c <= 1.0 for c in color)

    def test_works_through_bvh(self):
        spheres = [Sphere(Point3(0, 0, -3), 1.0, Lambertian(Color(0.5, 0.5, 0.5)))]
        bvh = build_bvh(spheres, random.Random(5))
        color = ray_color(forward_ray(), bvh, max_depth=1, rng=random.Random(6))
        assert color == Color(0, 0, 0)


class TestRayBvhId:
    """Test the BVH region view."""

    def test_hit_reports_owning_node(self):
        bvh = build_bvh([Sphere(Point3(0, 0, -3), 1.0)], random.Random(0))
        assert ray_bvh_id(forward_ray(), bvh) == bvh_id_to_color(bvh.id)

    def test_distinct_regions_get_distinct_colors(self):
        near = Sphere(Point3(-2, 0, -3), 1.0)
        far = Sphere(Point3(2, 0, -3), 1.0)
        bvh = build_bvh([near, far], random.Random(0))

        left = ray_bvh_id(Ray(Point3(-2, 0, 0), Vec3(0, 0, -1)), bvh)
        right = ray_bvh_id(Ray(Point3(2, 0, 0), Vec3(0, 0, -1)), bvh)
        assert left != right
        assert not left.is_transparent()
        assert not right.is_transparent()

    def test_miss_is_transparent(self):
        bvh = build_bvh([Sphere(Point3(0, 0, -3), 1.0)], random.Random(0))
        assert ray_bvh_id(Ray(Point3(0, 0, 0), Vec3(0, 0, 1)), bvh).is_transparent()

    def test_plain_list_has_no_regions(self):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0)])
        assert ray_bvh_id(forward_ray(), world).is_transparent()

    def test_id_color_encoding(self):
        assert bvh_id_to_color(1) == Color(1 / 255, 0, 0)
        for node_id in (1, 300, 70000):
            assert bvh_id_from_color(bvh_id_to_color(node_id)) == node_id


class TestRayDistance:
    """Test the depth view."""

    def test_gray_falls_off_with_distance(self):
        world = HittableList([Sphere(Point3(0, 0, -5), 1.0)])
        color = ray_distance(forward_ray(), world)
        assert color.r == pytest.approx(0.96)
        assert color == Color(color.r, color.r, color.r)

    def test_beyond_max_distance_is_transparent(self):
        world = HittableList([Sphere(Point3(0, 0, -(MAX_DISTANCE + 10)), 1.0)])
        assert ray_distance(forward_ray(), world).is_transparent()

    def test_miss_is_transparent(self):
        assert ray_distance(forward_ray(), HittableList()).is_transparent()
