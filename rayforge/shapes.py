"""
Geometric primitives for the ray tracer.

Every scene object implements the Hittable interface: intersect a ray and
report an axis-aligned bounding box.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, TYPE_CHECKING
import math

from .vec3 import Vec3, Point3
from .ray import Ray

if TYPE_CHECKING:
    from .bvh import BVHNode
    from .materials import Material


# Lower bound on hit distance, suppresses self-intersection acne
T_MIN = 1e-4


class InvalidGeometryError(ValueError):
    """Scene geometry violates an invariant of the acceleration structure."""
    pass


class AABB:
    """Axis-Aligned Bounding Box.

    A box with both corners at the origin is the degenerate sentinel that
    stands for "no geometry". It must never be compared or merged.
    """

    __slots__ = ('minimum', 'maximum')

    def __init__(self, minimum: Optional[Point3] = None, maximum: Optional[Point3] = None):
        self.minimum = minimum if minimum is not None else Point3(0, 0, 0)
        self.maximum = maximum if maximum is not None else Point3(0, 0, 0)

    def is_degenerate(self) -> bool:
        return all(c == 0 for c in self.minimum) and all(c == 0 for c in self.maximum)

    def hit(self, ray: Ray, t_min: float = 0.0, t_max: float = math.inf) -> bool:
        """Slab test against the ray's precomputed reciprocal direction.

        A zero direction component gives an infinite reciprocal. The NaN
        produced when the origin also lies on that slab plane fails both
        comparisons below and leaves the interval untouched.
        """
        for axis in range(3):
            inv_d = ray.inv_direction[axis]
            origin = ray.origin[axis]
            t0 = (self.minimum[axis] - origin) * inv_d
            t1 = (self.maximum[axis] - origin) * inv_d
            if inv_d < 0:
                t0, t1 = t1, t0

            if t0 > t_min:
                t_min = t0
            if t1 < t_max:
                t_max = t1

            if t_max <= t_min:
                return False

        return True

    def surrounding(self, other: AABB) -> AABB:
        """Return the smallest box containing both boxes."""
        if self.is_degenerate() or other.is_degenerate():
            raise InvalidGeometryError(f"cannot surround degenerate box: {self!r}, {other!r}")
        return AABB(
            Point3.from_array(_minimum(self.minimum, other.minimum)),
            Point3.from_array(_maximum(self.maximum, other.maximum))
        )

    def compare(self, other: AABB, axis: int) -> bool:
        """Order boxes by their minimum corner along ``axis``."""
        if self.is_degenerate() or other.is_degenerate():
            raise InvalidGeometryError(f"cannot compare degenerate box: {self!r}, {other!r}")
        return self.minimum[axis] < other.minimum[axis]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AABB):
            return NotImplemented
        return self.minimum == other.minimum and self.maximum == other.maximum

    def __repr__(self) -> str:
        return f"AABB(min={self.minimum}, max={self.maximum})"


def _minimum(a: Vec3, b: Vec3):
    return [min(x, y) for x, y in zip(a, b)]


def _maximum(a: Vec3, b: Vec3):
    return [max(x, y) for x, y in zip(a, b)]


@dataclass
class HitRecord:
    """Stores information about a ray-object intersection.

    Attributes:
        point: The intersection point in world space
        normal: Unit surface normal, always facing against the ray
        t: The ray parameter at intersection
        front_face: True if ray hit from outside the object
        material: The material at the hit point
        bvh_node: BVH node owning the primitive that was hit, for diagnostics
    """
    point: Point3
    normal: Vec3
    t: float
    front_face: bool
    material: Optional[Material] = None
    bvh_node: Optional[BVHNode] = None

    def set_face_normal(self, ray: Ray, outward_normal: Vec3) -> None:
        """Set the normal to always point against the ray direction."""
        self.front_face = ray.direction.dot(outward_normal) < 0
        self.normal = outward_normal if self.front_face else -outward_normal


class Hittable(ABC):
    """Abstract base class for all objects that can be hit by rays."""

    @abstractmethod
    def hit(self, ray: Ray, t_min: float = T_MIN, t_max: float = math.inf) -> Optional[HitRecord]:
        """Return the nearest intersection with t in [t_min, t_max], or None."""

    @abstractmethod
    def bounding_box(self) -> AABB:
        """Return the box enclosing the object, or the degenerate sentinel."""


class Sphere(Hittable):
    """A sphere defined by center and radius."""

    def __init__(self, center: Point3, radius: float, material: Optional[Material] = None):
        """Create a sphere.

        Args:
            center: Center point of the sphere
            radius: Radius of the sphere (negative radius flips the normals,
                used for hollow glass)
            material: Material for shading. Spheres without one only
                serve the diagnostic integrators and absorb every path ray.
        """
        self.center = center
        self.radius = radius
        self.material = material
        r_vec = Vec3(abs(radius), abs(radius), abs(radius))
        self.box = AABB(center - r_vec, center + r_vec)

    def hit(self, ray: Ray, t_min: float = T_MIN, t_max: float = math.inf) -> Optional[HitRecord]:
        """Test ray-sphere intersection using the half-b quadratic.

        (P-C)·(P-C) = r² with P = O + tD expands to
        t²(D·D) + 2t(D·(O-C)) + (O-C)·(O-C) - r² = 0.
        """
        oc = ray.origin - self.center
        a = ray.direction.length_squared()
        half_b = oc.dot(ray.direction)
        c = oc.length_squared() - self.radius * self.radius

        discriminant = half_b * half_b - a * c
        if discriminant < 0:
            return None

        sqrtd = math.sqrt(discriminant)

        # Find the nearest root in the acceptable range
        root = (-half_b - sqrtd) / a
        if root < t_min or root > t_max:
            root = (-half_b + sqrtd) / a
            if root < t_min or root > t_max:
                return None

        point = ray.at(root)
        outward_normal = (point - self.center) / self.radius

        hit_record = HitRecord(
            point=point,
            normal=outward_normal,
            t=root,
            front_face=True,
            material=self.material
        )
        hit_record.set_face_normal(ray, outward_normal)

        return hit_record

    def bounding_box(self) -> AABB:
        return self.box

    def __repr__(self) -> str:
        return f"Sphere(center={self.center}, radius={self.radius})"


class HittableList(Hittable):
    """An ordered collection of hittables searched linearly.

    This is the reference path for nearest-hit queries; scenes are
    normally rendered through a BVH built from the same objects.
    """

    def __init__(self, objects: Optional[Iterable[Hittable]] = None):
        self.objects: list[Hittable] = list(objects) if objects is not None else []

    def add(self, obj: Hittable) -> None:
        self.objects.append(obj)

    def hit(self, ray: Ray, t_min: float = T_MIN, t_max: float = math.inf) -> Optional[HitRecord]:
        """Find the closest intersection among all objects."""
        closest_hit: Optional[HitRecord] = None
        closest_t = t_max

        for obj in self.objects:
            hit_record = obj.hit(ray, t_min, closest_t)
            if hit_record is not None:
                closest_hit = hit_record
                closest_t = hit_record.t

        return closest_hit

    def bounding_box(self) -> AABB:
        """Union of all member boxes; degenerate if any member is."""
        if not self.objects:
            return AABB()

        output_box: Optional[AABB] = None
        for obj in self.objects:
            box = obj.bounding_box()
            if box.is_degenerate():
                return AABB()
            output_box = box if output_box is None else output_box.surrounding(box)

        return output_box

    def __len__(self) -> int:
        return len(self.objects)

    def __iter__(self):
        return iter(self.objects)
