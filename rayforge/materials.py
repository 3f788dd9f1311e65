"""
Materials: how light continues from a surface hit.

Implements:
- Lambertian diffuse
- Metal (mirror reflection with fuzz)
- Dielectric (glass, water - with refraction)

Materials are immutable and may be shared by any number of primitives
and render workers.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING
import math
import random

from .vec3 import Vec3, Color
from .ray import Ray

if TYPE_CHECKING:
    from .shapes import HitRecord


@dataclass(frozen=True)
class ScatterResult:
    """Result of a material scatter operation."""
    scattered_ray: Ray
    attenuation: Color


class Material(ABC):
    """Abstract base class for materials."""

    @abstractmethod
    def scatter(self, ray_in: Ray, rec: HitRecord, rng=None) -> Optional[ScatterResult]:
        """Compute the scattered ray and attenuation.

        Args:
            ray_in: The incoming ray
            rec: The intersection being shaded
            rng: Random source; the ``random`` module when omitted

        Returns:
            ScatterResult if the ray continues, None if it is absorbed
        """


@dataclass(frozen=True)
class Lambertian(Material):
    """Diffuse material with Lambertian (ideal matte) scattering."""
    albedo: Color

    def scatter(self, ray_in: Ray, rec: HitRecord, rng=None) -> Optional[ScatterResult]:
        scatter_direction = rec.normal + Vec3.random_unit_vector(rng)

        # Catch degenerate scatter direction
        if scatter_direction.near_zero():
            scatter_direction = rec.normal

        return ScatterResult(
            scattered_ray=Ray(rec.point, scatter_direction),
            attenuation=self.albedo
        )


@dataclass(frozen=True)
class Metal(Material):
    """Metallic material with specular reflection.

    The fuzzed direction may end up below the surface; such rays are
    traced like any other.
    """
    albedo: Color
    fuzz: float = 0.0

    def __post_init__(self):
        if self.fuzz < 0:
            raise ValueError(f"Metal fuzz must be non-negative, got {self.fuzz}")

    def scatter(self, ray_in: Ray, rec: HitRecord, rng=None) -> Optional[ScatterResult]:
        reflected = ray_in.direction.normalize().reflect(rec.normal)
        direction = reflected + Vec3.random_in_unit_sphere(rng) * self.fuzz

        return ScatterResult(
            scattered_ray=Ray(rec.point, direction),
            attenuation=self.albedo
        )


@dataclass(frozen=True)
class Dielectric(Material):
    """Clear dielectric (glass-like) material. Never absorbs, never tints."""
    refractive_index: float = 1.5

    def __post_init__(self):
        if self.refractive_index <= 1.0:
            raise ValueError(
                f"Dielectric refractive index must be greater than 1, got {self.refractive_index}"
            )

    def scatter(self, ray_in: Ray, rec: HitRecord, rng=None) -> Optional[ScatterResult]:
        rng = rng or random

        # Entering the surface goes from air into the material
        refraction_ratio = 1.0 / self.refractive_index if rec.front_face else self.refractive_index

        unit_direction = ray_in.direction.normalize()
        cos_theta = min(-unit_direction.dot(rec.normal), 1.0)
        sin_theta = math.sqrt(1.0 - cos_theta * cos_theta)

        cannot_refract = refraction_ratio * sin_theta > 1.0

        if cannot_refract or reflectance(cos_theta, refraction_ratio) > rng.random():
            direction = unit_direction.reflect(rec.normal)
        else:
            direction = unit_direction.refract(rec.normal, refraction_ratio)

        return ScatterResult(
            scattered_ray=Ray(rec.point, direction),
            attenuation=Color(1.0, 1.0, 1.0)
        )


def reflectance(cosine: float, ref_idx: float) -> float:
    """Schlick's approximation for Fresnel reflectance."""
    r0 = (1 - ref_idx) / (1 + ref_idx)
    r0 = r0 * r0
    return r0 + (1 - r0) * pow(1 - cosine, 5)
