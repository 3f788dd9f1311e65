"""
Vector3 class for 3D math operations.

One type covers:
- Points in 3D space
- Direction vectors
- Linear RGB colors, including the transparent sentinel used for
  layered compositing
"""

from __future__ import annotations
import math
import random as _random
from typing import Tuple, Union
import numpy as np


class Vec3:
    """A 3D vector backed by a float64 numpy array."""

    __slots__ = ('_data',)

    def __init__(self, x: float = 0.0, y: float = 0.0, z: float = 0.0):
        self._data = np.array([x, y, z], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> Vec3:
        """Wrap an array of three floats without copying."""
        v = cls.__new__(cls)
        v._data = np.asarray(arr, dtype=np.float64)
        return v

    @classmethod
    def transparent(cls) -> Vec3:
        """The "no contribution" color, distinct from black."""
        return cls(-1.0, -1.0, -1.0)

    @property
    def x(self) -> float:
        return float(self._data[0])

    @property
    def y(self) -> float:
        return float(self._data[1])

    @property
    def z(self) -> float:
        return float(self._data[2])

    # Color channel aliases
    @property
    def r(self) -> float:
        return self.x

    @property
    def g(self) -> float:
        return self.y

    @property
    def b(self) -> float:
        return self.z

    def __repr__(self) -> str:
        return f"Vec3({self.x:.4f}, {self.y:.4f}, {self.z:.4f})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vec3):
            return NotImplemented
        return bool(np.allclose(self._data, other._data))

    def __hash__(self) -> int:
        return hash(tuple(self._data))

    def __iter__(self):
        return (float(c) for c in self._data)

    def __neg__(self) -> Vec3:
        return Vec3.from_array(-self._data)

    def __add__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data + other._data)
        return Vec3.from_array(self._data + other)

    def __radd__(self, other: float) -> Vec3:
        return Vec3.from_array(other + self._data)

    def __sub__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data - other._data)
        return Vec3.from_array(self._data - other)

    def __rsub__(self, other: float) -> Vec3:
        return Vec3.from_array(other - self._data)

    def __mul__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data * other._data)
        return Vec3.from_array(self._data * other)

    def __rmul__(self, other: float) -> Vec3:
        return Vec3.from_array(other * self._data)

    def __truediv__(self, other: Union[Vec3, float]) -> Vec3:
        if isinstance(other, Vec3):
            return Vec3.from_array(self._data / other._data)
        return Vec3.from_array(self._data / other)

    def __getitem__(self, index: int) -> float:
        return float(self._data[index])

    def length(self) -> float:
        return math.sqrt(self.length_squared())

    def length_squared(self) -> float:
        return float(np.dot(self._data, self._data))

    def normalize(self) -> Vec3:
        """Return a unit vector in the same direction.

        The zero vector has no direction and is returned unchanged.
        """
        length = self.length()
        if length == 0:
            return Vec3.from_array(self._data.copy())
        return Vec3.from_array(self._data / length)

    def dot(self, other: Vec3) -> float:
        return float(np.dot(self._data, other._data))

    def cross(self, other: Vec3) -> Vec3:
        return Vec3.from_array(np.cross(self._data, other._data))

    def reflect(self, normal: Vec3) -> Vec3:
        """Mirror this vector about the given unit normal."""
        return self - normal * (2 * self.dot(normal))

    def refract(self, normal: Vec3, eta_ratio: float) -> Vec3:
        """Refract this unit vector through a surface (Snell's law).

        Args:
            normal: Unit surface normal facing against this vector
            eta_ratio: Ratio of refractive indices (n1/n2)

        Callers check for total internal reflection before refracting.
        """
        cos_theta = min(-self.dot(normal), 1.0)
        r_out_perp = (self + normal * cos_theta) * eta_ratio
        r_out_parallel = normal * -math.sqrt(abs(1.0 - r_out_perp.length_squared()))
        return r_out_perp + r_out_parallel

    def near_zero(self, epsilon: float = 1e-8) -> bool:
        """Check if vector is close to zero in all dimensions."""
        return bool(np.all(np.abs(self._data) < epsilon))

    def to_array(self) -> np.ndarray:
        """Return the underlying numpy array (copy)."""
        return self._data.copy()

    # Color operations

    def is_transparent(self) -> bool:
        return bool(np.all(self._data == -1.0))

    def to_rgba(self) -> Tuple[int, int, int, int]:
        """Map a linear color to 8-bit display RGBA.

        Applies a square-root gamma, clamps to [0, 0.999] and scales by 256.
        The transparent sentinel gets zero alpha.
        """
        if self.is_transparent():
            return (0, 0, 0, 0)
        channels = 256 * np.clip(np.sqrt(np.maximum(self._data, 0.0)), 0.0, 0.999)
        r, g, b = (int(c) for c in channels)
        return (r, g, b, 255)

    def blend(self, other: Vec3, alpha_self: float, alpha_other: float) -> Vec3:
        """Composite this color over ``other`` (source-over)."""
        if self.is_transparent():
            return other
        if other.is_transparent():
            return self

        alpha = alpha_self + alpha_other * (1.0 - alpha_self)
        if alpha == 0:
            return Vec3.transparent()
        return (self * alpha_self + other * (alpha_other * (1.0 - alpha_self))) / alpha

    @staticmethod
    def random(min_val: float = 0.0, max_val: float = 1.0, rng=None) -> Vec3:
        """Generate a random vector with components in [min_val, max_val)."""
        rng = rng or _random
        return Vec3(
            rng.uniform(min_val, max_val),
            rng.uniform(min_val, max_val),
            rng.uniform(min_val, max_val)
        )

    @staticmethod
    def random_in_unit_sphere(rng=None) -> Vec3:
        """Generate a random point inside the unit sphere (rejection sampling)."""
        while True:
            p = Vec3.random(-1, 1, rng)
            if p.length_squared() < 1:
                return p

    @staticmethod
    def random_unit_vector(rng=None) -> Vec3:
        """Generate a random unit vector (uniform on sphere surface)."""
        return Vec3.random_in_unit_sphere(rng).normalize()


# Convenience type aliases
Point3 = Vec3
Color = Vec3
