"""
Integrators: resolve a camera ray to a color.

Every integrator has the same signature so a render pass can swap them:

    integrator(ray, world, max_depth, bounce, rng=None) -> Color

``ray_color`` is the path tracer. ``ray_bvh_id`` and ``ray_distance`` are
single-hit diagnostic views of the scene.
"""

from __future__ import annotations

from .vec3 import Color
from .ray import Ray
from .shapes import Hittable

# Beyond this distance ray_distance reports nothing
MAX_DISTANCE = 100.0

_WHITE = Color(1.0, 1.0, 1.0)
_SKY_BLUE = Color(0.5, 0.7, 1.0)


def ray_color(ray: Ray, world: Hittable, max_depth: int, bounce: int = 0, rng=None) -> Color:
    """Trace a light path through the scene.

    Args:
        ray: The ray to trace
        world: The scene, normally a BVH
        max_depth: Bounce budget for the whole path
        bounce: Bounces already taken by this path
        rng: Random source handed to the materials

    Returns:
        The transparent sentinel once the budget is exhausted or the
        surface absorbs the ray (including a surface with no material),
        otherwise the gathered color
    """
    if bounce >= max_depth:
        return Color.transparent()

    rec = world.hit(ray)
    if rec is None:
        return sky_color(ray)

    if rec.material is None:
        return Color.transparent()

    scattered = rec.material.scatter(ray, rec, rng)
    if scattered is None:
        return Color.transparent()

    incoming = ray_color(scattered.scattered_ray, world, max_depth, bounce + 1, rng)
    if incoming.is_transparent():
        # The path never reached a light source
        return Color(0.0, 0.0, 0.0)
    return scattered.attenuation * incoming


def sky_color(ray: Ray) -> Color:
    """Vertical white-to-blue gradient keyed on the ray direction."""
    unit_direction = ray.direction.normalize()
    t = 0.5 * (unit_direction.y + 1.0)
    return _WHITE * (1.0 - t) + _SKY_BLUE * t


def ray_bvh_id(ray: Ray, world: Hittable, max_depth: int = 0, bounce: int = 0, rng=None) -> Color:
    """Color of the BVH node owning the nearest primitive hit."""
    rec = world.hit(ray)
    if rec is None or rec.bvh_node is None:
        return Color.transparent()
    return bvh_id_to_color(rec.bvh_node.id)


def ray_distance(ray: Ray, world: Hittable, max_depth: int = 0, bounce: int = 0, rng=None) -> Color:
    """Grayscale depth view: white at the eye, black at MAX_DISTANCE."""
    rec = world.hit(ray)
    if rec is None or rec.t > MAX_DISTANCE:
        return Color.transparent()
    gray = 1.0 - rec.t / MAX_DISTANCE
    return Color(gray, gray, gray)


def bvh_id_to_color(node_id: int) -> Color:
    """Spread the low 24 bits of a node id over the three channels."""
    return Color(
        (node_id & 0xFF) / 255.0,
        ((node_id >> 8) & 0xFF) / 255.0,
        ((node_id >> 16) & 0xFF) / 255.0
    )


def bvh_id_from_color(color: Color) -> int:
    """Inverse of bvh_id_to_color."""
    r, g, b = (int(round(c * 255.0)) for c in color)
    return r | (g << 8) | (b << 16)
