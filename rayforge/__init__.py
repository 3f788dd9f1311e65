"""
rayforge - A Python Path Tracing Renderer

A Monte-Carlo path tracer with:
- Bounding volume hierarchy acceleration
- Lambertian, metal and dielectric materials
- Diagnostic integrators (BVH regions, distance)
- A multi-threaded per-pixel renderer
- Frames that merge progressive passes and composite layers
"""

__version__ = "0.1.0"

from .vec3 import Vec3, Point3, Color
from .ray import Ray
from .camera import Camera, camera_coordinates_from_pixel, jittered_camera_coordinates_from_pixel
from .shapes import AABB, HitRecord, Hittable, HittableList, InvalidGeometryError, Sphere
from .bvh import BVHNode, build_bvh
from .materials import Material, ScatterResult, Lambertian, Metal, Dielectric
from .integrator import ray_color, ray_bvh_id, ray_distance, sky_color
from .aggregate import avg_samples, edge_samples
from .frame import Frame, DimensionMismatchError, to_edges_frame
from .renderer import Renderer, RenderSettings, Job, JobResult, render_pixel
