#!/usr/bin/env python3
"""
rayforge - A Python Path Tracing Renderer

Main entry point for rendering the demo scene.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from rayforge.vec3 import Vec3, Color, Point3
from rayforge.camera import Camera, camera_coordinates_from_pixel
from rayforge.shapes import Sphere, HittableList, InvalidGeometryError
from rayforge.materials import Lambertian, Metal, Dielectric
from rayforge.bvh import build_bvh
from rayforge.integrator import ray_color, ray_bvh_id
from rayforge.aggregate import avg_samples, edge_samples
from rayforge.frame import Frame, to_edges_frame
from rayforge.renderer import Renderer, RenderSettings


def create_demo_scene() -> HittableList:
    """Ground, a blue diffuse sphere, a hollow glass sphere and a gold one."""
    world = HittableList()

    world.add(Sphere(Point3(0, -100.5, -1), 100, Lambertian(Color(0.8, 0.8, 0.0))))
    world.add(Sphere(Point3(0, 0, -1), 0.5, Lambertian(Color(0.1, 0.2, 0.5))))

    # Negative radius flips the normals: a thin glass shell
    glass = Dielectric(1.5)
    world.add(Sphere(Point3(-1, 0, -1), 0.5, glass))
    world.add(Sphere(Point3(-1, 0, -1), -0.48, glass))

    world.add(Sphere(Point3(1, 0, -1), 0.5, Metal(Color(0.8, 0.6, 0.2), 0.0)))

    return world


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='rayforge - A Python Path Tracing Renderer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python main.py --output render.png
  python main.py --width 800 --samples 200 --threads 8 --output hd_render.png
  python main.py --edges --output regions.png
        '''
    )

    parser.add_argument('--width', type=int, default=400, help='Image width (default: 400)')
    parser.add_argument('--aspect-ratio', type=float, default=16.0 / 9.0, help='Width / height (default: 16/9)')
    parser.add_argument('--samples', type=int, default=50, help='Samples per pixel (default: 50)')
    parser.add_argument('--depth', type=int, default=50, help='Max ray depth (default: 50)')
    parser.add_argument('--threads', type=int, default=0, help='Number of worker threads (0=auto)')
    parser.add_argument('--seed', type=int, default=None, help='Seed for the BVH and worker generators')
    parser.add_argument('--edges', action='store_true',
                        help='Overlay the outline of the BVH region under the image center')
    parser.add_argument('--output', type=str, default='output/render.png', help='Output filename')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    width = args.width
    height = int(width / args.aspect_ratio)

    print("=" * 60)
    print("rayforge Path Tracer")
    print("=" * 60)
    print(f"  Resolution: {width}x{height}")
    print(f"  Samples: {args.samples}")
    print(f"  Max Depth: {args.depth}")

    world = create_demo_scene()
    print(f"  Objects in scene: {len(world)}")

    try:
        bvh = build_bvh(world)
    except InvalidGeometryError as exc:
        print(f"Invalid scene: {exc}", file=sys.stderr)
        return 1

    camera = Camera(
        look_from=Point3(-2, 2, 1),
        look_at=Point3(0, 0, -1),
        vup=Vec3(0, 1, 0),
        vfov=90,
        aspect_ratio=args.aspect_ratio
    )

    frame = Frame(width, height)

    last_progress = [0]

    def progress_callback(progress: float):
        pct = int(progress * 100)
        if pct > last_progress[0]:
            last_progress[0] = pct
            bar_len = 40
            filled = int(bar_len * progress)
            bar = '█' * filled + '░' * (bar_len - filled)
            print(f'\rRendering: [{bar}] {pct}%', end='', flush=True)

    with Renderer(num_workers=args.threads, seed=args.seed) as renderer:
        print(f"  Threads: {renderer.num_workers}")
        renderer.set_progress_callback(progress_callback)

        print("\nRendering...")
        start_time = time.time()
        renderer.render(RenderSettings(
            frame=frame,
            camera=camera,
            world=bvh,
            samples_per_pixel=args.samples,
            max_depth=args.depth,
            ray_color=ray_color,
            aggregate=avg_samples
        ))
        elapsed = time.time() - start_time
        print(f"\nRender completed in {elapsed:.2f} seconds")

        if args.edges:
            frame = overlay_center_region(renderer, frame, bvh, camera)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    print(f"\nSaving to: {args.output}")
    frame.save(output_path)

    print("\nDone!")
    return 0


def overlay_center_region(renderer: Renderer, frame: Frame, bvh, camera: Camera) -> Frame:
    """Outline, in red, the BVH leaf region hit through the image center."""
    u, v = camera_coordinates_from_pixel(frame.height // 2, frame.width // 2, frame.width, frame.height)
    rec = bvh.hit(camera.get_ray(u, v))
    if rec is None or rec.bvh_node is None:
        print("Nothing under the image center, skipping edge overlay")
        return frame

    region = build_bvh([rec.bvh_node.left])
    regions = Frame(frame.width, frame.height, transparent_background=True)
    renderer.set_progress_callback(None)
    renderer.render(RenderSettings(
        frame=regions,
        camera=camera,
        world=region,
        samples_per_pixel=10,
        ray_color=ray_bvh_id,
        aggregate=edge_samples
    ))

    edges = to_edges_frame(regions, Color(1.0, 0.0, 0.0))
    edges.blend(frame, 1.0, 1.0)
    return edges


if __name__ == '__main__':
    sys.exit(main())
