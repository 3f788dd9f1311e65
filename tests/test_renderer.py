"""Tests for the multi-threaded renderer."""

import pytest
import random
import threading
import time
import numpy as np

from rayforge.vec3 import Vec3, Point3, Color
from rayforge.ray import Ray
from rayforge.camera import Camera
from rayforge.shapes import Sphere, HittableList
from rayforge.materials import Lambertian
from rayforge.bvh import build_bvh
from rayforge.integrator import ray_bvh_id, sky_color, bvh_id_to_color
from rayforge.aggregate import edge_samples
from rayforge.frame import Frame
from rayforge.renderer import Renderer, RenderSettings, Job, render_pixel


def make_camera(aspect_ratio=1.0):
    return Camera(
        look_from=Point3(0, 0, 0),
        look_at=Point3(0, 0, -1),
        vup=Vec3(0, 1, 0),
        vfov=90,
        aspect_ratio=aspect_ratio
    )


def diffuse_world():
    return HittableList([Sphere(Point3(0, 0, -2), 1.8, Lambertian(Color(0.5, 0.5, 0.5)))])


def transparent_pixels(frame):
    return int(np.all(frame.to_array() == -1.0, axis=-1).sum())


class TestRenderSettings:
    """Test render pass validation."""

    def test_lines_default_to_frame_height(self):
        settings = RenderSettings(frame=Frame(4, 3), camera=make_camera(), world=HittableList())
        assert settings.lines == 3
        assert settings.line_a == 0

    def test_samples_must_be_positive(self):
        with pytest.raises(ValueError):
            RenderSettings(frame=Frame(2, 2), camera=make_camera(), world=HittableList(),
                           samples_per_pixel=0)

    def test_negative_depth_rejected(self):
        with pytest.raises(ValueError):
            RenderSettings(frame=Frame(2, 2), camera=make_camera(), world=HittableList(),
                           max_depth=-1)

    def test_band_must_fit_in_image(self):
        with pytest.raises(ValueError):
            RenderSettings(frame=Frame(2, 2), camera=make_camera(), world=HittableList(),
                           lines=3, line_a=2)


class TestRenderPixel:
    """Test single-pixel sampling."""

    def test_aggregates_configured_sample_count(self):
        calls = []

        def counting_integrator(ray, world, max_depth, bounce, rng=None):
            calls.append(ray)
            return Color(0.5, 0.5, 0.5)

        settings = RenderSettings(
            frame=Frame(2, 2), camera=make_camera(), world=HittableList(),
            samples_per_pixel=7, ray_color=counting_integrator
        )
        result = render_pixel(Job(row=1, column=0, settings=settings, results=None), random.Random(0))

        assert len(calls) == 7
        assert (result.row, result.column) == (1, 0)
        assert result.color == Color(0.5, 0.5, 0.5)

    def test_rays_pass_through_the_pixel(self):
        seen = []

        def recording_integrator(ray, world, max_depth, bounce, rng=None):
            seen.append(ray.direction)
            return Color(0, 0, 0)

        # Top-right pixel of a 2x2 image looks up and to the right
        settings = RenderSettings(
            frame=Frame(2, 2), camera=make_camera(), world=HittableList(),
            samples_per_pixel=20, ray_color=recording_integrator
        )
        render_pixel(Job(row=1, column=1, settings=settings, results=None), random.Random(1))
        assert all(d.x > 0 and d.y > 0 for d in seen)


class TestRenderer:
    """Test the worker pool and render passes."""

    def test_worker_count(self):
        assert Renderer(num_workers=3).num_workers == 3
        assert Renderer().num_workers >= 1

    def test_render_requires_start(self):
        renderer = Renderer(num_workers=1)
        settings = RenderSettings(frame=Frame(2, 2), camera=make_camera(), world=HittableList())
        with pytest.raises(RuntimeError):
            renderer.render(settings)

    def test_start_and_close(self):
        renderer = Renderer(num_workers=2)
        assert not renderer.running
        renderer.start()
        renderer.start()
        assert renderer.running
        assert sum(t.name.startswith('render-worker') for t in threading.enumerate()) >= 2
        renderer.close()
        assert not renderer.running

    def test_lambertian_sphere_darker_than_sky(self):
        frame = Frame(2, 2)
        settings = RenderSettings(
            frame=frame, camera=make_camera(), world=diffuse_world(),
            samples_per_pixel=1, max_depth=1
        )
        with Renderer(num_workers=2, seed=1) as renderer:
            assert renderer.render(settings) == 4

        sky = sky_color(Ray(Point3(0, 0, 0), Vec3(0, 0, -1)))
        for row in range(2):
            for col in range(2):
                pixel = frame.get(row, col)
                assert not pixel.is_transparent()
                assert all(p < s for p, s in zip(pixel, sky))

    def test_every_pixel_written(self):
        frame = Frame(5, 3, transparent_background=True)
        settings = RenderSettings(frame=frame, camera=make_camera(5 / 3), world=HittableList(),
                                  samples_per_pixel=2)
        with Renderer(num_workers=4) as renderer:
            written = renderer.render(settings)

        assert written == 15
        assert transparent_pixels(frame) == 0

    def test_progress_reaches_one(self):
        progress = []
        settings = RenderSettings(frame=Frame(3, 3), camera=make_camera(), world=HittableList(),
                                  samples_per_pixel=1)
        with Renderer(num_workers=2) as renderer:
            renderer.set_progress_callback(progress.append)
            renderer.render(settings)

        assert len(progress) == 9
        assert progress == sorted(progress)
        assert progress[-1] == 1.0

    def test_stop_before_render(self):
        frame = Frame(4, 4, transparent_background=True)
        settings = RenderSettings(frame=frame, camera=make_camera(), world=HittableList(),
                                  samples_per_pixel=1)
        stop = threading.Event()
        stop.set()

        with Renderer(num_workers=2) as renderer:
            assert renderer.render(settings, stop) == 0
        assert transparent_pixels(frame) == 16

    def test_stop_mid_render(self):
        frame = Frame(20, 20, transparent_background=True)
        settings = RenderSettings(frame=frame, camera=make_camera(), world=HittableList(),
                                  samples_per_pixel=1)
        stop = threading.Event()

        with Renderer(num_workers=2) as renderer:
            renderer.set_progress_callback(lambda progress: stop.set())
            written = renderer.render(settings, stop)

        assert 1 <= written < 400
        # Every pixel is either finished or untouched
        assert transparent_pixels(frame) == 400 - written

    def test_frame_band(self):
        # Sky gets bluer, so less red, toward the top of the image
        world = HittableList()
        bottom = Frame(3, 2)
        top = Frame(3, 2)
        with Renderer(num_workers=2) as renderer:
            renderer.render(RenderSettings(frame=bottom, camera=make_camera(), world=world,
                                           samples_per_pixel=4, lines=4, line_a=0))
            renderer.render(RenderSettings(frame=top, camera=make_camera(), world=world,
                                           samples_per_pixel=4, lines=4, line_a=2))

        top_red = max(top.get(row, 1).r for row in range(2))
        bottom_red = min(bottom.get(row, 1).r for row in range(2))
        assert top_red < bottom_red

    def test_seeded_single_worker_is_reproducible(self):
        def render_once():
            frame = Frame(4, 4)
            settings = RenderSettings(frame=frame, camera=make_camera(), world=diffuse_world(),
                                      samples_per_pixel=3, max_depth=5)
            with Renderer(num_workers=1, seed=7) as renderer:
                renderer.render(settings)
            return frame.to_array()

        np.testing.assert_array_equal(render_once(), render_once())

    def test_worker_error_is_raised(self):
        def broken_integrator(ray, world, max_depth, bounce, rng=None):
            raise ZeroDivisionError("broken")

        settings = RenderSettings(frame=Frame(4, 4), camera=make_camera(), world=HittableList(),
                                  samples_per_pixel=1, ray_color=broken_integrator)
        with Renderer(num_workers=2) as renderer:
            with pytest.raises(ZeroDivisionError):
                renderer.render(settings)
            # The pool survives a failed pass
            assert renderer.render(RenderSettings(frame=Frame(2, 2), camera=make_camera(),
                                                  world=HittableList(), samples_per_pixel=1)) == 4

    def test_bvh_region_pass(self):
        sphere = Sphere(Point3(0, 0, -5), 2.0, Lambertian(Color(0.5, 0.5, 0.5)))
        bvh = build_bvh([sphere], random.Random(0))
        frame = Frame(5, 5, transparent_background=True)
        settings = RenderSettings(frame=frame, camera=make_camera(), world=bvh,
                                  samples_per_pixel=4, ray_color=ray_bvh_id, aggregate=edge_samples)

        with Renderer(num_workers=2, seed=3) as renderer:
            renderer.render(settings)

        assert frame.get(2, 2) == bvh_id_to_color(bvh.id)
        assert frame.get(0, 0).is_transparent()
        assert frame.get(4, 4).is_transparent()

    def test_failing_progress_callback_stops_the_pass(self):
        calls = [0]
        calls_lock = threading.Lock()

        def slow_integrator(ray, world, max_depth, bounce, rng=None):
            with calls_lock:
                calls[0] += 1
            time.sleep(0.002)
            return Color(0.5, 0.5, 0.5)

        def failing_progress(progress):
            raise ValueError("progress display failed")

        settings = RenderSettings(frame=Frame(40, 40), camera=make_camera(), world=HittableList(),
                                  samples_per_pixel=1, ray_color=slow_integrator)
        with Renderer(num_workers=2) as renderer:
            renderer.set_progress_callback(failing_progress)
            with pytest.raises(ValueError):
                renderer.render(settings)

            assert not any(t.name == 'render-dispatch' for t in threading.enumerate())
            calls_after_failure = calls[0]
            time.sleep(0.3)
            assert calls[0] == calls_after_failure
            assert calls_after_failure < 1600

            # Nothing from the failed pass is left in the job queue
            renderer.set_progress_callback(None)
            frame = Frame(3, 3, transparent_background=True)
            assert renderer.render(RenderSettings(frame=frame, camera=make_camera(),
                                                  world=HittableList(), samples_per_pixel=1)) == 9
            assert transparent_pixels(frame) == 0
