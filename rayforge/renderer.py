"""
Renderer module - drives the integrator over a frame.

A Renderer owns a fixed pool of long-lived worker threads fed from one
bounded job queue. Each job is one pixel: the worker draws the configured
number of jittered samples, reduces them with the configured aggregator
and hands the color back to the render call that issued the job, which is
the only place the frame is written.
"""

from __future__ import annotations
import logging
import os
import queue
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .vec3 import Color
from .ray import Ray
from .camera import Camera, jittered_camera_coordinates_from_pixel
from .shapes import Hittable
from .frame import Frame
from .integrator import ray_color
from .aggregate import avg_samples

logger = logging.getLogger(__name__)

RayColorFunc = Callable[..., Color]
AggregateFunc = Callable[[Sequence[Color]], Color]

# How often blocked loops wake up to look at the stop signal
_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class RenderSettings:
    """Everything the workers need for one render pass.

    Attributes:
        frame: Target frame, written only by the render call
        camera: Camera generating primary rays
        world: Scene root, normally a BVH
        samples_per_pixel: Samples drawn per pixel
        max_depth: Bounce budget handed to the integrator
        ray_color: Integrator (ray_color, ray_bvh_id, ray_distance, ...)
        aggregate: Sample aggregator (avg_samples, edge_samples, ...)
        lines: Height of the whole image when the frame only covers a band
            of rows; defaults to the frame height
        line_a: First image row covered by frame row 0
    """
    frame: Frame
    camera: Camera
    world: Hittable
    samples_per_pixel: int = 100
    max_depth: int = 50
    ray_color: RayColorFunc = ray_color
    aggregate: AggregateFunc = avg_samples
    lines: Optional[int] = None
    line_a: int = 0

    def __post_init__(self):
        if self.samples_per_pixel < 1:
            raise ValueError(f"samples_per_pixel must be at least 1, got {self.samples_per_pixel}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")
        if self.lines is None:
            object.__setattr__(self, 'lines', self.frame.height)
        if self.line_a < 0 or self.line_a + self.frame.height > self.lines:
            raise ValueError(
                f"rows {self.line_a}..{self.line_a + self.frame.height} "
                f"do not fit in an image of {self.lines} lines"
            )


@dataclass(frozen=True)
class JobResult:
    row: int
    column: int
    color: Color


@dataclass(frozen=True)
class Job:
    """One pixel to render; the result goes to the issuing render call."""
    row: int
    column: int
    settings: RenderSettings
    results: queue.Queue


class Renderer:
    """Fixed pool of render workers.

    Usage:
        with Renderer(num_workers=8) as renderer:
            renderer.render(settings)
    """

    def __init__(self, num_workers: int = 0, queue_size: int = 0, seed: Optional[int] = None):
        """Create a renderer. Workers are not running until start().

        Args:
            num_workers: Worker threads (0 = auto-detect)
            queue_size: Bound of the job queue (0 = one slot per worker)
            seed: Seeds each worker's random generator with seed + index;
                unseeded generators when None
        """
        self.num_workers = num_workers or os.cpu_count() or 4
        self.seed = seed
        self._jobs: queue.Queue = queue.Queue(maxsize=queue_size or self.num_workers)
        self._shutdown = threading.Event()
        self._workers: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._progress_callback: Optional[Callable[[float], None]] = None

    def set_progress_callback(self, callback: Callable[[float], None]) -> None:
        """Set a callback receiving the written fraction (0.0 to 1.0) of a pass."""
        self._progress_callback = callback

    @property
    def running(self) -> bool:
        return bool(self._workers) and not self._shutdown.is_set()

    def start(self) -> None:
        """Launch the worker pool. Calling it again is a no-op."""
        with self._lock:
            if self._workers:
                return
            self._shutdown.clear()
            for index in range(self.num_workers):
                rng = random.Random(None if self.seed is None else self.seed + index)
                worker = threading.Thread(
                    target=self._work,
                    args=(rng,),
                    name=f"render-worker-{index}",
                    daemon=True
                )
                worker.start()
                self._workers.append(worker)
        logger.debug("Started %d render workers", self.num_workers)

    def close(self) -> None:
        """Stop the worker pool and wait for the workers to exit."""
        with self._lock:
            self._shutdown.set()
            workers, self._workers = self._workers, []
        for worker in workers:
            worker.join()
        logger.debug("Stopped %d render workers", len(workers))

    def __enter__(self) -> Renderer:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def render(self, settings: RenderSettings, stop: Optional[threading.Event] = None) -> int:
        """Render every pixel of ``settings.frame``.

        Blocks until each pixel has been written, or until ``stop`` is set
        and every job already handed to the workers has come back. Results
        that arrive after the stop are still written, so each pixel either
        holds its final color or was never started.

        Args:
            settings: The render pass
            stop: Optional cancellation signal

        Returns:
            Number of pixels written

        Raises:
            RuntimeError: if the worker pool is not running

        An exception from a worker or from the progress callback stops the
        dispatcher and is re-raised once the jobs already handed out have
        come back, so the next pass starts with an empty job queue.
        """
        if not self.running:
            raise RuntimeError("renderer is not started")

        stop = stop or threading.Event()
        failed = threading.Event()
        frame = settings.frame
        total = frame.width * frame.height
        results: queue.Queue = queue.Queue()
        sent = [0]

        def halted() -> bool:
            return stop.is_set() or failed.is_set()

        def dispatch() -> None:
            for col in range(frame.width):
                for row in range(frame.height):
                    job = Job(row=row, column=col, settings=settings, results=results)
                    if not self._put(job, halted):
                        return
                    sent[0] += 1

        logger.info("Rendering %dx%d pixels, %d samples each, on %d workers",
                    frame.width, frame.height, settings.samples_per_pixel, self.num_workers)
        start_time = time.perf_counter()

        dispatcher = threading.Thread(target=dispatch, name="render-dispatch", daemon=True)
        dispatcher.start()

        received = written = 0
        error: Optional[Exception] = None
        try:
            while received < total and not halted():
                try:
                    result = results.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    self._check_open()
                    continue
                received += 1
                if isinstance(result, Exception):
                    error = error or result
                    failed.set()
                    continue
                written += 1
                self._write(frame, result, written, total)

            # Let the dispatcher quit, then collect whatever is still in flight
            dispatcher.join()
            while received < sent[0]:
                result = self._get(results)
                received += 1
                if isinstance(result, Exception):
                    error = error or result
                    continue
                written += 1
                self._write(frame, result, written, total)
        except BaseException:
            # No more jobs for this pass; wait out the ones the workers hold
            failed.set()
            dispatcher.join()
            self._discard(results, sent[0] - received)
            raise

        if error is not None:
            raise error
        if written < total:
            logger.warning("Render stopped early: %d of %d pixels written", written, total)
        else:
            logger.info("Rendered %d pixels in %.2fs", total, time.perf_counter() - start_time)
        return written

    def _put(self, job: Job, halted: Callable[[], bool]) -> bool:
        while not halted():
            self._check_open()
            try:
                self._jobs.put(job, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _get(self, results: queue.Queue):
        while True:
            self._check_open()
            try:
                return results.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue

    def _discard(self, results: queue.Queue, pending: int) -> None:
        while pending > 0 and not self._shutdown.is_set():
            try:
                results.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            pending -= 1

    def _check_open(self) -> None:
        if self._shutdown.is_set():
            raise RuntimeError("renderer was closed during a render")

    def _write(self, frame: Frame, result: JobResult, written: int, total: int) -> None:
        frame.set(result.row, result.column, result.color)
        if self._progress_callback:
            self._progress_callback(written / total)

    def _work(self, rng: random.Random) -> None:
        while not self._shutdown.is_set():
            try:
                job = self._jobs.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                result = render_pixel(job, rng)
            except Exception as exc:
                # Handed back to the render call, which re-raises it
                logger.exception("Render job at row %d, column %d failed", job.row, job.column)
                result = exc
            job.results.put(result)


def render_pixel(job: Job, rng=None) -> JobResult:
    """Sample one pixel and reduce the samples to its color."""
    settings = job.settings
    image_row = settings.line_a + job.row

    samples = []
    for _ in range(settings.samples_per_pixel):
        u, v = jittered_camera_coordinates_from_pixel(
            image_row, job.column, settings.frame.width, settings.lines, rng
        )
        ray: Ray = settings.camera.get_ray(u, v)
        samples.append(settings.ray_color(ray, settings.world, settings.max_depth, 0, rng))

    return JobResult(row=job.row, column=job.column, color=settings.aggregate(samples))
