"""
Frame: the output raster of a render pass.

The grid is stored as a (height, width, 3) float64 array of linear
colors. Row 0 is the bottom row of the image; conversion to an image
flips it. Pixels may hold the transparent sentinel (-1, -1, -1) so that
partial or diagnostic renders can be layered over each other.
"""

from __future__ import annotations
import io
import logging
import threading
from contextlib import ExitStack
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from .vec3 import Color

logger = logging.getLogger(__name__)

TRANSPARENT = -1.0


class DimensionMismatchError(ValueError):
    """Two frames being combined have different sizes."""
    pass


class Frame:
    """Thread-safe 2D grid of colors.

    A single lock guards the whole grid; every access holds it.
    """

    def __init__(self, width: int, height: int, transparent_background: bool = False):
        """Create a frame.

        Args:
            width: Number of columns
            height: Number of rows
            transparent_background: Start every pixel as the transparent
                sentinel instead of black, so pixels a stopped render never
                reached can be told apart
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Frame dimensions must be positive, got {width}x{height}")

        fill = TRANSPARENT if transparent_background else 0.0
        self._content = np.full((height, width, 3), fill, dtype=np.float64)
        self._lock = threading.Lock()
        self.samples = 0

    @property
    def width(self) -> int:
        return self._content.shape[1]

    @property
    def height(self) -> int:
        return self._content.shape[0]

    def set(self, row: int, col: int, color: Color) -> None:
        with self._lock:
            self._content[row, col] = color.to_array()

    def get(self, row: int, col: int) -> Color:
        with self._lock:
            return Color.from_array(self._content[row, col].copy())

    def to_array(self) -> np.ndarray:
        """Snapshot of the raw color grid."""
        with self._lock:
            return self._content.copy()

    def avg(self, other: Frame) -> None:
        """Merge another render pass of the same view into this frame.

        Each side is weighted by its accumulated sample count plus one, so
        two fresh frames count equally. Where one side is transparent the
        other side wins.

        Raises:
            DimensionMismatchError: if the frames differ in size
        """
        self._check_dimensions(other)

        with self._locked(other):
            mine, theirs = self._content, other._content
            w_mine = self.samples + 1
            w_theirs = other.samples + 1
            mixed = (mine * w_mine + theirs * w_theirs) / (w_mine + w_theirs)

            self._content = np.where(
                _transparent_mask(mine)[..., None], theirs,
                np.where(_transparent_mask(theirs)[..., None], mine, mixed)
            )
            self.samples += other.samples + 1

        logger.debug("Averaged frames, accumulated samples now %d", self.samples)

    def blend(self, other: Frame, alpha_self: float, alpha_other: float) -> None:
        """Composite this frame over ``other``, pixel by pixel.

        Follows Color.blend: a transparent pixel on either side yields the
        other side's pixel unchanged.

        Raises:
            DimensionMismatchError: if the frames differ in size
        """
        self._check_dimensions(other)

        alpha = alpha_self + alpha_other * (1.0 - alpha_self)

        with self._locked(other):
            front, back = self._content, other._content
            if alpha == 0:
                mixed = np.full_like(front, TRANSPARENT)
            else:
                mixed = (front * alpha_self + back * (alpha_other * (1.0 - alpha_self))) / alpha

            self._content = np.where(
                _transparent_mask(front)[..., None], back,
                np.where(_transparent_mask(back)[..., None], front, mixed)
            )

    def to_rgba_array(self) -> np.ndarray:
        """Convert to an 8-bit RGBA image array, top row first.

        Same mapping as Color.to_rgba: square-root gamma, clamp to
        [0, 0.999], scale by 256, zero alpha for transparent pixels.
        """
        content = self.to_array()
        transparent = _transparent_mask(content)

        rgb = 256 * np.clip(np.sqrt(np.maximum(content, 0.0)), 0.0, 0.999)
        rgba = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        rgba[..., :3] = rgb.astype(np.uint8)
        rgba[..., 3] = 255
        rgba[transparent] = 0
        return np.flipud(rgba)

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.to_rgba_array()))

    def save(self, path: Union[str, Path]) -> None:
        """Save to an image file; the extension selects the format."""
        self.to_image().save(path)
        logger.info("Saved %dx%d frame to %s", self.width, self.height, path)

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.to_image().save(buffer, format='PNG')
        return buffer.getvalue()

    def _check_dimensions(self, other: Frame) -> None:
        if self.width != other.width or self.height != other.height:
            raise DimensionMismatchError(
                f"frame is {self.width}x{self.height}, other is {other.width}x{other.height}"
            )

    def _locked(self, other: Frame) -> ExitStack:
        # Fixed acquisition order so two frames merging into each other
        # from different threads cannot deadlock.
        stack = ExitStack()
        for frame in sorted({id(self): self, id(other): other}.values(), key=id):
            stack.enter_context(frame._lock)
        return stack

    def __repr__(self) -> str:
        return f"Frame({self.width}x{self.height}, samples={self.samples})"


def to_edges_frame(frame: Frame, edge_color: Color) -> Frame:
    """Outline the regions of a frame.

    A visible pixel whose quantized color differs from its right or upper
    neighbour becomes ``edge_color``; every other pixel is transparent.
    Meant for frames rendered with ray_bvh_id and edge_samples, where each
    flat color is one BVH region.
    """
    content = frame.to_array()
    transparent = _transparent_mask(content)

    # Same quantization as aggregate.color_key
    quantized = np.rint(np.clip(content, 0.0, 1.0) * 255.0).astype(np.int64)
    keys = (quantized[..., 0] << 16) | (quantized[..., 1] << 8) | quantized[..., 2]
    keys[transparent] = -1

    edges = np.zeros_like(transparent)
    edges[:, :-1] |= keys[:, :-1] != keys[:, 1:]
    edges[:-1, :] |= keys[:-1, :] != keys[1:, :]
    edges &= ~transparent

    result = Frame(frame.width, frame.height, transparent_background=True)
    result._content[edges] = edge_color.to_array()
    return result


def _transparent_mask(content: np.ndarray) -> np.ndarray:
    return np.all(content == TRANSPARENT, axis=-1)
