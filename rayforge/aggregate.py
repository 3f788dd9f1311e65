"""
Sample aggregation: reduce the samples taken for one pixel to its color.

Aggregators take a sequence of colors and return one color:

    aggregate(samples) -> Color
"""

from __future__ import annotations
from collections import Counter
from typing import Sequence

import numpy as np

from .vec3 import Color


def avg_samples(samples: Sequence[Color]) -> Color:
    """Mean of the samples.

    Transparent samples add nothing to the sum but still count in the
    divisor, so pixels where some paths were lost come out darker.
    A pixel where every sample is transparent stays transparent.
    """
    visible = [s.to_array() for s in samples if not s.is_transparent()]
    if not visible:
        return Color.transparent()
    return Color.from_array(np.sum(visible, axis=0) / len(samples))


def edge_samples(samples: Sequence[Color]) -> Color:
    """Most frequent sample color, compared after 8-bit quantization.

    Used with ray_bvh_id to find the dominant BVH region under a pixel.
    """
    keyed = {}
    counts: Counter = Counter()
    for sample in samples:
        if sample.is_transparent():
            continue
        key = color_key(sample)
        keyed.setdefault(key, sample)
        counts[key] += 1

    if not counts:
        return Color.transparent()
    key, _ = counts.most_common(1)[0]
    return keyed[key]


def color_key(color: Color) -> int:
    """Pack a color quantized to 8 bits per channel into one integer."""
    r, g, b = (int(round(min(max(c, 0.0), 1.0) * 255.0)) for c in color)
    return (r << 16) | (g << 8) | b
