import math
from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from hue.errors import InvalidParameter
from hue.naming import display_name

WEIGHTINGS = ("equal", "population")


def round_half_up(value: float) -> int:
    # Python's round() is half-to-even; halves must round up (127.5 -> 128, 12.5 -> 13)
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class PaletteEntry:
    hex: str
    name: str
    percentage: int
    rgb: Tuple[int, int, int]

    def to_dict(self) -> dict:
        """Exported form: hex, name and percentage only."""
        data = asdict(self)
        data.pop("rgb")
        return data


def to_rgb8(color: Sequence[float]) -> Tuple[int, int, int]:
    """Round each [0, 1] channel to the nearest of 256 levels."""
    r, g, b = (min(255, max(0, round_half_up(float(c) * 255.0))) for c in color)
    return r, g, b


def rgb_to_hex(color: Sequence[float]) -> str:
    """[0, 1] RGB triple to lowercase, zero-padded '#rrggbb'."""
    r, g, b = to_rgb8(color)
    return f"#{r:02x}{g:02x}{b:02x}"


def _percentages(k: int, counts: Optional[Sequence[int]], weighting: str) -> List[int]:
    if weighting == "equal":
        return [round_half_up(100 / k)] * k
    if weighting == "population":
        if counts is None or len(counts) != k:
            raise InvalidParameter("population weighting needs one count per centroid")
        total = int(np.sum(counts))
        if total <= 0:
            raise InvalidParameter("population weighting needs at least one counted point")
        return [round_half_up(100 * int(c) / total) for c in counts]
    raise InvalidParameter(f"unknown weighting {weighting!r}, expected one of {', '.join(WEIGHTINGS)}")


def describe(
    centroids: Sequence[Sequence[float]],
    counts: Optional[Sequence[int]] = None,
    weighting: str = "equal",
) -> List[PaletteEntry]:
    """
    Turn cluster centroids into display entries, keeping centroid order.

    Args:
        centroids: (k, 3) floats in [0, 1].
        counts: Points per cluster, required for "population" weighting.
        weighting (str): "equal" gives every entry 100 / k, rounded;
                         "population" uses each cluster's share of the points.

    Returns:
        List[PaletteEntry]
    """
    k = len(centroids)
    if k == 0:
        return []
    entries = []
    for color, pct in zip(centroids, _percentages(k, counts, weighting)):
        rgb = to_rgb8(color)
        entries.append(PaletteEntry(hex=rgb_to_hex(color), name=display_name(rgb), percentage=pct, rgb=rgb))
    return entries
