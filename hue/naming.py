from functools import lru_cache
from typing import Sequence, Tuple

import numpy as np
import webcolors

NAME_SPEC = "css3"


@lru_cache(maxsize=1)
def _name_table() -> Tuple[Tuple[str, ...], np.ndarray]:
    names = tuple(sorted(webcolors.names(spec=NAME_SPEC)))
    rgb = np.array([tuple(webcolors.name_to_rgb(name, spec=NAME_SPEC)) for name in names], dtype=np.int64)
    return names, rgb


def nearest_color_name(rgb: Sequence[int]) -> str:
    """
    Closest CSS3 color name for an 8-bit RGB triple, by squared RGB distance.

    Ties go to the alphabetically first name.
    """
    names, table = _name_table()
    target = np.asarray([int(c) for c in rgb], dtype=np.int64)
    d2 = ((table - target) ** 2).sum(axis=1)
    return names[int(d2.argmin())]


def display_name(rgb: Sequence[int]) -> str:
    return nearest_color_name(rgb).capitalize()
