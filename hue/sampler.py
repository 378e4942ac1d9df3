import numbers
from pathlib import Path
from typing import BinaryIO, Tuple, Union

import numpy as np
from PIL import Image

from hue.errors import InvalidParameter

DEFAULT_SAMPLE_SIZE = 50

ImageSource = Union[str, Path, BinaryIO, Image.Image]


def _target_size(size: Union[int, Tuple[int, int]]) -> Tuple[int, int]:
    if isinstance(size, numbers.Integral):
        width = height = size
    else:
        try:
            width, height = size
        except (TypeError, ValueError) as e:
            raise InvalidParameter(f"sample size must be an int or a (width, height) pair, got {size!r}") from e
    if width < 1 or height < 1:
        raise InvalidParameter(f"sample size must be positive, got {size!r}")
    return int(width), int(height)


def load_image(image: ImageSource) -> Image.Image:
    """Open a path or file object, or pass a PIL image through, as RGB."""
    if isinstance(image, Image.Image):
        return image.convert("RGB")
    with Image.open(image) as img:
        return img.convert("RGB")


def sample(image: ImageSource, size: Union[int, Tuple[int, int]] = DEFAULT_SAMPLE_SIZE) -> np.ndarray:
    """
    Downsample an image and return its pixels as normalized RGB points.

    Args:
        image: Path, binary file object, or PIL Image.
        size (int or (w, h)): Fixed sampling resolution. Default 50x50.

    Returns:
        np.ndarray: float64 array of shape (w*h, 3) with values in [0, 1],
                    in row-major pixel order. Alpha is dropped.

    Raises:
        FileNotFoundError: If a path does not exist.
        PIL.UnidentifiedImageError: If the data is not a readable image.
        InvalidParameter: If size is not positive.
    """
    width, height = _target_size(size)
    rgb = load_image(image)
    # Nearest neighbour keeps sampled colors as real pixel values, no blending
    small = rgb.resize((width, height), Image.Resampling.NEAREST)
    pixels = np.asarray(small, dtype=np.float64).reshape(-1, 3)
    return pixels / 255.0
