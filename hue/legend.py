from PIL import Image, ImageDraw, ImageFont
import os
from typing import Optional, Sequence

from hue.reporter import PaletteEntry


def _load_font(font_path: Optional[str], font_size: int):
    try:
        if font_path and os.path.isfile(font_path):
            return ImageFont.truetype(font_path, font_size)
    except IOError:
        pass  # fall through to the default font
    try:
        return ImageFont.load_default(size=font_size)
    except TypeError:  # Pillow < 10.1 has no size argument
        return ImageFont.load_default()


def _text_size(font, text: str):
    bbox = font.getbbox(text)
    return bbox[2] - bbox[0], bbox[3] - bbox[1], bbox[0], bbox[1]


def create_legend_image(
    entries: Sequence[PaletteEntry],
    font_path: Optional[str] = None,
    font_size: int = 14,
    swatch_size: int = 80,
    padding: int = 10,
    show_names: bool = True,
):
    """
    Creates a palette legend PIL Image: one swatch per entry, captioned with
    its hex code, percentage and (optionally) name.

    Args:
        entries (Sequence[PaletteEntry]): Palette in display order.
        font_path (str, optional): Path to a TTF font file.
        font_size (int): Caption font size.
        swatch_size (int): Width/height of each color swatch.
        padding (int): Space around elements and between swatches.
        show_names (bool): Add a caption line with the color name.

    Returns:
        PIL.Image.Image: The legend image, or None for an empty palette.
    """
    num_colors = len(entries)
    if num_colors == 0:
        return None

    font = _load_font(font_path, font_size)
    captions = [
        [entry.hex, f"{entry.percentage}%"] + ([entry.name] if show_names else [])
        for entry in entries
    ]
    line_height = max(_text_size(font, line)[1] for lines in captions for line in lines) + 4
    caption_height = line_height * len(captions[0])

    width = (swatch_size * num_colors) + (padding * (num_colors + 1))
    height = swatch_size + caption_height + (2 * padding)

    image = Image.new("RGB", (width, height), color=(255, 255, 255))
    draw = ImageDraw.Draw(image)

    for idx, (entry, lines) in enumerate(zip(entries, captions)):
        x_start = padding + idx * (swatch_size + padding)
        draw.rectangle(
            [x_start, padding, x_start + swatch_size, padding + swatch_size],
            fill=tuple(entry.rgb),
            outline=(0, 0, 0),
        )
        y = padding + swatch_size + 2
        for line in lines:
            text_w, _, x_off, y_off = _text_size(font, line)
            # centre under the swatch
            text_x = x_start + (swatch_size - text_w) / 2.0 - x_off
            draw.text((text_x, y - y_off), line, fill=(0, 0, 0), font=font)
            y += line_height

    return image
