import json
import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import svgwrite
from PIL import Image, PngImagePlugin

from hue.reporter import PaletteEntry

logger = logging.getLogger(__name__)

SOFTWARE = "huegen"
METADATA_PREFIX = "huegen:"
HUEGEN_NS_URI = "urn:huegen:metadata"


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with millisecond precision and a 'Z' suffix, e.g. 2026-10-16T08:30:00.125Z."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def default_export_name(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return f"palette-{int(moment.timestamp() * 1000)}.json"


def palette_document(entries: Sequence[PaletteEntry], exported_at: Optional[datetime] = None) -> dict:
    return {
        "colors": [entry.to_dict() for entry in entries],
        "exportedAt": iso_timestamp(exported_at),
    }


def export_palette_json(
    entries: Sequence[PaletteEntry],
    output_path: Union[str, Path],
    exported_at: Optional[datetime] = None,
) -> Path:
    """
    Write the palette export document:
    {"colors": [{"hex", "name", "percentage"}, ...], "exportedAt": "<ISO-8601>"}

    If output_path is a directory, a 'palette-<ms>.json' file is created in it.
    """
    output_path = Path(output_path)
    if output_path.is_dir():
        output_path = output_path / default_export_name(exported_at)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    document = palette_document(entries, exported_at)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
    logger.info("Palette JSON written to %s", output_path)
    return output_path


def _clean_key(key: str) -> str:
    # spaces to underscores, then keep only XML/PNG-safe name characters
    key_clean = re.sub(r"\s+", "_", key)
    key_clean = re.sub(r"[^a-zA-Z0-9_.-]", "", key_clean)
    if not re.match(r"^[a-zA-Z_]", key_clean):
        key_clean = "huegen_" + key_clean
    return key_clean[:70]  # PNG tEXt keywords are limited to 79 bytes


def save_palette_png(
    image_to_save: Image.Image,
    output_path: Union[str, Path],
    command_line_invocation: Optional[str] = None,
    additional_metadata: Optional[Dict[str, str]] = None,
) -> Path:
    """
    Saves a PIL Image object as a PNG file, embedding metadata as tEXt
    chunks under the 'huegen:' prefix.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    png_info = PngImagePlugin.PngInfo()
    png_info.add_text("Software", SOFTWARE)
    if command_line_invocation:
        png_info.add_text(f"{METADATA_PREFIX}command_line", command_line_invocation)
    for key, value in (additional_metadata or {}).items():
        png_info.add_text(f"{METADATA_PREFIX}{_clean_key(key)}", str(value))

    try:
        image_to_save.save(output_path, "PNG", pnginfo=png_info)
    except (OSError, ValueError):
        logger.error("Error saving PNG to %s", output_path.resolve())
        raise
    return output_path


def _metadata_element(command_line_invocation: Optional[str], additional_metadata: Optional[Dict[str, str]]) -> ET.Element:
    ET.register_namespace("huegen", HUEGEN_NS_URI)
    root = ET.Element(f"{{{HUEGEN_NS_URI}}}paletteMetadata")
    software_el = ET.SubElement(root, f"{{{HUEGEN_NS_URI}}}Software")
    software_el.text = SOFTWARE
    if command_line_invocation:
        cli_el = ET.SubElement(root, f"{{{HUEGEN_NS_URI}}}CommandLineInvocation")
        cli_el.text = command_line_invocation
    for key, value in (additional_metadata or {}).items():
        item_el = ET.SubElement(root, f"{{{HUEGEN_NS_URI}}}{_clean_key(key)}")
        item_el.text = str(value)
    return root


def save_palette_svg(
    entries: Sequence[PaletteEntry],
    output_path: Union[str, Path],
    swatch_size: int = 80,
    command_line_invocation: Optional[str] = None,
    additional_metadata: Optional[Dict[str, str]] = None,
) -> Path:
    """
    Write the palette as an SVG strip of swatches, one <rect> per entry
    (id 'swatch-<i>', fill = hex, <title> = "name hex percentage%").
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    width = max(1, swatch_size * len(entries))
    dwg = svgwrite.Drawing(filename=str(output_path), size=(f"{width}px", f"{swatch_size}px"), profile="full")
    dwg.set_metadata(_metadata_element(command_line_invocation, additional_metadata))

    swatches = dwg.g(id="palette-swatches")
    for idx, entry in enumerate(entries):
        rect = dwg.rect(insert=(idx * swatch_size, 0), size=(swatch_size, swatch_size), fill=entry.hex, id=f"swatch-{idx}")
        rect.set_desc(title=f"{entry.name} {entry.hex} {entry.percentage}%")
        swatches.add(rect)
    dwg.add(swatches)

    dwg.save(pretty=True)
    logger.info("Palette SVG written to %s", output_path)
    return output_path
