"""
Palette session: the state one user works with between images.

Holds the current image, a processing flag, the current palette and the
palettes saved during the session. Processing an image runs
sampler -> k-means -> reporter; a failed run leaves the previous palette in
place.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from hue import kmeans, reporter, sampler
from hue.reporter import PaletteEntry
from hue.sampler import ImageSource
from hue.settings import ClusterSettings

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SavedPalette:
    id: str
    colors: List[PaletteEntry]
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "colors": [entry.to_dict() for entry in self.colors],
            "timestamp": self.timestamp,
        }


@dataclass
class PaletteSession:
    settings: ClusterSettings = field(default_factory=ClusterSettings)
    clock: Callable[[], int] = _now_ms
    current_image: Optional[ImageSource] = None
    is_processing: bool = False
    colors: List[PaletteEntry] = field(default_factory=list)
    last_result: Optional[kmeans.ClusterResult] = None
    saved_palettes: List[SavedPalette] = field(default_factory=list)

    def process_image(self, image: ImageSource, cancel=None) -> List[PaletteEntry]:
        """
        Extract a palette from `image` and make it the current palette.

        Errors are logged and re-raised; the current palette is only
        replaced on success.
        """
        s = self.settings
        self.current_image = image
        self.is_processing = True
        try:
            points = sampler.sample(image, size=s.sample_size)
            result = kmeans.fit(
                points,
                k=s.num_colors,
                attempts=s.attempts,
                iterations=s.iterations,
                seed=s.seed,
                tol=s.tol,
                n_jobs=s.n_jobs,
                cancel=cancel,
            )
            colors = reporter.describe(result.centroids, counts=result.counts, weighting=s.weighting)
        except Exception as e:
            logger.error("Error processing image %s: %s", image, e)
            raise
        finally:
            self.is_processing = False

        self.colors = colors
        self.last_result = result
        logger.info("Extracted %d colors: %s", len(colors), ", ".join(c.hex for c in colors))
        return colors

    def save_palette(self) -> Optional[SavedPalette]:
        """Snapshot the current palette. Does nothing when there is none."""
        if not self.colors:
            return None
        stamp = self.clock()
        # Ids are millisecond stamps; bump on collision within the same millisecond
        while any(p.id == str(stamp) for p in self.saved_palettes):
            stamp += 1
        palette = SavedPalette(id=str(stamp), colors=list(self.colors), timestamp=stamp)
        self.saved_palettes.append(palette)
        return palette

    def remove_palette(self, palette_id: str) -> bool:
        before = len(self.saved_palettes)
        self.saved_palettes = [p for p in self.saved_palettes if p.id != palette_id]
        return len(self.saved_palettes) != before

    def clear(self):
        """Forget the current image and palette; saved palettes are kept."""
        self.current_image = None
        self.colors = []
        self.last_result = None
