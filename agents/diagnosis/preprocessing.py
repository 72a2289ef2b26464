# server/agents/diagnosis/preprocessing.py
"""
Color-segmentation lesion detection.

Best effort: anything that goes wrong yields None and a warning, never an
exception. The result only adds context to the prompt and the response.
"""
import asyncio
import base64
import binascii
import io
import logging
import time
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError
from scipy import ndimage

from agents.diagnosis.models import Lesion, LesionBox, PreprocessingResult
from core.completion import strip_data_url

logger = logging.getLogger(__name__)

MAX_DIMENSION = 256
CELL_SIZE = 16
CELL_DENSITY_THRESHOLD = 0.15

# PIL HSV channels are all 0-255; hue 50-120 is roughly 70-170 degrees
GREEN_HUE_RANGE = (50, 120)
MIN_SATURATION = 40
MIN_VALUE = 40

SEVERE_AREA_SHARE = 0.10
MODERATE_AREA_SHARE = 0.03

class PreprocessingService:
    """Finds discolored regions on foliage and scores overall leaf health"""

    def __init__(self, cell_size: int = CELL_SIZE, density_threshold: float = CELL_DENSITY_THRESHOLD):
        self.cell_size = cell_size
        self.density_threshold = density_threshold

    async def analyze_async(self, image_ref: str) -> Optional[PreprocessingResult]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.analyze, image_ref)

    def analyze(self, image_ref: str) -> Optional[PreprocessingResult]:
        start_time = time.perf_counter()
        try:
            image = self._decode(image_ref)
        except (binascii.Error, ValueError, UnidentifiedImageError, OSError) as e:
            logger.warning(f"Preprocessing skipped, image could not be decoded: {e}")
            return None

        try:
            foliage, lesion = self._masks(image)
            foliage_pixels = int(foliage.sum())
            if foliage_pixels == 0:
                logger.warning("Preprocessing skipped, no foliage found in image")
                return None

            lesions = self._lesions(lesion)
            health = round(100 * (1 - int(lesion.sum()) / foliage_pixels))
        except Exception as e:
            logger.warning(f"Preprocessing failed: {e}")
            return None

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"Preprocessing found {len(lesions)} lesion(s), health {health} in {elapsed_ms:.1f}ms")

        return PreprocessingResult(
            lesions=lesions,
            overall_health=max(0, min(100, health)),
            method="color_segmentation",
            processing_time_ms=round(elapsed_ms, 2),
        )

    @staticmethod
    def _decode(image_ref: str) -> Image.Image:
        if not image_ref or not image_ref.strip():
            raise ValueError("empty image")
        raw = base64.b64decode(strip_data_url(image_ref))
        image = Image.open(io.BytesIO(raw)).convert("RGB")
        image.thumbnail((MAX_DIMENSION, MAX_DIMENSION))
        return image

    @staticmethod
    def _masks(image: Image.Image) -> Tuple[np.ndarray, np.ndarray]:
        hsv = np.asarray(image.convert("HSV"), dtype=np.uint8)
        hue, saturation, value = hsv[..., 0], hsv[..., 1], hsv[..., 2]

        foliage = (saturation >= MIN_SATURATION) & (value >= MIN_VALUE)
        green = (hue >= GREEN_HUE_RANGE[0]) & (hue <= GREEN_HUE_RANGE[1])
        return foliage, foliage & ~green

    def _lesions(self, lesion_mask: np.ndarray) -> List[Lesion]:
        height, width = lesion_mask.shape
        size = self.cell_size
        rows, cols = -(-height // size), -(-width // size)

        padded = np.zeros((rows * size, cols * size), dtype=np.float64)
        padded[:height, :width] = lesion_mask
        coverage = np.zeros_like(padded)
        coverage[:height, :width] = 1

        counts = padded.reshape(rows, size, cols, size).sum(axis=(1, 3))
        cell_pixels = coverage.reshape(rows, size, cols, size).sum(axis=(1, 3))
        density = counts / np.maximum(cell_pixels, 1)
        active = density >= self.density_threshold

        # default structuring element is 4-connected
        labels, _ = ndimage.label(active)
        lesions = []
        for index, cell_slice in enumerate(ndimage.find_objects(labels), start=1):
            row_slice, col_slice = cell_slice
            member = labels[cell_slice] == index
            x0, x1 = col_slice.start * size, min(col_slice.stop * size, width)
            y0, y1 = row_slice.start * size, min(row_slice.stop * size, height)

            area = float(counts[cell_slice][member].sum()) / (width * height)
            confidence = float(density[cell_slice][member].mean())

            lesions.append(Lesion(
                id=f"lesion_{index}",
                bbox=LesionBox(
                    x=round(x0 / width, 4),
                    y=round(y0 / height, 4),
                    width=round((x1 - x0) / width, 4),
                    height=round((y1 - y0) / height, 4),
                ),
                confidence=round(min(1.0, confidence), 4),
                severity=self._severity(area),
                area=round(area, 4),
            ))
        return lesions

    @staticmethod
    def _severity(area_share: float) -> str:
        if area_share > SEVERE_AREA_SHARE:
            return "severe"
        if area_share > MODERATE_AREA_SHARE:
            return "moderate"
        return "mild"
