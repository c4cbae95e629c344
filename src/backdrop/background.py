from __future__ import annotations
import os

import cv2
import numpy as np

from .errors import SynthesisFailure
from .logging import get_logger
from .selection import BackgroundMode

logger = get_logger(__name__)


def _bgr(r: float, g: float, b: float) -> np.ndarray:
    """Normalized RGB -> uint8 BGR triple."""
    return np.rint(np.array([b, g, r], dtype=np.float32) * 255.0).astype(np.uint8)


BLUR_TINT = _bgr(0.2, 0.3, 0.5)
BLACK = _bgr(0.0, 0.0, 0.0)
WHITE = _bgr(1.0, 1.0, 1.0)
GRADIENT_START = _bgr(0.9, 0.3, 0.8)  # top-left
GRADIENT_END = _bgr(0.2, 0.6, 0.9)  # bottom-right


def solid(color: np.ndarray, size: tuple[int, int]) -> np.ndarray:
    w, h = size
    out = np.empty((h, w, 3), dtype=np.uint8)
    out[:] = color
    return out


def diagonal_gradient(size: tuple[int, int]) -> np.ndarray:
    w, h = size
    ys, xs = np.mgrid[0:h, 0:w].astype(np.float32)
    # Projection onto the top-left -> bottom-right diagonal, 0..1
    span = float(max(w - 1, 0) + max(h - 1, 0)) or 1.0
    t = ((xs + ys) / span)[..., None]
    start = GRADIENT_START.astype(np.float32)
    end = GRADIENT_END.astype(np.float32)
    return np.rint(start + (end - start) * t).astype(np.uint8)


def scale_to_cover(image: np.ndarray, size: tuple[int, int]) -> np.ndarray:
    """Uniformly scales `image` to cover `size`, then center-crops to it."""
    w, h = size
    ih, iw = image.shape[:2]
    if iw == 0 or ih == 0:
        raise SynthesisFailure("Background image is empty")
    scale = max(w / iw, h / ih)
    sw = max(w, int(round(iw * scale)))
    sh = max(h, int(round(ih * scale)))
    scaled = cv2.resize(image, (sw, sh), interpolation=cv2.INTER_LANCZOS4)
    x0 = (sw - w) // 2
    y0 = (sh - h) // 2
    return np.ascontiguousarray(scaled[y0 : y0 + h, x0 : x0 + w])


class BackgroundSynthesizer:
    """
    Builds a full-frame background for the selected mode.

    The output is a pure function of (mode, size); the only state kept is the
    decoded custom image, loaded on first use.
    """

    def __init__(self, image_path: str | None = None):
        self.image_path = image_path
        self._image: np.ndarray | None = None
        self._image_missing = False
        self._warned: set[BackgroundMode] = set()

    def _load_image(self) -> np.ndarray:
        if self._image is not None:
            return self._image
        if self._image_missing or not self.image_path:
            raise SynthesisFailure("No custom background image configured")
        if not os.path.exists(self.image_path):
            self._image_missing = True
            raise SynthesisFailure(f"Background image not found: {self.image_path}")
        img = cv2.imread(self.image_path, cv2.IMREAD_COLOR)
        if img is None:
            self._image_missing = True
            raise SynthesisFailure(f"Cannot decode background image: {self.image_path}")
        logger.info(f"Loaded background image {self.image_path} ({img.shape[1]}x{img.shape[0]})")
        self._image = img
        return img

    def _render(self, mode: BackgroundMode, size: tuple[int, int]) -> np.ndarray:
        if mode == BackgroundMode.BLUR:
            # Fixed tint; the live background is not actually blurred
            return solid(BLUR_TINT, size)
        if mode == BackgroundMode.BLACK:
            return solid(BLACK, size)
        if mode == BackgroundMode.WHITE:
            return solid(WHITE, size)
        if mode == BackgroundMode.GRADIENT:
            return diagonal_gradient(size)
        if mode == BackgroundMode.CUSTOM_IMAGE:
            try:
                return scale_to_cover(self._load_image(), size)
            except cv2.error as e:
                raise SynthesisFailure(f"Scaling background image failed: {e}") from e
        raise SynthesisFailure(f"Unsupported background mode: {mode}")

    def synthesize(self, mode: BackgroundMode, size: tuple[int, int]) -> np.ndarray:
        w, h = size
        if w <= 0 or h <= 0:
            raise ValueError(f"Invalid background size: {size}")
        try:
            out = self._render(mode, size)
            if out.shape != (h, w, 3):
                raise SynthesisFailure(
                    f"{mode.display_name} background has shape {out.shape}, expected {(h, w, 3)}"
                )
            return out
        except SynthesisFailure as e:
            if mode == BackgroundMode.GRADIENT:
                raise
            if mode in self._warned:
                logger.debug(f"{e}; falling back to gradient")
            else:
                self._warned.add(mode)
                logger.warning(f"{e}; falling back to gradient")
            return diagonal_gradient(size)
