from __future__ import annotations
import cv2
import numpy as np

from .errors import CompositingFailure
from .logging import get_logger

logger = get_logger(__name__)

MASK_MAX = 255


def to_mask_u8(mask: np.ndarray) -> np.ndarray:
    """Float confidence in [0, 1] -> uint8 [0, 255]."""
    return np.clip(np.rint(mask.astype(np.float32) * 255.0), 0, 255).astype(np.uint8)


def normalize_mask(mask: np.ndarray) -> np.ndarray:
    """Brings bool, [0, 1] float or [0, 255] masks to single-channel uint8."""
    if mask is None:
        raise CompositingFailure("No mask to composite with")
    mask = np.asarray(mask)
    if mask.ndim == 3:
        mask = mask[..., 0]
    if mask.ndim != 2:
        raise CompositingFailure(f"Mask must be 2-D, got shape {mask.shape}")
    if mask.dtype == np.uint8:
        return mask
    if mask.dtype == np.bool_:
        return mask.astype(np.uint8) * MASK_MAX
    if np.issubdtype(mask.dtype, np.floating) and (mask.size == 0 or mask.max() <= 1.0):
        return to_mask_u8(mask)
    return np.clip(mask, 0, MASK_MAX).astype(np.uint8)


def scale_mask(mask: np.ndarray, size: tuple[int, int]) -> np.ndarray:
    """Stretches `mask` to `size` (w, h); x and y scale independently."""
    w, h = size
    mask = normalize_mask(mask)
    if mask.shape == (h, w):
        return mask
    return cv2.resize(mask, (w, h), interpolation=cv2.INTER_LINEAR)


def mask_to_image(mask: np.ndarray) -> np.ndarray:
    """Grayscale visualization: white is subject, black is background."""
    return cv2.cvtColor(mask, cv2.COLOR_GRAY2BGR)


def blend(frame: np.ndarray, background: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Per-pixel lerp, exact at mask 0 (background) and 255 (frame)."""
    if background is None:
        raise CompositingFailure("No background to blend over")
    if frame.shape != background.shape:
        raise CompositingFailure(
            f"Background shape {background.shape} does not match frame {frame.shape}"
        )
    if mask.shape != frame.shape[:2]:
        raise CompositingFailure(
            f"Mask shape {mask.shape} does not match frame {frame.shape[:2]}"
        )
    m = mask.astype(np.uint32)[..., None]
    out = frame.astype(np.uint32) * m + background.astype(np.uint32) * (MASK_MAX - m)
    return ((out + MASK_MAX // 2) // MASK_MAX).astype(np.uint8)


class Compositor:
    def composite(
        self,
        frame: np.ndarray,
        mask: np.ndarray,
        background: np.ndarray,
        debug_mask: bool = False,
    ) -> np.ndarray:
        h, w = frame.shape[:2]
        try:
            scaled = scale_mask(mask, (w, h))
            if debug_mask:
                return mask_to_image(scaled)
            return blend(frame, background, scaled)
        except (CompositingFailure, cv2.error, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Compositing failed, showing the original frame: {e}")
            return frame.copy()
