from __future__ import annotations
import cv2
import numpy as np
import mediapipe as mp
import torch
from ultralytics import YOLO

from .capture import Frame
from .compositor import to_mask_u8
from .config import AppConfig
from .errors import InferenceFailure, SegmentationUnavailable
from .logging import get_logger
from .profiler import get_profiler

logger = get_logger(__name__)


class Segmenter:
    """Produces a single-channel foreground mask for one frame."""

    def segment(self, frame: Frame) -> np.ndarray:
        raise NotImplementedError

    def close(self):
        pass


class UnavailableSegmenter(Segmenter):
    """Stands in when no backend could be built; every frame is skipped."""

    def __init__(self, reason: str):
        self.reason = reason

    def segment(self, frame: Frame) -> np.ndarray:
        raise SegmentationUnavailable(self.reason)


class MediaPipeSegmenter(Segmenter):
    def __init__(self, seg_w: int, seg_h: int, model=None):
        self.profiler = get_profiler()
        self.seg_w = seg_w
        self.seg_h = seg_h
        if model is None:
            solutions = getattr(mp, "solutions", None)
            if solutions is None:
                raise SegmentationUnavailable(
                    "This mediapipe build does not ship the selfie segmentation solution"
                )
            try:
                # model 0 is the general (square input) model, the balanced choice
                model = solutions.selfie_segmentation.SelfieSegmentation(
                    model_selection=0
                )
            except Exception as e:
                raise SegmentationUnavailable(f"MediaPipe init failed: {e}") from e
        self.model = model

    def segment(self, frame: Frame) -> np.ndarray:
        with self.profiler.record("mediapipe_preprocess"):
            try:
                rgb = cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
                rgb = cv2.resize(
                    rgb, (self.seg_w, self.seg_h), interpolation=cv2.INTER_AREA
                )
            except cv2.error as e:
                raise InferenceFailure(f"Cannot prepare frame for MediaPipe: {e}") from e

        with self.profiler.record("mediapipe_process"):
            try:
                res = self.model.process(rgb)
            except Exception as e:
                raise InferenceFailure(f"MediaPipe inference failed: {e}") from e

        mask = getattr(res, "segmentation_mask", None)
        if mask is None:
            raise InferenceFailure("MediaPipe returned no segmentation mask")
        return to_mask_u8(mask)

    def close(self):
        self.model.close()


class YOLOSegmenter(Segmenter):
    def __init__(self, model_name: str, seg_w: int, seg_h: int, device: str = "cuda"):
        self.profiler = get_profiler()
        try:
            self.model = YOLO(model_name)
        except Exception as e:
            raise SegmentationUnavailable(
                f"Cannot load YOLO model '{model_name}': {e}"
            ) from e
        self.seg_w = seg_w
        self.seg_h = seg_h
        self.device = device

    def _preprocess_image(self, img: np.ndarray) -> torch.Tensor:
        """Converts an RGB NumPy image to a normalized NCHW torch tensor."""
        img = np.ascontiguousarray(img)
        tensor = torch.from_numpy(img).to(self.device)
        # Use half precision on GPU
        if self.device == "cuda":
            tensor = tensor.half()
        tensor = tensor.permute(2, 0, 1).unsqueeze(0)
        return tensor / 255.0

    def segment(self, frame: Frame) -> np.ndarray:
        with self.profiler.record("yolo_preprocess"):
            rgb = cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
            model_input = cv2.resize(
                rgb, (self.seg_w, self.seg_h), interpolation=cv2.INTER_LINEAR
            )
            input_tensor = self._preprocess_image(model_input)

        with self.profiler.record("yolo_inference"):
            try:
                results = self.model(
                    input_tensor,
                    classes=[0],  # person
                    verbose=False,
                    imgsz=(self.seg_h, self.seg_w),
                )
            except Exception as e:
                raise InferenceFailure(f"YOLO inference failed: {e}") from e

        with self.profiler.record("yolo_postprocess"):
            combined = np.zeros((self.seg_h, self.seg_w), dtype=np.float32)
            if not results or not results[0].masks:
                # Nobody in view: everything is background
                return to_mask_u8(combined)

            for m in results[0].masks.data:
                m = m.cpu().numpy().astype(np.float32)
                if m.shape != combined.shape:
                    m = cv2.resize(
                        m, (self.seg_w, self.seg_h), interpolation=cv2.INTER_LINEAR
                    )
                combined = np.maximum(combined, m)
            return to_mask_u8(combined)


def _build_segmenter(cfg: AppConfig) -> Segmenter:
    if cfg.segmenter == "yolo":
        device = "cuda" if torch.cuda.is_available() else "cpu"
        logger.info(f"Using YOLO segmenter ({cfg.yolo_model} on {device})")
        return YOLOSegmenter(cfg.yolo_model, cfg.seg_width, cfg.seg_height, device)
    if cfg.segmenter == "mediapipe":
        logger.info("Using MediaPipe segmenter")
        return MediaPipeSegmenter(cfg.seg_width, cfg.seg_height)
    raise ValueError(f"Unknown segmenter: {cfg.segmenter}")


def create_segmenter(cfg: AppConfig) -> Segmenter:
    """Builds the configured backend; a backend that cannot load is not fatal."""
    try:
        return _build_segmenter(cfg)
    except SegmentationUnavailable as e:
        logger.error(f"Segmentation unavailable, frames will not be composited: {e}")
        return UnavailableSegmenter(str(e))
