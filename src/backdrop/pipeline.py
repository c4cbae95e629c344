from __future__ import annotations
import threading

import numpy as np

from .background import BackgroundSynthesizer
from .capture import Frame, FrameSource, SessionState
from .channels import CommandSlot, FrameChannel, LatestImage
from .compositor import Compositor
from .errors import SegmentationFailure
from .logging import get_logger
from .profiler import get_profiler
from .segmentation import Segmenter
from .selection import BackgroundMode, Command, Selection

logger = get_logger(__name__)


class Pipeline:
    """
    capture -> segment -> synthesize -> composite -> publish, one frame at a time.

    The capture thread only ever offers frames to a one-slot channel; a single
    worker thread drains it. The UI talks to the worker through `select()` /
    `toggle_debug_mask()` and reads results from `output`.
    """

    def __init__(
        self,
        source: FrameSource | None,
        segmenter: Segmenter,
        synthesizer: BackgroundSynthesizer,
        compositor: Compositor | None = None,
        selection: Selection | None = None,
    ):
        self.source = source
        self.segmenter = segmenter
        self.synthesizer = synthesizer
        self.compositor = compositor or Compositor()
        self.profiler = get_profiler()

        self.frames = FrameChannel()
        self.commands = CommandSlot()
        self.output = LatestImage()

        # Worker-owned; the UI keeps its own view in _requested
        self.selection = selection or Selection()
        self._requested = self.selection
        self._worker: threading.Thread | None = None
        self._stopped = threading.Event()
        self._publish_lock = threading.Lock()
        self.processed = 0
        self.skipped = 0
        self._failing: type | None = None

    # --- UI side ---
    def select(self, mode: BackgroundMode):
        self._requested = Command(mode=mode).apply(self._requested)
        self.commands.put(Command(mode=mode))

    def set_debug_mask(self, on: bool):
        self._requested = Command(debug_mask=on).apply(self._requested)
        self.commands.put(Command(debug_mask=on))

    def toggle_debug_mask(self):
        self.set_debug_mask(not self._requested.debug_mask)

    @property
    def requested(self) -> Selection:
        """What the UI last asked for (may not be applied to a frame yet)."""
        return self._requested

    @property
    def state(self) -> SessionState:
        return self.source.state if self.source is not None else SessionState()

    # --- worker side ---
    def process_frame(self, frame: Frame) -> np.ndarray | None:
        """
        Runs one frame through the pipeline and publishes the result.

        Returns None when segmentation fails; the last published image stays in
        place in that case.
        """
        command = self.commands.take()
        if command is not None:
            self.selection = command.apply(self.selection)
        selection = self.selection

        with self.profiler.record("frame"):
            try:
                with self.profiler.record("segment"):
                    mask = self.segmenter.segment(frame)
            except SegmentationFailure as e:
                self.skipped += 1
                if type(e) is self._failing:
                    logger.debug(f"Skipping frame {frame.index}: {e}")
                else:
                    self._failing = type(e)
                    logger.warning(f"Skipping frame {frame.index}: {e}")
                return None
            self._failing = None

            background = None
            if not selection.debug_mask:
                with self.profiler.record("synthesize"):
                    background = self.synthesizer.synthesize(selection.mode, frame.size)

            with self.profiler.record("composite"):
                image = self.compositor.composite(
                    frame.image, mask, background, debug_mask=selection.debug_mask
                )

        with self._publish_lock:
            if self._stopped.is_set():
                # Stopped mid-frame: drop the result
                return None
            self.output.publish(image)
        self.processed += 1
        return image

    def _run(self):
        while not self._stopped.is_set() and not self.frames.closed:
            frame = self.frames.get(timeout=0.1)
            if frame is None:
                continue
            try:
                self.process_frame(frame)
            except Exception:
                logger.exception(f"Unexpected error while processing frame {frame.index}")
        logger.debug("Pipeline worker exited")

    def start(self) -> SessionState:
        if self._worker is not None:
            return self.state
        self._stopped.clear()
        self._worker = threading.Thread(target=self._run, name="pipeline", daemon=True)
        self._worker.start()
        if self.source is None:
            return self.state
        state = self.source.initialize(self.frames.put)
        if state.offline:
            logger.error("Camera session is offline; the preview will stay empty")
        return state

    def stop(self):
        with self._publish_lock:
            self._stopped.set()
        if self.source is not None:
            self.source.stop()
        self.frames.close()
        worker, self._worker = self._worker, None
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=2.0)
        if worker is not None:
            logger.info(
                f"Pipeline stopped: {self.processed} frames composited, "
                f"{self.skipped} skipped, {self.frames.dropped} dropped"
            )
