import threading
import time

import numpy as np
import pytest

from backdrop.background import BackgroundSynthesizer
from backdrop.capture import CameraAuthorization, FrameSource
from backdrop.compositor import Compositor
from backdrop.errors import InferenceFailure
from backdrop.pipeline import Pipeline
from backdrop.selection import BackgroundMode, Selection

from conftest import FakeCapture, ScriptedSegmenter, StaticSegmenter, full_mask, make_frame


def _pipeline(segmenter, selection=None, source=None):
    return Pipeline(source, segmenter, BackgroundSynthesizer(None), Compositor(), selection)


def test_black_background_full_foreground(red_frame):
    p = _pipeline(StaticSegmenter(full_mask(255)), Selection(BackgroundMode.BLACK))
    out = p.process_frame(red_frame)
    assert out.shape == (100, 100, 3)
    assert np.all(out == (0, 0, 255))
    assert p.output.latest() == (1, out)


def test_white_background_empty_mask(red_frame):
    p = _pipeline(StaticSegmenter(full_mask(0)), Selection(BackgroundMode.WHITE))
    out = p.process_frame(red_frame)
    assert np.all(out == 255)


def test_low_res_mask_is_rescaled(red_frame):
    p = _pipeline(StaticSegmenter(full_mask(255, (10, 5))), Selection(BackgroundMode.BLACK))
    out = p.process_frame(red_frame)
    assert out.shape == red_frame.image.shape
    assert np.all(out == (0, 0, 255))


def test_segmentation_failure_keeps_previous_output():
    seg = ScriptedSegmenter(
        [full_mask(255), InferenceFailure("model crashed"), full_mask(0)]
    )
    p = _pipeline(seg, Selection(BackgroundMode.WHITE))

    first = p.process_frame(make_frame((0, 0, 255), index=0))
    assert p.process_frame(make_frame((0, 255, 0), index=1)) is None

    seq, shown = p.output.latest()
    assert seq == 1
    assert shown is first
    assert p.skipped == 1

    p.process_frame(make_frame((0, 255, 0), index=2))
    assert np.all(p.output.latest()[1] == 255)


def test_selection_applies_to_next_frame_only(red_frame):
    p = _pipeline(StaticSegmenter(full_mask(0)), Selection(BackgroundMode.BLACK))
    first = p.process_frame(red_frame)

    p.select(BackgroundMode.WHITE)
    assert p.requested.mode == BackgroundMode.WHITE
    assert p.selection.mode == BackgroundMode.BLACK  # not applied yet
    # the frame already handed to the sink is untouched
    assert np.all(first == 0)

    second = p.process_frame(red_frame)
    assert np.all(second == 255)
    assert np.all(first == 0)


def test_debug_toggle_mid_stream(red_frame):
    mask = np.zeros((50, 50), dtype=np.uint8)
    mask[:, 25:] = 255
    p = _pipeline(StaticSegmenter(mask), Selection(BackgroundMode.GRADIENT))
    composited = p.process_frame(red_frame).copy()

    p.toggle_debug_mask()
    assert p.requested.debug_mask is True
    debug = p.process_frame(red_frame)
    assert np.all(debug[:, :40] == 0)
    assert np.all(debug[:, 60:] == 255)
    assert not np.array_equal(debug, composited)

    p.toggle_debug_mask()
    again = p.process_frame(red_frame)
    assert np.array_equal(again, composited)


def test_commands_merge_between_frames(red_frame):
    p = _pipeline(StaticSegmenter(full_mask(0)))
    p.select(BackgroundMode.BLACK)
    p.set_debug_mask(True)
    p.select(BackgroundMode.WHITE)
    p.process_frame(red_frame)
    assert p.selection == Selection(BackgroundMode.WHITE, True)


def test_result_discarded_after_stop(red_frame):
    p = _pipeline(StaticSegmenter(full_mask(255)))
    p.stop()
    assert p.process_frame(red_frame) is None
    assert p.output.latest() == (0, None)


def test_end_to_end_with_threads():
    images = []
    for i in range(6):
        img = np.zeros((40, 60, 3), dtype=np.uint8)
        img[:] = (0, 0, 255)
        images.append(img)
    cap = FakeCapture(images)
    source = FrameSource(
        0,
        60,
        40,
        authorizer=lambda idx: CameraAuthorization.AUTHORIZED,
        capture_factory=lambda idx: cap,
        max_read_failures=1000,
    )
    p = _pipeline(StaticSegmenter(full_mask(255, (30, 20))), Selection(BackgroundMode.BLACK), source)

    state = p.start()
    assert state.running

    deadline = time.monotonic() + 2.0
    while p.output.latest()[0] == 0 and time.monotonic() < deadline:
        time.sleep(0.01)
    p.stop()

    seq, image = p.output.latest()
    assert seq >= 1
    assert image.shape == (40, 60, 3)
    assert np.all(image == (0, 0, 255))
    assert p.processed + p.frames.dropped <= 6
    assert p.state.offline
    assert not any(t.name == "pipeline" and t.is_alive() for t in threading.enumerate())


def test_start_with_denied_camera_stays_offline():
    source = FrameSource(
        0,
        60,
        40,
        authorizer=lambda idx: CameraAuthorization.DENIED,
        capture_factory=lambda idx: FakeCapture([]),
    )
    p = _pipeline(StaticSegmenter(full_mask(255)), source=source)
    state = p.start()
    assert state.offline
    p.stop()
    assert p.output.latest() == (0, None)


def test_worker_survives_unexpected_errors(red_frame):
    class Broken(StaticSegmenter):
        def segment(self, frame):
            raise KeyError("unexpected")

    p = _pipeline(Broken(None))
    p.start()
    p.frames.put(red_frame)
    time.sleep(0.2)
    assert p._worker.is_alive()
    p.stop()


def test_stop_during_inflight_segmentation_discards_result(red_frame):
    entered = threading.Event()
    release = threading.Event()

    class Blocking(StaticSegmenter):
        def segment(self, frame):
            entered.set()
            release.wait(2.0)
            return super().segment(frame)

    p = _pipeline(Blocking(full_mask(255)), Selection(BackgroundMode.BLACK))
    p.start()
    p.frames.put(red_frame)
    assert entered.wait(2.0)

    stopper = threading.Thread(target=p.stop)
    stopper.start()
    deadline = time.monotonic() + 2.0
    while not p._stopped.is_set() and time.monotonic() < deadline:
        time.sleep(0.005)
    assert p._stopped.is_set()

    release.set()
    stopper.join(timeout=3.0)
    assert not stopper.is_alive()
    assert p.output.latest() == (0, None)
    assert p.processed == 0


def test_repeated_failure_warns_once(red_frame, caplog):
    seg = ScriptedSegmenter(
        [InferenceFailure("a"), InferenceFailure("b"), full_mask(255), InferenceFailure("c")]
    )
    p = _pipeline(seg)
    with caplog.at_level("DEBUG", logger="backdrop.pipeline"):
        for _ in range(4):
            p.process_frame(red_frame)
    warnings = [r.getMessage() for r in caplog.records if r.levelname == "WARNING"]
    assert len(warnings) == 2
    assert warnings[0].endswith(": a")
    assert warnings[1].endswith(": c")
    assert p.skipped == 3
