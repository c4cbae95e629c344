import numpy as np
import pytest

from backdrop.capture import Frame
from backdrop.segmentation import Segmenter


class StaticSegmenter(Segmenter):
    """Returns the same mask for every frame."""

    def __init__(self, mask):
        self.mask = mask
        self.calls = 0

    def segment(self, frame):
        self.calls += 1
        return self.mask


class ScriptedSegmenter(Segmenter):
    """Plays back a list of masks; an Exception entry is raised instead."""

    def __init__(self, results):
        self.results = list(results)

    def segment(self, frame):
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeCapture:
    """Stands in for cv2.VideoCapture, serving a fixed list of images."""

    def __init__(self, images, opened=True):
        self.images = list(images)
        self.opened = opened
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        if not self.images:
            return False, None
        return True, self.images.pop(0)

    def release(self):
        self.released = True


def make_frame(color=(0, 0, 255), size=(100, 100), index=0):
    w, h = size
    image = np.empty((h, w, 3), dtype=np.uint8)
    image[:] = color
    return Frame(image=image, timestamp=0.0, index=index)


def full_mask(value, size=(100, 100)):
    w, h = size
    return np.full((h, w), value, dtype=np.uint8)


@pytest.fixture
def red_frame():
    # BGR
    return make_frame((0, 0, 255))

