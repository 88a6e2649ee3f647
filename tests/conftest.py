import cv2
import numpy as np
import pytest

from atc_api.config import INPUT_SIZE
from atc_api.decoder import (
    EXPECTED_NUM_VALUES, CONFIDENCE_PLANE, X_CENTER_PLANE, Y_CENTER_PLANE,
    WIDTH_PLANE, HEIGHT_PLANE, keypoint_plane
)
from atc_api.entities import BoundingBox, Detection, Keypoint, KeypointName, KEYPOINT_ORDER
from atc_api.errors import InferenceUnavailable


def make_output(anchors, num_anchors=None):
    """
    Build a [1, 41, N] planar output tensor.

    Each anchor is a dict with 'conf', 'box' (normalized xc, yc, w, h) and
    optional 'keypoints': {name: (x_px, y_px, visibility)}.
    """
    n = num_anchors or max(len(anchors), 1)
    output = np.zeros((1, EXPECTED_NUM_VALUES, n), dtype=np.float32)

    for i, anchor in enumerate(anchors):
        xc, yc, w, h = anchor.get('box', (0.5, 0.5, 0.2, 0.2))
        output[0, X_CENTER_PLANE, i] = xc
        output[0, Y_CENTER_PLANE, i] = yc
        output[0, WIDTH_PLANE, i] = w
        output[0, HEIGHT_PLANE, i] = h
        output[0, CONFIDENCE_PLANE, i] = anchor['conf']

        for name, (x, y, v) in anchor.get('keypoints', {}).items():
            k = KEYPOINT_ORDER.index(KeypointName(name))
            output[0, keypoint_plane(k, 0), i] = x / INPUT_SIZE
            output[0, keypoint_plane(k, 1), i] = y / INPUT_SIZE
            output[0, keypoint_plane(k, 2), i] = v

    return output


def make_detection(x1, y1, x2, y2, confidence=0.9, keypoints=()):
    bbox = BoundingBox(
        x1=x1, y1=y1, x2=x2, y2=y2,
        x_center=(x1 + x2) / 2, y_center=(y1 + y2) / 2,
        width=x2 - x1, height=y2 - y1,
    )
    return Detection(bbox=bbox, confidence=confidence, keypoints=tuple(keypoints))


def make_keypoints(points):
    """points: {name: (x, y, visibility)}; unspecified landmarks get visibility 0."""
    return tuple(
        Keypoint(name=name, x=points.get(name.value, (0, 0, 0))[0],
                 y=points.get(name.value, (0, 0, 0))[1],
                 visibility=points.get(name.value, (0, 0, 0))[2])
        for name in KEYPOINT_ORDER
    )


class FakeSession:
    """Stands in for ModelSession: returns a canned output tensor."""

    def __init__(self, output=None, error=None, available=True):
        self.output = output
        self.error = error
        self.available = available
        self.inputs = []

    def load(self):
        return self.available, None if self.available else 'not loaded'

    def run(self, input_tensor):
        self.inputs.append(input_tensor)
        if self.error is not None:
            raise self.error
        return self.output


class UnavailableSession(FakeSession):
    def __init__(self):
        super().__init__(available=False, error=InferenceUnavailable('Model not loaded'))


# Standing cow: withers and front hoof 180px apart vertically
STANDING_COW = {
    'conf': 0.9,
    'box': (0.5, 0.5, 0.4, 0.6),
    'keypoints': {
        'withers': (280.0, 200.0, 0.9),
        'front_hoof': (320.0, 380.0, 0.9),
        'neck': (300.0, 200.0, 0.8),
        'tail_base': (180.0, 280.0, 0.8),
        'nose': (330.0, 180.0, 0.3),
    },
}


@pytest.fixture
def standing_cow_output():
    return make_output([STANDING_COW])


@pytest.fixture
def jpeg_bytes():
    image = np.full((120, 200, 3), (40, 120, 200), dtype=np.uint8)
    ok, encoded = cv2.imencode('.jpg', image)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
