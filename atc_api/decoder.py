"""
Decoder for the raw keypoint model output.

Tensor layout (TENSOR_LAYOUT_VERSION 1):

    shape [1, 5 + NUM_KEYPOINTS * 3, num_anchors]

Values are packed in planes, one plane per field across every anchor:
value `f` of anchor `i` lives at flat offset `f * num_anchors + i`.

    plane 0..3          box x_center, y_center, width, height (normalized 0..1)
    plane 4             confidence
    plane 5 + 3k        keypoint k x (normalized)
    plane 5 + 3k + 1    keypoint k y (normalized)
    plane 5 + 3k + 2    keypoint k visibility
"""

from typing import List

import numpy as np

from .config import CONFIDENCE_THRESHOLD, INPUT_SIZE, NUM_KEYPOINTS, TENSOR_LAYOUT_VERSION
from .entities import BoundingBox, Detection, Keypoint, KEYPOINT_ORDER
from .errors import TensorShapeError
from .logger import log

X_CENTER_PLANE = 0
Y_CENTER_PLANE = 1
WIDTH_PLANE = 2
HEIGHT_PLANE = 3
CONFIDENCE_PLANE = 4
KEYPOINT_PLANE_START = 5
VALUES_PER_KEYPOINT = 3

EXPECTED_NUM_VALUES = KEYPOINT_PLANE_START + NUM_KEYPOINTS * VALUES_PER_KEYPOINT


def keypoint_plane(k: int, offset: int) -> int:
    """Plane index of field `offset` (0=x, 1=y, 2=visibility) for keypoint k."""
    return KEYPOINT_PLANE_START + k * VALUES_PER_KEYPOINT + offset


def validate_shape(output: np.ndarray) -> int:
    """Check the output tensor layout. Returns num_anchors."""
    if output.ndim != 3:
        raise TensorShapeError(
            f'Expected 3-D output tensor [batch, values, anchors], got shape {output.shape}'
        )

    batch, num_values, num_anchors = output.shape

    if batch != 1:
        raise TensorShapeError(f'Expected batch size 1, got {batch}')

    if num_values != EXPECTED_NUM_VALUES:
        raise TensorShapeError(
            f'Expected {EXPECTED_NUM_VALUES} values per anchor '
            f'(5 + {NUM_KEYPOINTS}*{VALUES_PER_KEYPOINT}, layout v{TENSOR_LAYOUT_VERSION}), '
            f'got {num_values}'
        )

    return num_anchors


def make_bbox(x_center: float, y_center: float, width: float, height: float,
              size: int = INPUT_SIZE) -> BoundingBox:
    """Build a pixel-space box from normalized center/size values."""
    x1 = (x_center - width / 2) * size
    y1 = (y_center - height / 2) * size
    x2 = (x_center + width / 2) * size
    y2 = (y_center + height / 2) * size

    return BoundingBox(
        x1=min(max(0.0, x1), size),
        y1=min(max(0.0, y1), size),
        x2=min(max(0.0, x2), size),
        y2=min(max(0.0, y2), size),
        x_center=x_center * size,
        y_center=y_center * size,
        width=width * size,
        height=height * size,
    )


def decode_output(
    output: np.ndarray,
    confidence_threshold: float = CONFIDENCE_THRESHOLD,
    size: int = INPUT_SIZE,
) -> List[Detection]:
    """
    Turn the raw model output into candidate detections.

    Anchors with confidence below the threshold are skipped. The result is
    in anchor order and not yet suppressed.

    Raises:
        TensorShapeError: output does not match the expected layout
    """
    output = np.asarray(output, dtype=np.float64)
    num_anchors = validate_shape(output)
    planes = output[0]

    confidences = planes[CONFIDENCE_PLANE]
    kept = np.flatnonzero(confidences >= confidence_threshold)

    detections = []
    for i in kept:
        bbox = make_bbox(
            float(planes[X_CENTER_PLANE, i]),
            float(planes[Y_CENTER_PLANE, i]),
            float(planes[WIDTH_PLANE, i]),
            float(planes[HEIGHT_PLANE, i]),
            size,
        )

        keypoints = tuple(
            Keypoint(
                name=name,
                x=float(planes[keypoint_plane(k, 0), i]) * size,
                y=float(planes[keypoint_plane(k, 1), i]) * size,
                visibility=float(planes[keypoint_plane(k, 2), i]),
            )
            for k, name in enumerate(KEYPOINT_ORDER)
        )

        detections.append(Detection(bbox=bbox, confidence=float(confidences[i]), keypoints=keypoints))

    log.debug('pipeline:decode', 'Decoded output tensor',
              anchors=num_anchors, above_threshold=len(detections),
              threshold=confidence_threshold)

    return detections
