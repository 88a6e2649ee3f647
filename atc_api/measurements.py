"""
Body measurements from keypoint geometry.

Each measurement needs two keypoints that are both visible
(visibility > VISIBILITY_THRESHOLD). Missing or occluded keypoints leave
the measurement unset; nothing here raises on partial detections.
"""

import math
from typing import Optional

from .entities import Detection, Keypoint, KeypointName, Measurements


def _visible_pair(detection: Detection, a: KeypointName, b: KeypointName):
    kp_a = detection.keypoint(a)
    kp_b = detection.keypoint(b)
    if kp_a is None or kp_b is None:
        return None
    if not (kp_a.visible and kp_b.visible):
        return None
    return kp_a, kp_b


def _distance(a: Keypoint, b: Keypoint) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def extract_measurements(detection: Optional[Detection]) -> Measurements:
    """
    Derive pixel measurements for one detection.

    height_px       vertical withers -> front_hoof distance
    body_length_px  euclidean neck -> tail_base distance
    body_ratio      body_length_px / height_px, when both are present
    """
    measurements = Measurements()

    if detection is None or not detection.keypoints:
        return measurements

    pair = _visible_pair(detection, KeypointName.WITHERS, KeypointName.FRONT_HOOF)
    if pair:
        withers, front_hoof = pair
        measurements.height_px = abs(withers.y - front_hoof.y)

    pair = _visible_pair(detection, KeypointName.NECK, KeypointName.TAIL_BASE)
    if pair:
        measurements.body_length_px = _distance(*pair)

    # Zero height would divide by zero; treat as no ratio
    if measurements.height_px and measurements.body_length_px is not None:
        measurements.body_ratio = measurements.body_length_px / measurements.height_px

    return measurements
