"""
Synthetic analysis used when the model cannot serve a request.

The output has exactly the shape of a real model result (one cow,
12 keypoints, five category scores in [1, 9], the same weighting and
classification), so callers never need a separate code path. The analyzer
marks these results with inference_source='fallback'.

Scores are not derived from the synthetic keypoints, so no pixel
measurements are reported.
"""

from typing import Dict, Optional, Tuple

import numpy as np

from .atc_scorer import classify, clamp_score, weighted_overall
from .config import INPUT_SIZE
from .entities import (
    ATCResult, BoundingBox, CategoryScores, CowAnalysis, Detection,
    Keypoint, KeypointName, KEYPOINT_ORDER, Measurements
)
from .logger import log

# Side-view template in model input pixels (head facing right)
KEYPOINT_TEMPLATE: Dict[KeypointName, Tuple[float, float]] = {
    KeypointName.NOSE: (320, 180),
    KeypointName.LEFT_EYE: (290, 160),
    KeypointName.RIGHT_EYE: (350, 160),
    KeypointName.LEFT_EAR: (275, 150),
    KeypointName.RIGHT_EAR: (365, 150),
    KeypointName.NECK: (300, 205),
    KeypointName.WITHERS: (280, 220),
    KeypointName.BACK_CENTER: (230, 240),
    KeypointName.TAIL_BASE: (180, 280),
    KeypointName.FRONT_HOOF: (320, 420),
    KeypointName.REAR_HOOF: (220, 420),
    KeypointName.UDDER_CENTER: (250, 350),
}

TEMPLATE_BBOX = (150.0, 120.0, 450.0, 450.0)
POSITION_JITTER_PX = 10.0

# (low, high) uniform range per category
SCORE_RANGES: Dict[str, Tuple[float, float]] = {
    'dairy_character': (6.0, 8.0),
    'body_capacity': (5.0, 8.0),
    'mammary_system': (6.0, 8.0),
    'feet_legs': (5.0, 7.0),
    'general_appearance': (6.0, 8.0),
}

_default_rng = np.random.default_rng()


def _synthetic_detection(rng: np.random.Generator) -> Detection:
    x1, y1, x2, y2 = TEMPLATE_BBOX
    bbox = BoundingBox(
        x1=x1, y1=y1, x2=x2, y2=y2,
        x_center=(x1 + x2) / 2,
        y_center=(y1 + y2) / 2,
        width=x2 - x1,
        height=y2 - y1,
    )

    keypoints = []
    for name in KEYPOINT_ORDER:
        base_x, base_y = KEYPOINT_TEMPLATE[name]
        dx, dy = rng.uniform(-POSITION_JITTER_PX, POSITION_JITTER_PX, size=2)
        keypoints.append(Keypoint(
            name=name,
            x=float(np.clip(base_x + dx, 0, INPUT_SIZE)),
            y=float(np.clip(base_y + dy, 0, INPUT_SIZE)),
            visibility=float(rng.uniform(0.45, 0.98)),
        ))

    return Detection(
        bbox=bbox,
        confidence=float(rng.uniform(0.85, 0.95)),
        keypoints=tuple(keypoints),
    )


def _synthetic_scores(rng: np.random.Generator) -> CategoryScores:
    scores = CategoryScores()
    for name, (low, high) in SCORE_RANGES.items():
        setattr(scores, name, clamp_score(float(rng.uniform(low, high))))
    return scores


def generate_fallback_cow(rng: Optional[np.random.Generator] = None) -> CowAnalysis:
    """Build one synthetic, schema-valid scored detection."""
    rng = rng if rng is not None else _default_rng

    detection = _synthetic_detection(rng)
    scores = _synthetic_scores(rng)
    overall = weighted_overall(scores)

    atc_result = ATCResult(
        category_scores=scores,
        overall_score=round(overall, 1),
        classification=classify(overall),
        measurements=Measurements(),
    )

    log.info('fallback', 'Generated synthetic analysis',
             overall=atc_result.overall_score,
             classification=atc_result.classification.value)

    return CowAnalysis(
        cow_id=1,
        detection=detection,
        keypoints_detected_count=detection.visible_keypoint_count,
        total_keypoints=len(detection.keypoints),
        atc_result=atc_result,
    )
