"""
ATC Scorer - Converts keypoint measurements to Animal Type Classification scores

Five categories are scored on a 1-9 scale and combined with fixed weights.

Classifications (from best to worst):
- Excellent   (overall >= 8)
- Good Plus   (overall >= 6.5)
- Good        (overall >= 5)
- Fair

Only dairy_character and body_capacity have measurement rules so far.
mammary_system, feet_legs and general_appearance stay at the baseline
until keypoint rules exist for them.

Every category score receives a uniform random offset of +/- ATC_SCORE_JITTER
before clamping, so repeated runs on the same detection differ. Set the
jitter to 0 for deterministic scoring.
"""

import math
from dataclasses import fields
from typing import Dict, Optional

import numpy as np

from .config import (
    ATC_SCORE_JITTER, MIN_CATEGORY_SCORE, MAX_CATEGORY_SCORE,
    VALID_CLASSIFICATIONS
)
from .entities import ATCResult, CategoryScores, Classification, Detection, Measurements
from .logger import log
from .measurements import extract_measurements

BASELINE_SCORE = 5.0

CATEGORY_WEIGHTS: Dict[str, float] = {
    'dairy_character': 0.25,
    'body_capacity': 0.20,
    'feet_legs': 0.15,
    'mammary_system': 0.25,
    'general_appearance': 0.15,
}
assert math.isclose(sum(CATEGORY_WEIGHTS.values()), 1.0)
assert set(CATEGORY_WEIGHTS) == {f.name for f in fields(CategoryScores)}

# Classification thresholds, checked in order
CLASSIFICATION_THRESHOLDS = [
    (8.0, Classification.EXCELLENT),
    (6.5, Classification.GOOD_PLUS),
    (5.0, Classification.GOOD),
]

_default_rng = np.random.default_rng()


def clamp_score(value: float) -> float:
    return min(MAX_CATEGORY_SCORE, max(MIN_CATEGORY_SCORE, value))


def dairy_character_score(body_ratio: float) -> float:
    if 1.4 <= body_ratio <= 1.8:
        return 8.0
    if 1.2 <= body_ratio <= 2.0:
        return 6.0
    return 4.0


def body_capacity_score(height_px: float) -> float:
    if height_px > 200:
        return 7.0
    if height_px > 150:
        return 6.0
    return 4.0


def base_category_scores(measurements: Measurements) -> CategoryScores:
    """Measurement-derived scores before jitter."""
    scores = CategoryScores()

    if measurements.body_ratio is not None:
        scores.dairy_character = dairy_character_score(measurements.body_ratio)

    if measurements.height_px is not None:
        scores.body_capacity = body_capacity_score(measurements.height_px)

    return scores


def apply_jitter(
    scores: CategoryScores,
    rng: Optional[np.random.Generator] = None,
    jitter: float = ATC_SCORE_JITTER
) -> CategoryScores:
    """Offset each category by an independent uniform draw and clamp to [1, 9]."""
    rng = rng if rng is not None else _default_rng
    jittered = CategoryScores()

    for f in fields(CategoryScores):
        value = getattr(scores, f.name)
        if jitter > 0:
            value += rng.uniform(-jitter, jitter)
        setattr(jittered, f.name, clamp_score(value))

    return jittered


def weighted_overall(scores: CategoryScores) -> float:
    return sum(getattr(scores, name) * weight for name, weight in CATEGORY_WEIGHTS.items())


def classify(overall_score: float) -> Classification:
    for threshold, label in CLASSIFICATION_THRESHOLDS:
        if overall_score >= threshold:
            return label
    return Classification.FAIR


def failed_result(classification: Classification = Classification.ANALYSIS_FAILED) -> ATCResult:
    return ATCResult(
        category_scores=CategoryScores.zeros(),
        overall_score=0.0,
        classification=classification,
    )


def calculate_atc_scores(
    detection: Optional[Detection],
    rng: Optional[np.random.Generator] = None,
    jitter: float = ATC_SCORE_JITTER
) -> ATCResult:
    """
    Score one detection.

    Args:
        detection: Decoded detection (may be None)
        rng: Random source for the score jitter
        jitter: Half-width of the uniform offset per category

    Returns:
        ATCResult. A detection without keypoints yields 'Analysis Failed'
        with zero scores.
    """
    if detection is None or not detection.keypoints:
        log.warn('atc:score', 'No keypoints available, skipping scoring')
        return failed_result()

    try:
        measurements = extract_measurements(detection)
        scores = apply_jitter(base_category_scores(measurements), rng, jitter)
        overall = weighted_overall(scores)
        classification = classify(overall)

        log.debug('atc:score', 'Detection scored',
                  height_px=measurements.height_px,
                  body_length_px=measurements.body_length_px,
                  body_ratio=measurements.body_ratio,
                  overall=overall,
                  classification=classification.value)

        return ATCResult(
            category_scores=scores,
            overall_score=round(overall, 1),
            classification=classification,
            measurements=measurements,
        )

    except Exception as e:
        log.exception('atc:score', 'ATC calculation failed', error=str(e))
        return failed_result(Classification.ANALYSIS_ERROR)


def validate_classification(classification: str) -> bool:
    """Check if a classification value is valid"""
    return classification in VALID_CLASSIFICATIONS
