"""
Core data model for cattle keypoint analysis.

All entities are built fresh per request. Keypoint, BoundingBox and
Detection are frozen once the decoder produces them.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Optional, Tuple

from .config import NUM_KEYPOINTS, VISIBILITY_THRESHOLD


class KeypointName(str, Enum):
    """The 12 anatomical landmarks, in model output order."""
    NOSE = 'nose'
    LEFT_EYE = 'left_eye'
    RIGHT_EYE = 'right_eye'
    LEFT_EAR = 'left_ear'
    RIGHT_EAR = 'right_ear'
    NECK = 'neck'
    WITHERS = 'withers'
    BACK_CENTER = 'back_center'
    TAIL_BASE = 'tail_base'
    FRONT_HOOF = 'front_hoof'
    REAR_HOOF = 'rear_hoof'
    UDDER_CENTER = 'udder_center'


KEYPOINT_ORDER: Tuple[KeypointName, ...] = tuple(KeypointName)
assert len(KEYPOINT_ORDER) == NUM_KEYPOINTS

# Display colours for annotations
KEYPOINT_COLORS: Dict[KeypointName, str] = {
    KeypointName.NOSE: '#ef4444',          # red
    KeypointName.LEFT_EYE: '#f97316',      # orange
    KeypointName.RIGHT_EYE: '#f97316',
    KeypointName.LEFT_EAR: '#eab308',      # yellow
    KeypointName.RIGHT_EAR: '#eab308',
    KeypointName.NECK: '#22c55e',          # green
    KeypointName.WITHERS: '#06b6d4',       # cyan
    KeypointName.BACK_CENTER: '#3b82f6',   # blue
    KeypointName.TAIL_BASE: '#8b5cf6',     # purple
    KeypointName.FRONT_HOOF: '#ec4899',    # pink
    KeypointName.REAR_HOOF: '#ec4899',
    KeypointName.UDDER_CENTER: '#f59e0b',  # amber
}


class Classification(str, Enum):
    EXCELLENT = 'Excellent'
    GOOD_PLUS = 'Good Plus'
    GOOD = 'Good'
    FAIR = 'Fair'
    ANALYSIS_FAILED = 'Analysis Failed'
    ANALYSIS_ERROR = 'Analysis Error'


class InferenceSource(str, Enum):
    MODEL = 'model'
    FALLBACK = 'fallback'


@dataclass(frozen=True)
class Keypoint:
    name: KeypointName
    x: float
    y: float
    visibility: float

    @property
    def visible(self) -> bool:
        return self.visibility > VISIBILITY_THRESHOLD

    @property
    def color(self) -> str:
        return KEYPOINT_COLORS[self.name]

    def to_dict(self) -> Dict:
        return {
            'name': self.name.value,
            'x': round(self.x, 1),
            'y': round(self.y, 1),
            'visibility': round(self.visibility, 3),
            'visible': self.visible,
            'color': self.color,
        }


@dataclass(frozen=True)
class BoundingBox:
    """Box in model input pixel space. Corners are clamped to the input size."""
    x1: float
    y1: float
    x2: float
    y2: float
    x_center: float
    y_center: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return max(0.0, self.x2 - self.x1) * max(0.0, self.y2 - self.y1)

    def to_dict(self) -> Dict:
        return {k: round(v, 2) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class Detection:
    bbox: BoundingBox
    confidence: float
    keypoints: Tuple[Keypoint, ...] = ()

    def keypoint(self, name: KeypointName) -> Optional[Keypoint]:
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        return None

    @property
    def visible_keypoint_count(self) -> int:
        return sum(1 for kp in self.keypoints if kp.visible)


@dataclass
class Measurements:
    """Derived pixel measurements. A field is None when its keypoints were not visible."""
    height_px: Optional[float] = None
    body_length_px: Optional[float] = None
    body_ratio: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.height_px is None and self.body_length_px is None

    def to_dict(self) -> Dict:
        return {k: round(v, 3) for k, v in asdict(self).items() if v is not None}


@dataclass
class CategoryScores:
    dairy_character: float = 5.0
    body_capacity: float = 5.0
    mammary_system: float = 5.0
    feet_legs: float = 5.0
    general_appearance: float = 5.0

    @classmethod
    def zeros(cls) -> 'CategoryScores':
        return cls(0.0, 0.0, 0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, float]:
        return {k: round(v, 2) for k, v in asdict(self).items()}


@dataclass
class ATCResult:
    category_scores: CategoryScores
    overall_score: float
    classification: Classification
    measurements: Measurements = field(default_factory=Measurements)

    def to_dict(self) -> Dict:
        return {
            'overall_score': self.overall_score,
            'classification': self.classification.value,
            'category_scores': self.category_scores.to_dict(),
            'measurements': self.measurements.to_dict(),
        }


@dataclass
class CowAnalysis:
    """One scored detection."""
    cow_id: int
    detection: Detection
    keypoints_detected_count: int
    total_keypoints: int
    atc_result: ATCResult

    def to_dict(self) -> Dict:
        return {
            'cow_id': self.cow_id,
            'detection_confidence': round(self.detection.confidence, 3),
            'bbox': self.detection.bbox.to_dict(),
            'keypoints_detected': self.keypoints_detected_count,
            'total_keypoints': self.total_keypoints,
            'atc_results': self.atc_result.to_dict(),
        }

    def annotation(self) -> Dict:
        return {
            'cow_id': self.cow_id,
            'bbox': self.detection.bbox.to_dict(),
            'confidence': round(self.detection.confidence, 3),
            'keypoints': [kp.to_dict() for kp in self.detection.keypoints],
        }


@dataclass
class AnalysisMetadata:
    processing_time: str
    model_version: str
    confidence_threshold: float
    timestamp: str
    inference_source: InferenceSource

    def to_dict(self) -> Dict:
        return {
            'processing_time': self.processing_time,
            'model_version': self.model_version,
            'confidence_threshold': self.confidence_threshold,
            'timestamp': self.timestamp,
            'inference_source': self.inference_source.value,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """
    Top-level result of one analysis request.

    success is False only for the no-detections case; a fallback result
    is a success with metadata.inference_source == 'fallback'.
    """
    success: bool
    cows: Tuple[CowAnalysis, ...]
    metadata: AnalysisMetadata
    uploaded_image_url: Optional[str] = None
    error: Optional[str] = None
    no_detections: bool = False

    @property
    def total_detected(self) -> int:
        return len(self.cows)

    @property
    def average_score(self) -> Optional[float]:
        if not self.cows:
            return None
        total = sum(c.atc_result.overall_score for c in self.cows)
        return round(total / len(self.cows), 1)

    @property
    def is_fallback(self) -> bool:
        return self.metadata.inference_source == InferenceSource.FALLBACK

    def to_dict(self) -> Dict:
        return {
            'success': self.success,
            'total_cows_detected': self.total_detected,
            'detections_found': self.total_detected,
            'average_score': self.average_score,
            'individual_cows': [c.to_dict() for c in self.cows],
            'annotations': [c.annotation() for c in self.cows],
            'analysis_metadata': self.metadata.to_dict(),
            'uploaded_image_url': self.uploaded_image_url,
            'error': self.error,
            'no_detections': self.no_detections,
        }
