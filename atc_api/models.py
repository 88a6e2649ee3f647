"""
Pydantic models for API request/response schemas
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, List

from .atc_scorer import validate_classification


class BoundingBoxResponse(BaseModel):
    x1: float
    y1: float
    x2: float
    y2: float
    x_center: float
    y_center: float
    width: float
    height: float


class KeypointResponse(BaseModel):
    name: str
    x: float
    y: float
    visibility: float
    visible: bool
    color: str


class CategoryScoresResponse(BaseModel):
    """Five ATC categories, 1-9 (all 0 when analysis failed)"""
    dairy_character: float
    body_capacity: float
    mammary_system: float
    feet_legs: float
    general_appearance: float


class ATCResultsResponse(BaseModel):
    overall_score: float
    classification: str
    category_scores: CategoryScoresResponse
    measurements: Dict[str, float] = Field(default_factory=dict)

    @field_validator('classification')
    @classmethod
    def check_classification(cls, v: str) -> str:
        if not validate_classification(v):
            raise ValueError(f'unknown classification: {v}')
        return v


class CowResponse(BaseModel):
    """One detected cow"""
    cow_id: int
    detection_confidence: float
    bbox: BoundingBoxResponse
    keypoints_detected: int
    total_keypoints: int
    atc_results: ATCResultsResponse


class AnnotationResponse(BaseModel):
    cow_id: int
    bbox: BoundingBoxResponse
    confidence: float
    keypoints: List[KeypointResponse]


class AnalysisMetadataResponse(BaseModel):
    processing_time: str
    model_version: str
    confidence_threshold: float
    timestamp: str
    inference_source: str = Field(..., description="'model' or 'fallback' (degraded, synthetic result)")


class AnalysisResponse(BaseModel):
    """Response from /analyze-cow"""
    success: bool
    total_cows_detected: int
    detections_found: int
    average_score: Optional[float] = None
    individual_cows: List[CowResponse]
    annotations: List[AnnotationResponse]
    analysis_metadata: AnalysisMetadataResponse
    uploaded_image_url: Optional[str] = None
    error: Optional[str] = None
    no_detections: bool = False


class Recommendation(BaseModel):
    cow_id: int
    category: str
    issue: str
    suggestion: str


class ReportResponse(AnalysisResponse):
    """Response from /ats-report"""
    processed_image: Optional[str] = None
    analysis_timestamp: str
    recommendations: List[Recommendation]
    report_generated: str


class HealthResponse(BaseModel):
    """Response from /health endpoint"""
    status: str
    model_loaded: bool
    gemini_ai_ready: bool
    timestamp: str
    latest_analysis_available: bool


class ChatRequest(BaseModel):
    message: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str
    timestamp: str
    attempt: int


class ErrorResponse(BaseModel):
    """Standard error response"""
    success: bool = False
    error: str
    fix: Optional[str] = None
    timestamp: Optional[str] = None
    attempts_made: Optional[int] = None
    debug_info: Optional[str] = None
