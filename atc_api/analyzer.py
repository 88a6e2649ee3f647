"""
Cattle Analyzer - Runs the keypoint pipeline for one uploaded image

Pipeline:
    preprocess -> model inference -> decode -> NMS -> measurements -> ATC scores

If the model is not loaded or inference raises, a synthetic result from
fallback.py is served instead (success=True, inference_source='fallback').
Preprocessing and tensor layout errors are not recovered here; they go
back to the request handler.
"""

import base64
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import numpy as np

from .atc_scorer import calculate_atc_scores
from .config import (
    ATC_SCORE_JITTER, CONFIDENCE_THRESHOLD, IOU_THRESHOLD, MODEL_VERSION
)
from .decoder import decode_output
from .entities import AnalysisMetadata, AnalysisResult, CowAnalysis, Detection, InferenceSource
from .errors import InferenceUnavailable, NoDetectionError
from .fallback import generate_fallback_cow
from .logger import log
from .nms import apply_nms
from .preprocess import preprocess_image, to_model_input
from .services.inference import ModelSession

NO_DETECTIONS_MESSAGE = 'No cows detected in image'


class CattleAnalyzer:
    """
    Owns the model session and turns image bytes into an AnalysisResult.

    Stateless per request: every call builds a fresh result. The session is
    shared and read-only after initialize().
    """

    def __init__(
        self,
        session: Optional[ModelSession] = None,
        confidence_threshold: float = CONFIDENCE_THRESHOLD,
        iou_threshold: float = IOU_THRESHOLD,
        score_jitter: float = ATC_SCORE_JITTER,
        rng: Optional[np.random.Generator] = None
    ):
        self.session = session if session is not None else ModelSession()
        self.confidence_threshold = confidence_threshold
        self.iou_threshold = iou_threshold
        self.score_jitter = score_jitter
        self.rng = rng if rng is not None else np.random.default_rng()

    def initialize(self) -> Tuple[bool, List[str]]:
        """
        Load the model.

        Returns:
            (success, list of errors). Failure is not fatal, the
            analyzer serves fallback results until a model is available.
        """
        log.info('analyzer:init', 'Starting model initialization')

        ok, error = self.session.load()
        if not ok:
            log.warn('analyzer:init', 'Model unavailable, fallback analysis enabled', error=error)
            return False, [error]

        log.info('analyzer:init', 'Initialization complete')
        return True, []

    @property
    def model_loaded(self) -> bool:
        return bool(getattr(self.session, 'available', False))

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def analyze(self, image_bytes: bytes, mime_type: str = 'image/jpeg',
                filename: Optional[str] = None) -> AnalysisResult:
        """
        Analyze one image.

        Raises:
            PreprocessingError: image could not be decoded
            TensorShapeError: model output does not match the decoder layout
        """
        start_time = time.time()
        log.info('analyzer', 'Processing image', filename=filename,
                 size_bytes=len(image_bytes), mime_type=mime_type)

        image_url = self._data_url(image_bytes, mime_type)
        input_tensor = to_model_input(preprocess_image(image_bytes))

        try:
            output = self._infer(input_tensor)
        except InferenceUnavailable as e:
            log.warn('analyzer', 'Falling back to synthetic analysis', error=str(e))
            return self._build_result(
                cows=[generate_fallback_cow(self.rng)],
                source=InferenceSource.FALLBACK,
                start_time=start_time,
                image_url=image_url,
            )

        try:
            cows = self.score_output(output)
        except NoDetectionError as e:
            log.info('analyzer', 'No detections', error=str(e))
            return self._build_result(
                cows=[],
                source=InferenceSource.MODEL,
                start_time=start_time,
                image_url=image_url,
                success=False,
                error=NO_DETECTIONS_MESSAGE,
                no_detections=True,
            )

        result = self._build_result(
            cows=cows,
            source=InferenceSource.MODEL,
            start_time=start_time,
            image_url=image_url,
        )

        log.info('analyzer', 'Analysis complete',
                 cows=result.total_detected,
                 average_score=result.average_score,
                 processing_time=result.metadata.processing_time)

        return result

    # =========================================================================
    # PIPELINE
    # =========================================================================

    def _infer(self, input_tensor: np.ndarray) -> np.ndarray:
        if not self.model_loaded:
            raise InferenceUnavailable('Model not loaded')
        log.debug('analyzer', 'Running ONNX inference')
        return self.session.run(input_tensor)

    def detect(self, output: np.ndarray) -> List[Detection]:
        """Decode and suppress. Raises NoDetectionError when nothing survives."""
        candidates = decode_output(output, self.confidence_threshold)
        log.info('pipeline:decode', 'Found detections above threshold', count=len(candidates))

        detections = apply_nms(candidates, self.iou_threshold)
        log.info('pipeline:nms', 'Final detections after NMS', count=len(detections))

        if not detections:
            raise NoDetectionError(
                f'No anchors above confidence threshold {self.confidence_threshold}'
            )
        return detections

    def score_output(self, output: np.ndarray) -> List[CowAnalysis]:
        """Run decode, NMS and scoring on a raw model output tensor."""
        cows = []
        for index, detection in enumerate(self.detect(output)):
            atc_result = calculate_atc_scores(detection, self.rng, self.score_jitter)
            cows.append(CowAnalysis(
                cow_id=index + 1,
                detection=detection,
                keypoints_detected_count=detection.visible_keypoint_count,
                total_keypoints=len(detection.keypoints),
                atc_result=atc_result,
            ))
        return cows

    # =========================================================================
    # RESULT ASSEMBLY
    # =========================================================================

    def _build_result(
        self,
        cows: List[CowAnalysis],
        source: InferenceSource,
        start_time: float,
        image_url: Optional[str],
        success: bool = True,
        error: Optional[str] = None,
        no_detections: bool = False
    ) -> AnalysisResult:
        metadata = AnalysisMetadata(
            processing_time=f"{time.time() - start_time:.2f}s",
            model_version=MODEL_VERSION,
            confidence_threshold=self.confidence_threshold,
            timestamp=datetime.now(timezone.utc).isoformat(),
            inference_source=source,
        )
        return AnalysisResult(
            success=success,
            cows=tuple(cows),
            metadata=metadata,
            uploaded_image_url=image_url,
            error=error,
            no_detections=no_detections,
        )

    @staticmethod
    def _data_url(image_bytes: bytes, mime_type: str) -> str:
        encoded = base64.b64encode(image_bytes).decode('ascii')
        return f"data:{mime_type};base64,{encoded}"


# Global analyzer instance
analyzer = CattleAnalyzer()
