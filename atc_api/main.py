"""
ATC Cattle Analysis API

FastAPI server that runs cattle photos through the keypoint model and
returns Animal Type Classification scores.

Endpoints:
    POST /analyze-cow   - Analyze one image (multipart field 'image')
    GET  /ats-report    - Detailed report for the latest analysis
    POST /api/chat      - Cattle assistant chat
    GET  /health        - Health check
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .analyzer import analyzer
from .config import DEBUG_ERRORS, MODEL_PATH, PORT
from .errors import ChatError, PreprocessingError, TensorShapeError
from .logger import log
from .models import (
    AnalysisResponse, ChatRequest, ChatResponse, ErrorResponse,
    HealthResponse, ReportResponse
)
from .recommendations import generate_recommendations
from .services.chat import chat_service
from .storage import LatestAnalysisStore
from .uploads import UploadTooLarge, temporary_upload

# ============== Lifecycle ==============


@asynccontextmanager
async def lifespan(app: FastAPI):
    ok, _ = analyzer.initialize()
    log.info('startup', 'ATC API ready',
             port=PORT,
             model=str(MODEL_PATH),
             model_loaded=ok,
             gemini_ai=chat_service.available)
    yield
    log.info('shutdown', 'ATC API stopped')


app = FastAPI(
    title="ATC Cattle Analysis API",
    description="Keypoint-based Animal Type Classification for dairy cattle",
    version="2.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Single-slot cache read by the report page (last write wins)
latest_store = LatestAnalysisStore()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, error: str, **kwargs) -> JSONResponse:
    body = ErrorResponse(error=error, **kwargs)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# ============== Endpoints ==============

@app.get("/")
async def root():
    return {
        "message": "ATC API Server is running",
        "endpoints": {
            "health": "/health",
            "analyze": "/analyze-cow (POST with image)",
            "report": "/ats-report (GET detailed report)",
            "chat": "/api/chat (POST with message)"
        }
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint for monitoring"""
    return HealthResponse(
        status="healthy",
        model_loaded=analyzer.model_loaded,
        gemini_ai_ready=chat_service.available,
        timestamp=_now(),
        latest_analysis_available=latest_store.has_result
    )


@app.post(
    "/analyze-cow",
    response_model=AnalysisResponse,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse},
               422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
def analyze_cow(image: Optional[UploadFile] = File(None)):
    """
    Analyze one cattle image.

    success=false with no_detections=true means the model saw no animal
    (retake the photo). analysis_metadata.inference_source='fallback' means
    the model was unavailable and the scores are synthetic.
    """
    if image is None or not image.filename:
        return _error(400, 'No image file provided')

    mime_type = image.content_type or 'application/octet-stream'
    if not mime_type.startswith('image/'):
        return _error(400, f'Unsupported file type: {mime_type}',
                      fix='Upload a JPEG or PNG image')

    filename = image.filename

    try:
        with temporary_upload(image.file, suffix=Path(filename).suffix) as path:
            image_bytes = path.read_bytes()
            result = analyzer.analyze(image_bytes, mime_type, filename=filename)

    except UploadTooLarge as e:
        log.warn('analyze', 'Upload too large', filename=filename, error=str(e))
        return _error(413, str(e))

    except PreprocessingError as e:
        log.error('analyze', 'Preprocessing failed', filename=filename, error=str(e), fix=e.fix)
        return _error(422, str(e), fix=e.fix)

    except TensorShapeError as e:
        log.error('analyze', 'Model output layout mismatch', filename=filename, error=str(e), fix=e.fix)
        return _error(500, str(e), fix=e.fix)

    except Exception as e:
        log.exception('analyze', 'Analysis error', filename=filename, error=str(e))
        return _error(500, str(e))

    response = result.to_dict()

    if result.success:
        latest_store.save({
            **response,
            'processed_image': filename,
            'analysis_timestamp': _now(),
            'recommendations': generate_recommendations(result.cows),
        })

    return response


@app.get("/ats-report", response_model=ReportResponse, responses={404: {"model": ErrorResponse}})
async def ats_report():
    """
    Detailed report for the most recent analysis.

    Served from a single shared slot: with concurrent uploads this may be
    another client's analysis.
    """
    record = latest_store.latest()

    if record is None:
        return _error(404, 'No analysis data found. Please analyze an image first.')

    record['report_generated'] = _now()
    return record


@app.post("/api/chat", response_model=ChatResponse, responses={400: {"model": ErrorResponse}})
def chat(request: ChatRequest):
    """Ask the cattle assistant a question."""
    try:
        return chat_service.reply(request.message)
    except ChatError as e:
        return _error(
            e.status_code,
            e.message,
            timestamp=_now(),
            attempts_made=e.attempts or None,
            debug_info=e.detail if DEBUG_ERRORS else None
        )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
