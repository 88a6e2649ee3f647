"""
Configuration for ATC Cattle Analysis API

Values can be overridden through environment variables or a .env file
placed next to the project root.
"""

from pathlib import Path
import os

from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
MODEL_DIR = Path(os.environ.get("MODEL_DIR", BASE_DIR / "models"))
UPLOAD_DIR = Path(os.environ.get("UPLOAD_DIR", BASE_DIR / "uploads"))

# Model
MODEL_PATH = Path(os.environ.get("MODEL_PATH", MODEL_DIR / "best.onnx"))
MODEL_VERSION = os.environ.get("MODEL_VERSION", "YOLOv8x-ATC-v2.1")
EXECUTION_PROVIDERS = ["CPUExecutionProvider"]

# =============================================================
# MODEL INPUT / OUTPUT CONTRACT
#
# The model takes a [1, 3, INPUT_SIZE, INPUT_SIZE] float tensor and
# returns [1, 5 + NUM_KEYPOINTS * 3, num_anchors]. Changing either
# side of this contract requires a new TENSOR_LAYOUT_VERSION.

INPUT_SIZE = 640
NUM_KEYPOINTS = 12
TENSOR_LAYOUT_VERSION = 1
#=============================================================

# Detection thresholds
CONFIDENCE_THRESHOLD = float(os.environ.get("CONFIDENCE_THRESHOLD", "0.25"))
IOU_THRESHOLD = float(os.environ.get("IOU_THRESHOLD", "0.45"))
VISIBILITY_THRESHOLD = 0.5  # keypoint counts as visible above this

# Scoring
# Uniform +/- offset applied to each category score. Set to 0 for
# deterministic scores.
ATC_SCORE_JITTER = float(os.environ.get("ATC_SCORE_JITTER", "1.0"))
MIN_CATEGORY_SCORE = 1.0
MAX_CATEGORY_SCORE = 9.0

# Upload validation
MAX_IMAGE_SIZE_MB = 10
MAX_FILE_SIZE_BYTES = MAX_IMAGE_SIZE_MB * 1024 * 1024

# Chat assistant (Gemini)
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
CHAT_MAX_RETRIES = 3
CHAT_BASE_DELAY_SEC = 1.0
CHAT_MAX_MESSAGE_LENGTH = 500
CHAT_TIMEOUT_SEC = 30

# Server
PORT = int(os.environ.get("PORT", "3001"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
DEBUG_ERRORS = os.environ.get("ENV", "production") == "development"

# Classification labels (for validation)
VALID_CLASSIFICATIONS = [
    "Excellent",
    "Good Plus",
    "Good",
    "Fair",
    "Analysis Failed",
    "Analysis Error"
]
