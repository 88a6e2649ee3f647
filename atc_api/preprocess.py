"""
Image preprocessing for the keypoint model.

Decodes arbitrary image bytes, resizes to INPUT_SIZE x INPUT_SIZE
(aspect ratio is not preserved, the model needs an exact square) and
lays the pixels out channel-first: all red values, then green, then blue,
each normalized to [0, 1].
"""

import cv2
import numpy as np

from .config import INPUT_SIZE
from .errors import PreprocessingError


def decode_image(image_bytes: bytes) -> np.ndarray:
    """Decode raw bytes into a BGR uint8 image."""
    if not image_bytes:
        raise PreprocessingError('Image preprocessing failed: empty image data')

    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise PreprocessingError(f'Image preprocessing failed: {e}') from e

    if image is None:
        raise PreprocessingError('Image preprocessing failed: could not decode image')

    return image


def preprocess_image(image_bytes: bytes, size: int = INPUT_SIZE) -> np.ndarray:
    """
    Convert image bytes to a normalized channel-first buffer.

    Args:
        image_bytes: Encoded image (JPEG, PNG, ...)
        size: Model input resolution

    Returns:
        float32 array of shape (3, size, size) with values in [0, 1]

    Raises:
        PreprocessingError: image cannot be decoded or resized
    """
    image = decode_image(image_bytes)

    try:
        resized = cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR)
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
    except cv2.error as e:
        raise PreprocessingError(f'Image preprocessing failed: {e}') from e

    chw = np.transpose(rgb, (2, 0, 1)).astype(np.float32) / 255.0
    return np.ascontiguousarray(chw)


def to_model_input(chw: np.ndarray) -> np.ndarray:
    """Add the batch axis: (3, S, S) -> (1, 3, S, S)."""
    return chw[np.newaxis, ...]
