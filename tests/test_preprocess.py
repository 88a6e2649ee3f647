import cv2
import numpy as np
import pytest

from atc_api.config import INPUT_SIZE
from atc_api.errors import PreprocessingError
from atc_api.preprocess import decode_image, preprocess_image, to_model_input


def _png(image):
    ok, encoded = cv2.imencode('.png', image)
    assert ok
    return encoded.tobytes()


def test_output_shape_and_range(jpeg_bytes):
    chw = preprocess_image(jpeg_bytes)

    assert chw.shape == (3, INPUT_SIZE, INPUT_SIZE)
    assert chw.dtype == np.float32
    assert chw.min() >= 0.0
    assert chw.max() <= 1.0


def test_planes_are_red_green_blue():
    # BGR pure red
    image = np.zeros((50, 80, 3), dtype=np.uint8)
    image[:, :, 2] = 255

    chw = preprocess_image(_png(image))

    assert np.allclose(chw[0], 1.0)
    assert np.allclose(chw[1], 0.0)
    assert np.allclose(chw[2], 0.0)


def test_pixel_lands_in_each_plane():
    image = np.zeros((INPUT_SIZE, INPUT_SIZE, 3), dtype=np.uint8)
    image[10, 20] = (10, 20, 30)  # B, G, R

    chw = preprocess_image(_png(image))

    assert chw[0, 10, 20] == pytest.approx(30 / 255.0)
    assert chw[1, 10, 20] == pytest.approx(20 / 255.0)
    assert chw[2, 10, 20] == pytest.approx(10 / 255.0)


def test_resize_ignores_aspect_ratio():
    tall = np.full((900, 100, 3), 200, dtype=np.uint8)
    chw = preprocess_image(_png(tall), size=64)
    assert chw.shape == (3, 64, 64)


def test_deterministic(jpeg_bytes):
    assert np.array_equal(preprocess_image(jpeg_bytes), preprocess_image(jpeg_bytes))


def test_model_input_adds_batch_axis(jpeg_bytes):
    assert to_model_input(preprocess_image(jpeg_bytes)).shape == (1, 3, INPUT_SIZE, INPUT_SIZE)


@pytest.mark.parametrize('data', [b'', b'not an image at all', b'\x89PNG\r\n\x1a\n broken'])
def test_undecodable_bytes_raise(data):
    with pytest.raises(PreprocessingError):
        preprocess_image(data)


def test_decode_returns_bgr(jpeg_bytes):
    image = decode_image(jpeg_bytes)
    assert image.shape == (120, 200, 3)
