"""
Model Session

Owns the ONNX Runtime session for the keypoint model.

The session is loaded once at startup and is read-only afterwards.
Calls to run() are serialized with a lock. When the model is missing or
failed to load, run() raises InferenceUnavailable so the analyzer can
serve a fallback result instead.
"""

import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from ..config import MODEL_PATH, EXECUTION_PROVIDERS, INPUT_SIZE
from ..errors import InferenceUnavailable
from ..logger import log


class ModelSession:
    def __init__(self, model_path: Path = MODEL_PATH, providers: Optional[List[str]] = None):
        self.model_path = Path(model_path)
        self.providers = providers or EXECUTION_PROVIDERS

        self._session = None
        self._input_name = None
        self._output_name = None
        self._lock = threading.Lock()

    def load(self) -> Tuple[bool, Optional[str]]:
        """
        Load the ONNX model.

        Returns:
            (success, error_message)
        """
        log.info('model:load', 'Loading ONNX model', path=str(self.model_path))

        try:
            import onnxruntime as ort
        except ImportError as e:
            log.error('model:load', 'onnxruntime package missing',
                      error=str(e), fix='pip install onnxruntime')
            return False, f"onnxruntime not installed: {e}"

        if not self.model_path.exists():
            log.error('model:load', 'Model file missing',
                      path=str(self.model_path),
                      fix='Place best.onnx in the models/ folder, serving mock data until then')
            return False, f"Model not found: {self.model_path}"

        try:
            start = time.time()
            session = ort.InferenceSession(str(self.model_path), providers=self.providers)
        except Exception as e:
            log.exception('model:load', 'Model load failed', error=str(e))
            return False, f"Model failed to load: {e}"

        self._input_name = session.get_inputs()[0].name
        self._output_name = session.get_outputs()[0].name
        self._session = session

        log.info('model:load', 'ATC model loaded',
                 input=self._input_name, output=self._output_name,
                 providers=','.join(self.providers),
                 load_sec=round(time.time() - start, 2))

        return True, None

    @property
    def available(self) -> bool:
        return self._session is not None

    def run(self, input_tensor: np.ndarray) -> np.ndarray:
        """
        Run the model on a [1, 3, S, S] float32 tensor.

        Raises:
            InferenceUnavailable: model not loaded or the runtime raised
        """
        if self._session is None:
            raise InferenceUnavailable('Model not loaded')

        expected = (1, 3, INPUT_SIZE, INPUT_SIZE)
        if tuple(input_tensor.shape) != expected:
            raise InferenceUnavailable(
                f'Input tensor shape {tuple(input_tensor.shape)} does not match {expected}'
            )

        try:
            with self._lock:
                outputs = self._session.run(
                    [self._output_name],
                    {self._input_name: input_tensor.astype(np.float32, copy=False)}
                )
        except Exception as e:
            log.exception('model:run', 'Inference failed', error=str(e))
            raise InferenceUnavailable(f'Inference failed: {e}') from e

        return outputs[0]
