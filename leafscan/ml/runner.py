# leafscan/ml/runner.py
import logging

import numpy as np

from leafscan.core.errors import IncompleteInferenceError, InferenceError

logger = logging.getLogger(__name__)


class ModelRunner:
    """
    Uniform wrapper around one long-lived model.

    `model` is anything with `run(input)` (TFLite adapter, fake in tests)
    or a plain callable. The shared preprocessed tensor is never handed to
    the model directly: each run builds its own input for the model family.
    """

    def __init__(self, name: str, model, input_dtype: str = "uint8", input_shape=None):
        if input_dtype not in ("uint8", "float32"):
            raise ValueError(f"Unsupported input_dtype: {input_dtype}")
        self.name = name
        self.model = model
        self.input_dtype = input_dtype
        self.input_shape = tuple(input_shape) if input_shape is not None else None

    def _prepare(self, tensor: np.ndarray) -> np.ndarray:
        if self.input_dtype == "float32":
            x = np.asarray(tensor, dtype=np.float32) / 255.0
        else:
            x = np.array(tensor, dtype=np.uint8, copy=True)
        if self.input_shape is not None:
            x = x.reshape(self.input_shape)
        return x

    def _invoke(self, x):
        fn = getattr(self.model, "run", None)
        if fn is None:
            fn = self.model
        return fn(x)

    def run(self, tensor: np.ndarray) -> np.ndarray:
        try:
            x = self._prepare(tensor)
            out = self._invoke(x)
        except Exception as e:
            raise InferenceError(self.name, f"model call failed: {e}") from e

        if out is None:
            raise IncompleteInferenceError(self.name, "model returned no output")

        # TFLite style: list of output tensors, first one is the result
        if isinstance(out, (list, tuple)):
            if len(out) == 0 or out[0] is None:
                raise IncompleteInferenceError(self.name, "model returned no output tensors")
            if isinstance(out[0], (list, tuple, np.ndarray)):
                out = out[0]

        arr = np.asarray(out)
        if arr.size == 0:
            raise IncompleteInferenceError(self.name, "model returned an empty tensor")

        logger.debug("model %s -> shape=%s dtype=%s", self.name, arr.shape, arr.dtype)
        return arr.reshape(-1)
