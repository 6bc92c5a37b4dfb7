# leafscan/ml/classification/model_loader.py
import threading

from leafscan.core.config import Config
from leafscan.ml.runner import ModelRunner

_runner = None
_lock = threading.Lock()


def get_classification_runner() -> ModelRunner:
    """
    Lazy-load the disease classifier (adagrad.tflite) and cache it.
    """
    global _runner
    if _runner is not None:
        return _runner

    with _lock:
        if _runner is None:
            from leafscan.ml.tflite import TFLiteModel

            model = TFLiteModel(Config.CLSF_MODEL_PATH)
            _runner = ModelRunner(
                "classifier",
                model,
                input_dtype=Config.CLSF_INPUT_DTYPE,
                input_shape=model.input_shape,
            )
    return _runner
