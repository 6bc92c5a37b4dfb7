# leafscan/ml/segmentation/model_loader.py
import threading

from leafscan.core.config import Config
from leafscan.ml.runner import ModelRunner

SEGMENTATION_MODELS = ("resnet", "disease", "biotic")

_runners = None
_lock = threading.Lock()


def _model_paths() -> dict:
    return {
        "resnet": Config.SEG_RESNET_PATH,
        "disease": Config.SEG_DISEASE_PATH,
        "biotic": Config.SEG_BIOTIC_PATH,
    }


def get_segmentation_runners() -> dict:
    """
    Load the 3 segmentation models once and cache the runners in memory.
    """
    global _runners
    if _runners is not None:
        return _runners

    with _lock:
        if _runners is not None:
            return _runners

        from leafscan.ml.tflite import TFLiteModel

        paths = _model_paths()
        runners = {}
        for name in SEGMENTATION_MODELS:
            model = TFLiteModel(paths[name])
            runners[name] = ModelRunner(
                name,
                model,
                input_dtype=Config.SEG_INPUT_DTYPE,
                input_shape=model.input_shape,
            )
        _runners = runners

    return _runners
