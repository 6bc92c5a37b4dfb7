# leafscan/ml/classification/predict.py
from leafscan.core.config import Config
from leafscan.core.errors import DecodeError, IncompleteInferenceError
from leafscan.ml.scores import argmax, as_score_vector, is_degenerate, normalize_score
from leafscan.models.scan_types import ClassificationOutput


def decode_classification(output, labels=None, model: str = "classifier") -> ClassificationOutput:
    """
    output: score vector of the disease classifier (softmax float or
    quantized/big-int integers).

    return: top class, its normalized confidence and index.
    """
    if output is None:
        raise IncompleteInferenceError(model, "classifier output is missing")

    labels = Config.CLASSIFIER_LABELS if labels is None else labels

    values = as_score_vector(model, output)
    if is_degenerate(values):
        raise DecodeError(model, "all class scores are zero")

    idx = argmax(values)
    if idx >= len(labels):
        raise DecodeError(model, f"class index {idx} out of range for {len(labels)} labels")

    return ClassificationOutput(
        class_name=labels[idx],
        confidence=normalize_score(model, values, idx),
        index=int(idx),
        raw_confidence=values[idx],
    )
