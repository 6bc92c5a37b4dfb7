# leafscan/ml/segmentation/predict.py
import numpy as np

from leafscan.core.config import Config
from leafscan.core.errors import DecodeError, IncompleteInferenceError
from leafscan.ml.scores import argmax, as_score_vector, is_degenerate, normalize_score
from leafscan.models.scan_types import SEGMENTATION_TYPES, SegmentationOutput


def decode_segmentation(model: str, output, labels=None) -> SegmentationOutput:
    """
    Score vector of one segmentation model -> (label, confidence).

    labels: ordered output labels of this model (default Config.SEG_LABELS).
    An all-zero vector is returned with voted=False so fusion can treat it
    as an abstention instead of a "normal" vote.
    """
    if output is None:
        raise IncompleteInferenceError(model, "segmentation output is missing")

    if labels is None:
        labels = Config.SEG_LABELS.get(model)
    if not labels:
        raise DecodeError(model, "no label set configured")

    unknown = [lb for lb in labels if lb not in SEGMENTATION_TYPES]
    if unknown:
        raise DecodeError(model, f"unknown segmentation labels {unknown}")

    values = as_score_vector(model, output)
    if len(values) != len(labels):
        raise DecodeError(
            model, f"expected {len(labels)} scores, got {len(values)}"
        )

    if is_degenerate(values):
        return SegmentationOutput(
            model=model, raw=np.asarray(output), label="normal", confidence=0.0, voted=False
        )

    idx = argmax(values)
    return SegmentationOutput(
        model=model,
        raw=np.asarray(output),
        label=labels[idx],
        confidence=normalize_score(model, values, idx),
    )
