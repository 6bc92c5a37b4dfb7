# leafscan/ml/scores.py
import math
import numbers

import numpy as np

from leafscan.core.errors import DecodeError

# TFLite full-integer quantization output types
QUANTIZED_SIGNED_DTYPES = (np.dtype(np.int8), np.dtype(np.int16))


def as_score_vector(model: str, output) -> list:
    """
    Model output -> flat list of Python scalars.

    Integer outputs stay Python ints (any size); float outputs become
    Python floats. int8/int16 outputs (full-integer quantized models) are
    shifted by the dtype minimum so the lowest code counts as zero.
    Anything else is a decode failure for `model`.
    """
    try:
        arr = np.asarray(output)
    except (TypeError, ValueError) as e:
        raise DecodeError(model, f"output is not array-like: {e}") from e

    if arr.dtype == object:
        values = list(arr.reshape(-1))
        if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in values):
            raise DecodeError(model, "output contains non-numeric values")
    elif arr.dtype in QUANTIZED_SIGNED_DTYPES:
        offset = int(np.iinfo(arr.dtype).min)
        values = [v - offset for v in arr.reshape(-1).tolist()]
    elif np.issubdtype(arr.dtype, np.integer) or np.issubdtype(arr.dtype, np.floating):
        values = arr.reshape(-1).tolist()
    else:
        raise DecodeError(model, f"unsupported output dtype {arr.dtype}")

    if not values:
        raise DecodeError(model, "output is empty")
    if not all(isinstance(v, numbers.Integral) or math.isfinite(v) for v in values):
        raise DecodeError(model, "output contains non-finite scores")
    return values


def is_integer_vector(values: list) -> bool:
    return all(isinstance(v, numbers.Integral) for v in values)


def argmax(values: list) -> int:
    # first maximum wins, like np.argmax
    best = 0
    for i in range(1, len(values)):
        if values[i] > values[best]:
            best = i
    return best


def normalize_score(model: str, values: list, index: int) -> float:
    """
    Confidence of values[index] as a float in [0, 1].

    - float vectors: the score itself, clipped to [0, 1]
    - integer vectors (quantized or big-int outputs): score / vector total,
      negative Python ints are rejected
    Returns 0.0 for a degenerate (all-zero) vector.
    """
    score = values[index]
    if is_integer_vector(values):
        if any(v < 0 for v in values):
            raise DecodeError(model, "negative integer score")
        total = sum(values)
        if total == 0:
            return 0.0
        # int / int true division stays exact enough for arbitrarily large ints
        return float(score / total)

    score = float(score)
    if not math.isfinite(score):
        raise DecodeError(model, f"non-finite score {score}")
    return min(max(score, 0.0), 1.0)


def is_degenerate(values: list) -> bool:
    return all(v == 0 for v in values)
