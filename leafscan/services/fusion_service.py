# leafscan/services/fusion_service.py
from typing import List

from leafscan.core.config import Config
from leafscan.core.errors import DecodeError, IncompleteInferenceError
from leafscan.ml.classification.predict import decode_classification
from leafscan.ml.segmentation.predict import decode_segmentation
from leafscan.models.scan_types import FusedResult, SegmentationOutput, SegmentationResult

# Fixed tie-break when two models report the same confidence
MODEL_PRIORITY = {"biotic": 3, "disease": 2, "resnet": 1}


def _rank(out: SegmentationOutput):
    return (out.confidence, MODEL_PRIORITY.get(out.model, 0))


def _details(winner: SegmentationOutput, votes: List[SegmentationOutput]) -> str:
    parts = []
    for v in votes:
        if v.voted:
            parts.append(f"{v.model}={v.label}:{v.confidence:.2f}")
        else:
            parts.append(f"{v.model}=abstain")
    return f"{winner.label} reported by {winner.model} model ({', '.join(parts)})"


def determine_segmentation(votes: List[SegmentationOutput], threshold: float = None) -> SegmentationResult:
    """
    Pick exactly one segmentation type from the decoded votes.

    1. Models with an all-zero score vector abstain. All abstaining is a
       DecodeError, never an implicit "normal".
    2. Non-normal votes at or above `threshold`: highest confidence wins,
       ties go to biotic > disease > resnet.
    3. Else, any normal vote: "normal" with the highest normal confidence.
    4. Else (only weak non-normal votes): highest of those, same tie-break.
    """
    threshold = float(Config.FUSION_THRESHOLD if threshold is None else threshold)

    voting = [v for v in votes if v.voted]
    if not voting:
        names = ", ".join(v.model for v in votes)
        raise DecodeError(names, "all segmentation outputs are degenerate")

    abnormal = [v for v in voting if v.label != "normal"]
    strong = [v for v in abnormal if v.confidence >= threshold]
    normal = [v for v in voting if v.label == "normal"]

    if strong:
        winner = max(strong, key=_rank)
    elif normal:
        winner = max(normal, key=_rank)
    else:
        winner = max(abnormal, key=_rank)

    details = None
    if winner.label != "normal":
        details = _details(winner, votes)

    return SegmentationResult(
        type=winner.label,
        confidence=float(winner.confidence),
        model=winner.model,
        details=details,
    )


def fuse(resnet_out, disease_out, biotic_out, classifier_out, threshold: float = None) -> FusedResult:
    """
    Combine the three segmentation outputs and the classifier output into
    one FusedResult. Raises before building anything if an output is
    missing or cannot be decoded.
    """
    raw = {"resnet": resnet_out, "disease": disease_out, "biotic": biotic_out}
    missing = [name for name, out in raw.items() if out is None]
    if missing:
        raise IncompleteInferenceError(", ".join(missing), "segmentation output is missing")
    if classifier_out is None:
        raise IncompleteInferenceError("classifier", "classifier output is missing")

    classifier = decode_classification(classifier_out)
    votes = [decode_segmentation(name, out) for name, out in raw.items()]
    segmentation = determine_segmentation(votes, threshold=threshold)

    return FusedResult(segmentation=segmentation, classifier=classifier)
