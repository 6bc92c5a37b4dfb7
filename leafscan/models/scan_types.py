# leafscan/models/scan_types.py
import base64
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np

SEGMENTATION_TYPES = ("normal", "disease", "biotic")


class SeverityTier(str, Enum):
    LOW = "Low"
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"


class ScanState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PREPROCESSING = "preprocessing"
    GATING = "gating"
    INFERRING = "inferring"
    FUSED = "fused"
    SAVED = "saved"
    DISCARDED = "discarded"
    REJECTED = "rejected"


@dataclass
class RawCapture:
    # file path or raw encoded bytes straight from the camera
    source: Union[str, bytes]
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class PreprocessedImage:
    width: int
    height: int
    channels: int
    encoded: bytes  # JPEG artifact for preview / storage
    tensor: np.ndarray  # flat uint8, decoded from `encoded`

    @property
    def encoded_base64(self) -> str:
        return base64.b64encode(self.encoded).decode("utf-8")


@dataclass
class GateVerdict:
    present: bool
    label: str


@dataclass
class SegmentationOutput:
    model: str
    raw: np.ndarray
    label: str
    confidence: float
    # False when the score vector carried no signal (all zero)
    voted: bool = True


@dataclass
class ClassificationOutput:
    class_name: str
    confidence: float
    index: int
    raw_confidence: Union[int, float] = None

    def to_dict(self) -> dict:
        return {
            "class": self.class_name,
            "confidence": self.confidence,
            "index": self.index,
        }


@dataclass
class SegmentationResult:
    type: str
    confidence: float
    model: str
    details: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"type": self.type, "confidence": self.confidence, "model": self.model}
        if self.details is not None:
            out["details"] = self.details
        return out


@dataclass
class FusedResult:
    segmentation: SegmentationResult
    classifier: ClassificationOutput

    @property
    def severity_percent(self) -> float:
        return float(self.segmentation.confidence) * 100.0

    def to_dict(self) -> dict:
        return {
            "segmentation": self.segmentation.to_dict(),
            "classifier": self.classifier.to_dict(),
        }


@dataclass
class ScanRecord:
    image: str  # base64 JPEG
    disease_name: str
    severity_percent: float
    severity_label: str
    user_id: str


@dataclass
class ScanOutcome:
    status: str  # "fused" | "rejected"
    scan_id: str
    result: Optional[FusedResult] = None
    severity: Optional[SeverityTier] = None
    message: Optional[str] = None
    gate_label: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"status": self.status, "scan_id": self.scan_id, "message": self.message}
        if self.result is not None:
            out.update(self.result.to_dict())
            out["severity_pct"] = round(self.result.severity_percent, 2)
            out["severity_label"] = self.severity.value if self.severity else None
        if self.gate_label is not None:
            out["gate_label"] = self.gate_label
        return out
