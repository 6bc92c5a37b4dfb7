# leafscan/services/severity_service.py
import math

from leafscan.models.scan_types import SeverityTier

# Upper-exclusive bounds in percent: 10 is Mild, 25 Moderate, 50 Severe
SEVERITY_BINS = (
    (10.0, SeverityTier.LOW),
    (25.0, SeverityTier.MILD),
    (50.0, SeverityTier.MODERATE),
)


def grade(confidence_pct: float) -> SeverityTier:
    """
    Confidence percentage (0..100) -> severity tier.
      Low:      < 10
      Mild:     10 - <25
      Moderate: 25 - <50
      Severe:   >= 50
    """
    p = float(confidence_pct)
    if math.isnan(p):
        raise ValueError("confidence_pct is NaN")

    for upper, tier in SEVERITY_BINS:
        if p < upper:
            return tier
    return SeverityTier.SEVERE
