# leafscan/services/gate_service.py
import logging

import requests

from leafscan.core.config import Config
from leafscan.core.errors import GateUnavailableError
from leafscan.models.scan_types import GateVerdict

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;base64,"


def _as_data_uri(image_b64: str) -> str:
    if "base64," in image_b64:
        return image_b64
    return f"{DATA_URI_PREFIX}{image_b64}"


def decode_gate_response(payload, reject_label: str = None) -> GateVerdict:
    """
    Detection-service JSON -> GateVerdict.

    Accepted shapes:
      {"type": "<label>", ...}
      {"top": "<label>", ...}                          (classification)
      {"predictions": [{"class": ..., "confidence": ...}, ...]}  (detection)
    An empty prediction list means nothing was found: the reject label.
    """
    reject_label = Config.GATE_REJECT_LABEL if reject_label is None else reject_label

    if not isinstance(payload, dict):
        raise GateUnavailableError(f"Unexpected gate payload type: {type(payload).__name__}")

    label = payload.get("type") or payload.get("top")
    if label is None and "predictions" in payload:
        preds = payload.get("predictions")
        if isinstance(preds, dict):
            # classification responses keyed by class name
            preds = [dict(v, **{"class": k}) for k, v in preds.items() if isinstance(v, dict)]
        if not isinstance(preds, list):
            raise GateUnavailableError("Gate predictions are not a list")
        if not preds:
            label = reject_label
        else:
            try:
                best = max(preds, key=lambda p: float(p.get("confidence", 0.0)))
                label = best["class"]
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise GateUnavailableError(f"Malformed gate prediction: {e}") from e

    if not label:
        raise GateUnavailableError("Gate payload has no label")

    label = str(label)
    return GateVerdict(present=(label != reject_label), label=label)


class LeafPresenceGate:
    """
    Remote "is this a leaf" pre-filter, called before any inference.
    """

    def __init__(self, url: str = None, api_key: str = None, timeout: float = None, session=None):
        self.url = url or Config.GATE_URL
        self.api_key = Config.GATE_API_KEY if api_key is None else api_key
        self.timeout = float(Config.GATE_TIMEOUT_SECONDS if timeout is None else timeout)
        self.session = session or requests.Session()

    def check_subject_present(self, image_b64: str) -> GateVerdict:
        try:
            resp = self.session.post(
                self.url,
                params={"api_key": self.api_key},
                data=_as_data_uri(image_b64),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            # covers timeouts, connection errors, non-2xx and bad JSON
            status = getattr(getattr(e, "response", None), "status_code", None)
            logger.warning("Leaf gate request failed (status=%s): %s", status, e)
            raise GateUnavailableError(f"Leaf gate request failed: {e}") from e
        except ValueError as e:
            raise GateUnavailableError(f"Leaf gate returned invalid JSON: {e}") from e

        verdict = decode_gate_response(payload)
        logger.info("Leaf gate verdict: present=%s label=%s", verdict.present, verdict.label)
        return verdict
