# leafscan/services/scan_service.py
import csv
import logging
import threading
import uuid
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Optional

from leafscan.core.config import Config
from leafscan.core.errors import (
    GateUnavailableError,
    NotAuthenticatedError,
    NothingToSaveError,
    PersistenceError,
    ScanBusyError,
    ScanError,
    ScanOwnershipError,
)
from leafscan.models.scan_types import (
    FusedResult,
    PreprocessedImage,
    RawCapture,
    ScanOutcome,
    ScanState,
    SeverityTier,
)
from leafscan.services.export_service import export_raw_outputs
from leafscan.services.fusion_service import fuse
from leafscan.services.save_service import build_scan_record
from leafscan.services.severity_service import grade
from leafscan.utils.image_io import preprocess

logger = logging.getLogger(__name__)

# States from which a new scan may start
READY_STATES = (ScanState.IDLE, ScanState.FUSED, ScanState.REJECTED)

MODEL_ORDER = ("resnet", "disease", "biotic", "classifier")


@dataclass
class CurrentScan:
    scan_id: str
    image: Optional[PreprocessedImage] = None
    result: Optional[FusedResult] = None
    severity: Optional[SeverityTier] = None
    owner: Optional[str] = None


class ScanOrchestrator:
    """
    Runs one scan at a time:

        Idle -> Capturing -> Preprocessing -> (Gating) -> Inferring -> Fused
        Fused -> Saved -> Idle      (save)
        Fused -> Discarded -> Idle  (re-scan)
        Gating -> Rejected          (not a leaf)

    A scan request while another one is in flight raises ScanBusyError.
    Any failure during a scan resets to Idle and is re-raised as ScanError.
    A scan started by a known user belongs to them: only they can see,
    save or discard its result (ScanOwnershipError otherwise).

    Collaborators:
      segmentation: {"resnet"|"disease"|"biotic": ModelRunner}
      classifier:   ModelRunner
      gate:         LeafPresenceGate or None (no gating)
      persistence:  object with add_leaf(ScanRecord)
      identity:     zero-arg callable returning the current user id or None
      camera:       object with take_photo() -> RawCapture, used when scan()
                    gets no capture
    """

    def __init__(
        self,
        segmentation: dict,
        classifier,
        gate=None,
        persistence=None,
        identity=None,
        camera=None,
        gate_policy: str = None,
        gate_retries: int = None,
        export_enabled: bool = None,
        max_workers: int = None,
    ):
        missing = [m for m in ("resnet", "disease", "biotic") if m not in segmentation]
        if missing:
            raise ValueError(f"Missing segmentation models: {missing}")

        self.runners = {
            "resnet": segmentation["resnet"],
            "disease": segmentation["disease"],
            "biotic": segmentation["biotic"],
            "classifier": classifier,
        }
        self.gate = gate
        self.persistence = persistence
        self.identity = identity
        self.camera = camera

        self.gate_policy = (gate_policy or Config.GATE_UNAVAILABLE_POLICY).strip().lower()
        if self.gate_policy not in ("abort", "proceed"):
            raise ValueError(f"Unknown gate policy: {self.gate_policy}")
        self.gate_retries = int(Config.GATE_MAX_RETRIES if gate_retries is None else gate_retries)
        self.export_enabled = Config.SCAN_EXPORT_ENABLED if export_enabled is None else bool(export_enabled)

        self._executor = ThreadPoolExecutor(
            max_workers=int(max_workers or Config.INFERENCE_WORKERS),
            thread_name_prefix="inference",
        )
        self._lock = threading.Lock()
        self._state = ScanState.IDLE
        self._current: Optional[CurrentScan] = None

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def current_result(self) -> Optional[FusedResult]:
        cur = self._current
        return cur.result if cur is not None else None

    def result_for(self, user_id: Optional[str]) -> Optional[FusedResult]:
        """The live result, hidden from everyone but the user who scanned it."""
        cur = self._current
        if cur is None or (cur.owner is not None and cur.owner != user_id):
            return None
        return cur.result

    def _caller(self) -> Optional[str]:
        return self.identity() if self.identity is not None else None

    def _check_owner(self, current: Optional[CurrentScan], user_id: Optional[str]):
        if current is not None and current.owner is not None and current.owner != user_id:
            raise ScanOwnershipError(f"Scan {current.scan_id} belongs to another user")

    def _set_state(self, state: ScanState):
        with self._lock:
            logger.debug("scan state %s -> %s", self._state.value, state.value)
            self._state = state

    def _reset(self, state: ScanState = ScanState.IDLE):
        with self._lock:
            self._current = None
            self._state = state

    def _begin(self) -> CurrentScan:
        owner = self._caller()
        with self._lock:
            if self._state not in READY_STATES:
                raise ScanBusyError(f"Scan refused, pipeline is {self._state.value}")
            if self._state == ScanState.FUSED:
                logger.info("Dropping unsaved result of scan %s", self._current.scan_id)
            self._current = CurrentScan(scan_id=str(uuid.uuid4()), owner=owner or None)
            self._state = ScanState.CAPTURING
            return self._current

    # ------------------------------------------------------------------
    # scan
    # ------------------------------------------------------------------
    def scan(self, raw: RawCapture = None) -> ScanOutcome:
        current = self._begin()
        try:
            return self._run_scan(current, raw)
        except ScanError as e:
            logger.warning("Scan %s failed: %s", current.scan_id, e)
            self._reset()
            raise
        except Exception as e:
            logger.exception("Scan %s crashed", current.scan_id)
            self._reset()
            raise ScanError(f"Unexpected scan failure: {e}") from e

    def _run_scan(self, current: CurrentScan, raw: Optional[RawCapture]) -> ScanOutcome:
        if raw is None:
            if self.camera is None:
                raise ScanError("No capture given and no camera configured")
            raw = self.camera.take_photo()

        self._set_state(ScanState.PREPROCESSING)
        image = preprocess(raw)
        current.image = image

        if self.gate is not None:
            self._set_state(ScanState.GATING)
            verdict = self._check_gate(image)
            if verdict is not None and not verdict.present:
                logger.info("Scan %s rejected by leaf gate (%s)", current.scan_id, verdict.label)
                self._reset(ScanState.REJECTED)
                return ScanOutcome(
                    status="rejected",
                    scan_id=current.scan_id,
                    message=Config.REJECTION_MESSAGE,
                    gate_label=verdict.label,
                )

        self._set_state(ScanState.INFERRING)
        outputs = self._run_models(image)

        result = fuse(outputs["resnet"], outputs["disease"], outputs["biotic"], outputs["classifier"])
        severity = grade(result.severity_percent)

        if self.export_enabled:
            self._export(current.scan_id, outputs, image)

        with self._lock:
            current.result = result
            current.severity = severity
            self._state = ScanState.FUSED

        logger.info(
            "Scan %s fused: %s %.2f%% (%s) class=%s",
            current.scan_id,
            result.segmentation.type,
            result.severity_percent,
            severity.value,
            result.classifier.class_name,
        )
        return ScanOutcome(status="fused", scan_id=current.scan_id, result=result, severity=severity)

    def _check_gate(self, image: PreprocessedImage):
        attempts = 1 + max(0, self.gate_retries)
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                return self.gate.check_subject_present(image.encoded_base64)
            except GateUnavailableError as e:
                last_error = e
                logger.warning("Leaf gate attempt %d/%d failed: %s", attempt, attempts, e)

        if self.gate_policy == "proceed":
            logger.warning("Leaf gate unavailable, continuing without it")
            return None
        raise last_error

    def _run_models(self, image: PreprocessedImage) -> dict:
        """
        Run the four models concurrently on the shared read-only tensor and
        join before returning. On the first failure, runs that have not
        started are cancelled; running ones finish and are ignored.
        """
        futures = {
            name: self._executor.submit(self.runners[name].run, image.tensor)
            for name in MODEL_ORDER
        }
        done, pending = wait(futures.values(), return_when=FIRST_EXCEPTION)

        failed = [name for name in MODEL_ORDER if futures[name] in done and futures[name].exception() is not None]
        if failed:
            for f in pending:
                f.cancel()
            raise futures[failed[0]].exception()

        return {name: futures[name].result() for name in MODEL_ORDER}

    def _export(self, scan_id: str, outputs: dict, image: PreprocessedImage):
        try:
            export_raw_outputs(scan_id, outputs, image.encoded_base64)
        except (OSError, ValueError, TypeError, KeyError, csv.Error) as e:
            logger.error("Failed to export raw outputs of scan %s: %s", scan_id, e)

    # ------------------------------------------------------------------
    # save / discard
    # ------------------------------------------------------------------
    def save(self, user_id: str = None):
        """
        Persist the fused scan for the current user, then reset to Idle.
        Returns whatever the persistence collaborator returns (leaf id).
        """
        with self._lock:
            current = self._current
            if self._state != ScanState.FUSED or current is None or current.result is None:
                raise NothingToSaveError(f"Nothing to save, pipeline is {self._state.value}")

            if user_id is None and self.identity is not None:
                user_id = self.identity()
            if not user_id:
                raise NotAuthenticatedError("No authenticated user to stamp the scan")
            self._check_owner(current, user_id)
            if self.persistence is None:
                raise PersistenceError("No persistence configured")

            # Saved blocks new scans until the write is done
            self._state = ScanState.SAVED

        record = build_scan_record(current.result, current.image, user_id)
        try:
            saved = self.persistence.add_leaf(record)
        except Exception as e:
            with self._lock:
                self._state = ScanState.FUSED
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(f"Failed to save scan: {e}") from e

        logger.info("Scan %s saved for user %s", current.scan_id, user_id)
        self._reset()
        return saved

    def discard(self):
        caller = self._caller()
        with self._lock:
            if self._state not in READY_STATES:
                raise ScanBusyError(f"Cannot discard, pipeline is {self._state.value}")
            self._check_owner(self._current, caller)
            if self._state == ScanState.FUSED:
                logger.debug("scan state fused -> discarded")
                self._state = ScanState.DISCARDED
            self._current = None
            self._state = ScanState.IDLE

    def close(self):
        self._executor.shutdown(wait=True)
