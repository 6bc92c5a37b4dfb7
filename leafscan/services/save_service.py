# leafscan/services/save_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from leafscan.core.errors import PersistenceError
from leafscan.models.scan_types import FusedResult, PreprocessedImage, ScanRecord
from leafscan.services.severity_service import grade

logger = logging.getLogger(__name__)


def build_scan_record(result: FusedResult, image: PreprocessedImage, user_id: str) -> ScanRecord:
    """
    Final scan -> ScanRecord. user_id comes from the identity provider
    (checked by the caller).
    """
    pct = result.severity_percent
    return ScanRecord(
        image=image.encoded_base64,
        disease_name=result.classifier.class_name,
        severity_percent=pct,
        severity_label=grade(pct).value,
        user_id=str(user_id),
    )


def _to_iso_utc(dt):
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


class LeafRepository:
    """
    SQLAlchemy-backed persistence for saved scans.
    """

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    @property
    def session_factory(self):
        # resolved lazily so the app can start before the DB is reachable
        if self._session_factory is None:
            from leafscan.database.db import get_session_factory
            self._session_factory = get_session_factory()
        return self._session_factory

    def add_leaf(self, record: ScanRecord) -> str:
        from leafscan.models.leaf_record import LeafRecord

        leaf_id = str(uuid.uuid4())
        db = self.session_factory()
        try:
            row = LeafRecord(
                leaf_id=leaf_id,
                created_at=datetime.now(timezone.utc),
                user_id=record.user_id,
                image=record.image,
                disease_name=record.disease_name,
                severity_pct=float(record.severity_percent),
                severity_label=record.severity_label,
            )
            db.add(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to save leaf for user %s: %s", record.user_id, e)
            raise PersistenceError(f"DB error: {e}") from e
        finally:
            db.close()

        return leaf_id

    def list_leaves(self, user_id: str, limit: int = 50, offset: int = 0) -> dict:
        from leafscan.models.leaf_record import LeafRecord

        db = self.session_factory()
        try:
            rows = (
                db.query(LeafRecord)
                .filter(LeafRecord.user_id == user_id)
                .order_by(LeafRecord.created_at.desc())
                .offset(int(offset))
                .limit(int(limit))
                .all()
            )
            items = [
                {
                    "leaf_id": r.leaf_id,
                    "created_at": _to_iso_utc(r.created_at),
                    "disease_name": r.disease_name,
                    "severity_pct": r.severity_pct,
                    "severity_label": r.severity_label,
                    "image": r.image,
                }
                for r in rows
            ]
            return {"items": items, "limit": int(limit), "offset": int(offset)}
        finally:
            db.close()
