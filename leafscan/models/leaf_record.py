# leafscan/models/leaf_record.py
from sqlalchemy import Column, String, Float, Text, DateTime
from leafscan.database.db import Base


class LeafRecord(Base):
    __tablename__ = "leaves"

    leaf_id = Column(String(64), primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    user_id = Column(String(128), nullable=False, index=True)

    # base64 JPEG exactly as the models saw it
    image = Column(Text(16777215), nullable=False)

    disease_name = Column(String(128), nullable=False)
    severity_pct = Column(Float, nullable=False)
    severity_label = Column(String(16), nullable=False)
