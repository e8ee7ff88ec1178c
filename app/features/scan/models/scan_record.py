from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from app.platform.db.base import BaseModel


class ScanRecordRow(BaseModel):
    """
    Durable mirror of a scan record. Upserted by id on every terminal
    transition; the scan record store remains the source of truth.
    """

    __tablename__ = "scans"

    site_url = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    page_count = Column(Integer, default=0, nullable=False)
    risk_score = Column(Integer, nullable=True)  # 0-100
    error_message = Column(Text, nullable=True)

    jurisdiction_code = Column(String(2), nullable=True)
    business_category = Column(String(32), nullable=True)
    jurisdiction_assessment = Column(JSON, nullable=True)

    issues = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("idx_scans_started_at", "started_at"),
    )

    def __repr__(self):
        return f"<ScanRecordRow(id={self.id}, status={self.status}, risk_score={self.risk_score})>"
