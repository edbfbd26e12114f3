from sqlalchemy import CheckConstraint, Column, DateTime, Float, JSON, String

from damage_intake.database import Base

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

ASSESSMENT_STATUSES = (STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)


class Assessment(Base):
    __tablename__ = "assessments"
    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in ASSESSMENT_STATUSES) + ")",
            name="ck_assessments_status",
        ),
    )

    id = Column(String, primary_key=True)
    title = Column(String, nullable=True)
    before_image_url = Column(String, nullable=False)
    after_image_url = Column(String, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PROCESSING)
    analysis_result = Column(JSON, nullable=True)
    total_cost = Column(Float, nullable=True)
    damages = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
