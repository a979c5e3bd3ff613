from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from rsvp_service.db.base import Base, BaseModel


class ImportLog(Base, BaseModel):
    """Audit record of one CSV import attempt. Written once, never updated."""

    __tablename__ = "import_logs"

    event_id = Column(Integer, ForeignKey("events.id"), nullable=True, index=True)
    filename = Column(String(255), nullable=True)
    total_rows = Column(Integer, nullable=False, default=0)
    inserted_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    # Either a bare list of row errors (older rows) or {errors, summary, duration_ms}
    error_details = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False)  # completed, partial, failed

    event = relationship("Event")

    def __repr__(self):
        return f"<ImportLog {self.id} {self.status} {self.inserted_count}/{self.total_rows}>"
