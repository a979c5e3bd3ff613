from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from rsvp_service.db.base import Base, BaseModel


class EmailLog(Base, BaseModel):
    __tablename__ = "email_logs"

    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=True, index=True)
    recipient_email = Column(String(320), nullable=False, index=True)
    recipient_name = Column(String(255), nullable=True)
    subject = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False)  # sent, failed
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<EmailLog {self.recipient_email} {self.status}>"
