from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from rsvp_service.db.base import Base, BaseModel


class Event(Base, BaseModel):
    __tablename__ = "events"

    name = Column(String(255), nullable=False)
    name_en = Column(String(255), nullable=True)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(255), nullable=True)
    location_en = Column(String(255), nullable=True)

    # Display
    template_name = Column(String(100), nullable=False, default="default")
    primary_color = Column(String(20), nullable=False, default="#FF1243")
    secondary_color = Column(String(20), nullable=False, default="#243746")
    welcome_message = Column(String(255), nullable=False, default="Você foi convidado!")
    show_qr_code = Column(Boolean, nullable=False, default=True)
    show_event_details = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)

    guests = relationship("Guest", back_populates="event")

    def __repr__(self):
        return f"<Event {self.slug}>"
