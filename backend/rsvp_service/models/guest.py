from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from rsvp_service.db.base import Base, BaseModel
from rsvp_service.db.conflicts import (
    GUEST_EMAIL_CONSTRAINT,
    GUEST_GUID_CONSTRAINT,
    GUEST_QR_CODE_CONSTRAINT,
)

GUEST_STATUSES = ("pending", "confirmed", "declined")


class Guest(Base, BaseModel):
    __tablename__ = "guests"
    __table_args__ = (
        UniqueConstraint("guid", name=GUEST_GUID_CONSTRAINT),
        UniqueConstraint("event_id", "qr_code", name=GUEST_QR_CODE_CONSTRAINT),
        UniqueConstraint("event_id", "email", name=GUEST_EMAIL_CONSTRAINT),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'declined')",
            name="ck_guests_status",
        ),
    )

    # Invitation token, never reassigned
    guid = Column(String(36), nullable=False, index=True)

    # CSV fields
    qr_code = Column(String(64), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=True, index=True)
    phone = Column(String(32), nullable=True)

    event_id = Column(Integer, ForeignKey("events.id"), nullable=True, index=True)

    # Status
    status = Column(String(20), default="pending", nullable=False)  # pending, confirmed, declined

    # data:{mime};base64,... uploaded from the invites ZIP
    invite_image_base64 = Column(Text, nullable=True)

    event = relationship("Event", back_populates="guests")

    @property
    def has_invite_image(self) -> bool:
        return bool(self.invite_image_base64)

    @property
    def invite_code(self) -> str:
        """Code printed on the invite; falls back to the guid for guests imported without one."""
        return self.qr_code or self.guid

    def __repr__(self):
        return f"<Guest {self.name} ({self.qr_code})>"
