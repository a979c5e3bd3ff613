from fastapi import Depends
from sqlalchemy.orm import Session

from rsvp_service.core.config import settings
from rsvp_service.db.session import get_db
from rsvp_service.services.email_sender import EmailSender, SMTPTransport
from rsvp_service.services.guest_importer import GuestImporter
from rsvp_service.services.guest_queries import GuestQueryService
from rsvp_service.services.invite_uploader import InviteImageUploader


def get_mail_transport() -> SMTPTransport:
    return SMTPTransport(settings)


def get_guest_service(db: Session = Depends(get_db)) -> GuestQueryService:
    return GuestQueryService(db)


def get_guest_importer(db: Session = Depends(get_db)) -> GuestImporter:
    return GuestImporter(db)


def get_invite_uploader(db: Session = Depends(get_db)) -> InviteImageUploader:
    return InviteImageUploader(db, settings.INVITES_DIR)


def get_email_sender(
    db: Session = Depends(get_db),
    transport: SMTPTransport = Depends(get_mail_transport),
) -> EmailSender:
    return EmailSender(db, transport, settings)
