import logging
import smtplib
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import jinja2
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rsvp_service.core.config import Settings, settings
from rsvp_service.core.exceptions import EmailTransportError, InvalidRequestError
from rsvp_service.models import EmailLog, Event, Guest
from rsvp_service.services.invite_images import InviteImage, resolve_invite_image

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

# Guest names come from uploaded CSVs
env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=jinja2.select_autoescape(["html"]),
)


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


class SMTPTransport:
    """Deliver MIME messages through the configured SMTP relay."""

    def __init__(self, config: Settings = settings):
        self.config = config

    def send(self, message: MIMEMultipart) -> str:
        if not self.config.SMTP_SERVER:
            raise EmailTransportError("SMTP_SERVER is not configured")

        try:
            if self.config.smtp_use_ssl:
                server = smtplib.SMTP_SSL(
                    self.config.SMTP_SERVER, self.config.SMTP_PORT, timeout=self.config.SMTP_TIMEOUT
                )
            else:
                server = smtplib.SMTP(
                    self.config.SMTP_SERVER, self.config.SMTP_PORT, timeout=self.config.SMTP_TIMEOUT
                )
            with server:
                if not self.config.smtp_use_ssl:
                    server.starttls()
                if self.config.SMTP_USERNAME:
                    server.login(self.config.SMTP_USERNAME, self.config.SMTP_PASSWORD)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailTransportError(str(e) or e.__class__.__name__) from e

        return message["Message-ID"]


def _localize(value: Optional[datetime], tz_name: str) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name))


def format_event_date(value: Optional[datetime], tz_name: str) -> str:
    local = _localize(value, tz_name)
    return local.strftime("%d/%m/%Y") if local else ""


def format_event_time(value: Optional[datetime], tz_name: str, default: str) -> str:
    local = _localize(value, tz_name)
    return local.strftime("%H:%M") if local else default


def build_invite_image_url(guest: Guest, config: Settings = settings) -> str:
    return f"{config.SITE_URL.rstrip('/')}/api/rsvp/invite-image/{guest.guid}"


def build_confirmation_link(guest: Guest, event: Event, config: Settings = settings) -> str:
    return f"{config.SITE_URL.rstrip('/')}/confirm/{event.slug}?guid={guest.guid}"


def confirmation_subject(event: Event) -> str:
    return f"Sua presença está confirmada! - {event.name}"


def render_confirmation_email(guest: Guest, event: Event, config: Settings = settings) -> str:
    template = env.get_template("email/confirmation.html")
    return template.render(
        guest_name=guest.name,
        event_name=event.name,
        event_name_en=event.name_en or event.name,
        event_date=format_event_date(event.event_date, config.EVENT_TIMEZONE),
        event_time=format_event_time(event.event_date, config.EVENT_TIMEZONE, config.DEFAULT_EVENT_TIME),
        event_location=event.location or "",
        event_location_en=event.location_en or event.location or "",
        invite_code=guest.invite_code,
        invite_image_url=build_invite_image_url(guest, config),
        confirmation_link=build_confirmation_link(guest, event, config),
        primary_color=event.primary_color,
    )


class EmailSender:
    def __init__(
        self,
        db: Session,
        transport,
        config: Settings = settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.transport = transport
        self.config = config
        self.sleep = sleep

    def build_message(self, guest: Guest, event: Event, html: str, attachment: Optional[InviteImage]) -> MIMEMultipart:
        message = MIMEMultipart("mixed")
        message["From"] = formataddr((self.config.SMTP_FROM_NAME, self.config.SMTP_SENDER))
        message["To"] = formataddr((guest.name, guest.email))
        message["Subject"] = confirmation_subject(event)
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(html, "html", "utf-8"))

        if attachment is not None:
            part = MIMEImage(attachment.content, _subtype=attachment.mime_type.split("/")[-1])
            part.add_header(
                "Content-Disposition", "attachment",
                filename=attachment.attachment_filename(guest.invite_code),
            )
            message.attach(part)
        return message

    def send_confirmation(self, guest: Guest) -> EmailResult:
        """
        Render and send the confirmation email, retrying transport failures.
        Exactly one EmailLog row is written per call.
        """
        if not guest.email:
            raise InvalidRequestError("Guest does not have an email address")
        event = guest.event
        if event is None:
            raise InvalidRequestError("Event not found for this guest")

        subject = confirmation_subject(event)
        logger.info(f"📧 [Email] Preparing confirmation for guest {guest.id} ({guest.email}), event {event.slug}")

        html = render_confirmation_email(guest, event, self.config)
        attachment = resolve_invite_image(
            event, guest.invite_code, self.config.INVITES_DIR, guest.invite_image_base64
        )
        if attachment is None:
            logger.info("   → Invite image not found in database or filesystem, skipping attachment")
        else:
            logger.info(f"   → Attachment from {attachment.source}: {attachment.attachment_filename(guest.invite_code)}")

        max_attempts = self.config.EMAIL_MAX_RETRIES + 1
        last_error = None
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                logger.info(
                    f"🔁 [Email] Retry {attempt - 1}/{self.config.EMAIL_MAX_RETRIES} "
                    f"in {self.config.EMAIL_RETRY_DELAY_SECONDS}s"
                )
                self.sleep(self.config.EMAIL_RETRY_DELAY_SECONDS)
            try:
                message_id = self.transport.send(self.build_message(guest, event, html, attachment))
            except EmailTransportError as e:
                last_error = e.message
                logger.warning(f"⚠️  [Email] Attempt {attempt}/{max_attempts} failed: {last_error}")
                continue

            self._log(guest, subject, "sent")
            logger.info(f"✅ [Email] Sent to {guest.email} (message id {message_id})")
            return EmailResult(success=True, message_id=message_id, attempts=attempt)

        logger.error(f"❌ [Email] All {max_attempts} attempts failed for {guest.email}: {last_error}")
        self._log(guest, subject, "failed", last_error)
        return EmailResult(success=False, error=last_error or "Failed after retries", attempts=max_attempts)

    def _log(self, guest: Guest, subject: str, status: str, error_message: Optional[str] = None):
        try:
            self.db.add(EmailLog(
                guest_id=guest.id,
                recipient_email=guest.email,
                recipient_name=guest.name,
                subject=subject,
                status=status,
                error_message=error_message,
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving email log: {e}")
