from rsvp_service.models.email_log import EmailLog
from rsvp_service.models.event import Event
from rsvp_service.models.guest import GUEST_STATUSES, Guest
from rsvp_service.models.import_log import ImportLog

__all__ = ["Event", "Guest", "GUEST_STATUSES", "ImportLog", "EmailLog"]
