import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from rsvp_service.core.exceptions import InvalidRequestError, NotFoundError
from rsvp_service.models import GUEST_STATUSES, Event, Guest

logger = logging.getLogger(__name__)

RSVP_STATUSES = ("confirmed", "declined")


@dataclass
class GuestStats:
    total: int = 0
    confirmed: int = 0
    declined: int = 0
    pending: int = 0


@dataclass
class GuestListing:
    guests: List[Guest]
    stats: GuestStats
    events: List[Event] = field(default_factory=list)


def escape_like(value: str) -> str:
    """Make `%` and `_` in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_event_filter(event_id: Union[str, int, None]) -> Optional[int]:
    """'all', empty and missing mean no event filter."""
    if event_id is None or event_id == "" or event_id == "all":
        return None
    try:
        return int(event_id)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid event_id: {event_id}")


class GuestQueryService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def list_guests(
        self,
        status: Optional[str] = None,
        event_id: Optional[int] = None,
        search: Optional[str] = None,
        export: bool = False,
        limit: int = 1000,
    ) -> GuestListing:
        """
        Filtered guest page plus statistics.

        Statistics only honour the event filter: status and search narrow the
        returned guests, never the counts, and the page cap never affects them.
        """
        query = select(Guest).options(selectinload(Guest.event))

        if status in GUEST_STATUSES:
            query = query.where(Guest.status == status)

        if event_id is not None:
            query = query.where(Guest.event_id == event_id)

        if search:
            search_fmt = f"%{escape_like(search.strip())}%"
            query = query.where(or_(
                Guest.name.ilike(search_fmt, escape="\\"),
                Guest.email.ilike(search_fmt, escape="\\"),
            ))

        query = query.order_by(Guest.created_at.desc(), Guest.id.desc())
        if not export:
            query = query.limit(limit)

        guests = list(self.db.scalars(query))
        stats = self.guest_stats(event_id)
        logger.info(
            f"📊 [Guest List] {len(guests)} guests returned "
            f"(export={export}), stats={stats}"
        )
        return GuestListing(guests=guests, stats=stats, events=self.active_events())

    def guest_stats(self, event_id: Optional[int] = None) -> GuestStats:
        query = select(Guest.status, func.count(Guest.id)).group_by(Guest.status)
        if event_id is not None:
            query = query.where(Guest.event_id == event_id)

        counts: Dict[str, int] = {row[0]: row[1] for row in self.db.execute(query)}
        stats = GuestStats(
            confirmed=counts.get("confirmed", 0),
            declined=counts.get("declined", 0),
            pending=counts.get("pending", 0),
        )
        stats.total = stats.confirmed + stats.declined + stats.pending
        return stats

    def active_events(self) -> List[Event]:
        query = select(Event).where(Event.is_active.is_(True)).order_by(Event.event_date.asc(), Event.id.asc())
        return list(self.db.scalars(query))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get_by_guid(self, guid: str) -> Guest:
        guest = self.db.scalars(
            select(Guest).options(selectinload(Guest.event)).where(Guest.guid == guid)
        ).first()
        if guest is None:
            raise NotFoundError("Convidado não encontrado")
        return guest

    def get_by_id(self, guest_id: int) -> Guest:
        guest = self.db.get(Guest, guest_id)
        if guest is None:
            raise NotFoundError("Convidado não encontrado")
        return guest

    def get_by_code(self, qr_code: str, event_id: int) -> Optional[Guest]:
        return self.db.scalars(
            select(Guest).where(Guest.qr_code == qr_code, Guest.event_id == event_id)
        ).first()

    def get_by_email(self, email: str, event_id: int) -> Optional[Guest]:
        return self.db.scalars(
            select(Guest).where(func.lower(Guest.email) == email.strip().lower(), Guest.event_id == event_id)
        ).first()

    def get_event(self, event_id: int) -> Event:
        event = self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Evento não encontrado")
        return event

    def get_active_event(self, event_slug: Optional[str] = None, event_id: Optional[int] = None) -> Event:
        query = select(Event).where(Event.is_active.is_(True))
        if event_slug:
            query = query.where(Event.slug == event_slug)
        elif event_id is not None:
            query = query.where(Event.id == event_id)
        else:
            raise InvalidRequestError("Email e evento são obrigatórios")

        event = self.db.scalars(query).first()
        if event is None:
            raise NotFoundError("Evento não encontrado")
        return event

    # ------------------------------------------------------------------
    # RSVP updates
    # ------------------------------------------------------------------
    def update_status(self, guid: str, status: str) -> Guest:
        if status not in RSVP_STATUSES:
            raise InvalidRequestError('Status must be either "confirmed" or "declined"')

        guest = self.get_by_guid(guid)
        guest.status = status
        self.db.commit()
        self.db.refresh(guest)
        logger.info(f"📝 [RSVP] Guest {guest.id} is now {status}")
        return guest

    def confirm_by_email(self, email: str, event_slug: Optional[str] = None, event_id: Optional[int] = None) -> Guest:
        normalized = (email or "").strip().lower()
        if not normalized:
            raise InvalidRequestError("Email e evento são obrigatórios")

        event = self.get_active_event(event_slug=event_slug, event_id=event_id)
        guest = self.get_by_email(normalized, event.id)
        if guest is None:
            raise NotFoundError(
                "Email não encontrado na lista de convidados. "
                "Somente pessoas pré-convidadas podem confirmar presença."
            )

        guest.status = "confirmed"
        self.db.commit()
        self.db.refresh(guest)
        logger.info(f"📝 [RSVP] Guest {guest.id} confirmed by email for event {event.slug}")
        return guest
