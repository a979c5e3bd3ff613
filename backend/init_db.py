# init_db.py
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from rsvp_service.core.logging import setup_logging
from rsvp_service.db.base import Base
from rsvp_service.db.session import SessionLocal, engine
from rsvp_service.models import Event

logger = logging.getLogger(__name__)

BRT = timezone(timedelta(hours=-3))

DEFAULT_EVENTS = [
    {
        "name": "Festa de Confraternização RJ 2024",
        "slug": "festa-confraternizacao-rj-2024",
        "description": "Festa de fim de ano no Rio de Janeiro",
        "event_date": datetime(2024, 12, 20, 19, 0, tzinfo=BRT),
        "location": "Rio de Janeiro",
        "template_name": "convite-RJ",
        "primary_color": "#FF1243",
        "secondary_color": "#243746",
        "welcome_message": "Você foi convidado!",
    },
    {
        "name": "Festa de Confraternização SP 2024",
        "slug": "festa-confraternizacao-sp-2024",
        "description": "Festa de fim de ano em São Paulo",
        "event_date": datetime(2024, 12, 22, 19, 0, tzinfo=BRT),
        "location": "São Paulo",
        "template_name": "convite-SP",
        "primary_color": "#FF1243",
        "secondary_color": "#243746",
        "welcome_message": "Você foi convidado!",
    },
]


def seed_events(db: Session, events=DEFAULT_EVENTS) -> int:
    """Insert events whose slug is not there yet, returns how many were added"""
    existing = set(db.scalars(select(Event.slug)))
    added = 0
    for data in events:
        if data["slug"] in existing:
            logger.info(f"  ↪ Event already exists: {data['slug']}")
            continue
        db.add(Event(**data))
        added += 1
        logger.info(f"  ✅ Event created: {data['name']}")
    db.commit()
    return added


def init():
    logger.info("📦 Creating tables in the database...")
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Tables created!")

    db = SessionLocal()
    try:
        added = seed_events(db)
    finally:
        db.close()
    logger.info(f"📅 {added} event(s) seeded")


if __name__ == "__main__":
    setup_logging()
    init()
