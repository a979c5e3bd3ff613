"""Bulk upload of invite images from a ZIP archive.

Entries are named ``{qrCode}-{eventSlug}.{png|jpg|jpeg}``. Entries are
processed one at a time and each guest update is committed on its own, so a
failing entry never undoes the ones before it.
"""
import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rsvp_service.core.exceptions import InvalidRequestError, NotFoundError
from rsvp_service.models import Event, Guest
from rsvp_service.utils.image import detect_image_mime, mime_type_for_filename, to_data_uri

logger = logging.getLogger(__name__)


@dataclass
class DatabaseUploadStats:
    total: int = 0
    updated: int = 0
    not_found: int = 0
    files: List[str] = field(default_factory=list)
    not_found_files: List[str] = field(default_factory=list)
    invalid_files: List[str] = field(default_factory=list)


@dataclass
class FilesystemUploadStats:
    total: int = 0
    replaced: int = 0
    new: int = 0
    files: List[str] = field(default_factory=list)


def extract_code_from_filename(filename: str, event_slug: str) -> Optional[str]:
    pattern = re.compile(rf"^([^-]+)-{re.escape(event_slug)}\.(png|jpg|jpeg)$", re.IGNORECASE)
    match = pattern.match(filename)
    return match.group(1) if match else None


def _entry_basename(info: zipfile.ZipInfo) -> str:
    return PurePosixPath(info.filename.replace("\\", "/")).name


def _is_skipped(info: zipfile.ZipInfo) -> bool:
    name = _entry_basename(info)
    return (
        info.is_dir()
        or not name
        or name.startswith(".")
        or info.filename.startswith("__MACOSX")
    )


def open_zip(content: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile as e:
        raise InvalidRequestError("O arquivo deve ser um ZIP válido") from e


class InviteImageUploader:
    def __init__(self, db: Session, invites_dir: str):
        self.db = db
        self.invites_dir = invites_dir

    def _get_event(self, event_id: int) -> Event:
        event = self.db.get(Event, event_id)
        if not event:
            raise NotFoundError("Evento inválido")
        return event

    def upload_to_database(self, event_id: int, content: bytes) -> DatabaseUploadStats:
        """
        `updated` counts guests, `files` lists every stored entry. When several
        entries match one guest the last one wins.
        """
        event = self._get_event(event_id)
        stats = DatabaseUploadStats()
        updated_guests = set()

        with open_zip(content) as archive:
            entries = archive.infolist()
            logger.info(f"📦 [Upload DB] ZIP contains {len(entries)} entries for event {event.slug}")

            for info in entries:
                if _is_skipped(info):
                    continue

                filename = _entry_basename(info)
                mime_type = mime_type_for_filename(filename)
                if not mime_type.startswith("image/"):
                    logger.info(f"   → Skipping non-image: {filename}")
                    continue

                stats.total += 1
                code = extract_code_from_filename(filename, event.slug)
                if not code:
                    logger.info(f"   ⚠️  Could not extract QR code from filename: {filename}")
                    stats.not_found += 1
                    stats.not_found_files.append(filename)
                    continue

                guest = self.db.scalars(
                    select(Guest).where(Guest.qr_code == code, Guest.event_id == event.id)
                ).first()
                if guest is None:
                    logger.info(f"   ⚠️  Guest not found for QR: {code}")
                    stats.not_found += 1
                    stats.not_found_files.append(filename)
                    continue

                image_bytes = archive.read(info)
                detected = detect_image_mime(image_bytes)
                if detected is None:
                    logger.warning(f"   ⚠️  Unreadable image: {filename}")
                    stats.invalid_files.append(filename)
                    continue

                try:
                    guest.invite_image_base64 = to_data_uri(image_bytes, detected)
                    self.db.commit()
                except SQLAlchemyError as e:
                    self.db.rollback()
                    logger.error(f"   ❌ Error updating guest {guest.id}: {e}")
                    stats.invalid_files.append(filename)
                    continue

                logger.info(f"   ✅ Updated guest: {guest.name} ({code})")
                updated_guests.add(guest.id)
                stats.updated = len(updated_guests)
                stats.files.append(filename)

        logger.info(
            f"✅ [Upload DB] Processed {stats.total} files: {stats.updated} updated, "
            f"{stats.not_found} not found, {len(stats.invalid_files)} invalid"
        )
        return stats

    def upload_to_filesystem(self, event_id: int, content: bytes) -> FilesystemUploadStats:
        event = self._get_event(event_id)
        target_dir = Path(self.invites_dir) / event.slug
        target_dir.mkdir(parents=True, exist_ok=True)
        stats = FilesystemUploadStats()

        with open_zip(content) as archive:
            for info in archive.infolist():
                if _is_skipped(info):
                    continue

                filename = _entry_basename(info)
                target = target_dir / filename
                if target.exists():
                    stats.replaced += 1
                    logger.info(f"   → Replacing: {filename}")
                else:
                    stats.new += 1
                    logger.info(f"   → Extracting: {filename}")

                target.write_bytes(archive.read(info))
                stats.total += 1
                stats.files.append(filename)

        logger.info(f"✅ [Upload] Extracted {stats.total} files into {target_dir} ({stats.replaced} replaced)")
        return stats
