"""Locate a guest's invite image.

Images live on the guest row as a base64 data URI. Invites published before
that column existed are still read from
``{INVITES_DIR}/{slug}/{code}-{slug}.{ext}``.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rsvp_service.models import Event
from rsvp_service.utils.image import (
    extension_for_mime_type,
    mime_type_for_filename,
    parse_data_uri,
    to_data_uri,
)

logger = logging.getLogger(__name__)

INVITE_EXTENSIONS = ("png", "jpg", "jpeg")


@dataclass(frozen=True)
class InviteImage:
    source: str  # database | filesystem
    mime_type: str
    content: bytes

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.content, self.mime_type)

    def attachment_filename(self, code: str) -> str:
        return f"convite-{code}.{extension_for_mime_type(self.mime_type)}"


def invite_file_path(invites_dir: str, slug: str, code: str, ext: str) -> Path:
    return Path(invites_dir) / slug / f"{code}-{slug}.{ext}"


def find_invite_file(invites_dir: str, slug: str, code: str) -> Optional[Path]:
    for ext in INVITE_EXTENSIONS:
        path = invite_file_path(invites_dir, slug, code, ext)
        if path.is_file():
            return path
    return None


def resolve_invite_image(
    event: Event,
    code: str,
    invites_dir: str,
    stored_data_uri: Optional[str] = None,
) -> Optional[InviteImage]:
    """Database copy first, then the file published for (event, code)."""
    if stored_data_uri:
        parsed = parse_data_uri(stored_data_uri)
        if parsed:
            mime_type, content = parsed
            return InviteImage(source="database", mime_type=mime_type, content=content)
        logger.warning(f"Invite {code} has an invalid base64 data URI, checking filesystem")

    path = find_invite_file(invites_dir, event.slug, code)
    if path is None:
        return None
    return InviteImage(
        source="filesystem",
        mime_type=mime_type_for_filename(path.name),
        content=path.read_bytes(),
    )
