import io
import zipfile

import pytest

from rsvp_service.core.exceptions import InvalidRequestError, NotFoundError
from rsvp_service.models import Guest
from rsvp_service.services.invite_images import resolve_invite_image
from rsvp_service.services.invite_uploader import InviteImageUploader, extract_code_from_filename
from tests.conftest import make_image


def make_zip(entries: dict) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def test_extract_code_from_filename():
    assert extract_code_from_filename("3001-festa-equinor.png", "festa-equinor") == "3001"
    assert extract_code_from_filename("3001-FESTA-EQUINOR.JPG", "festa-equinor") == "3001"
    assert extract_code_from_filename("3001-festa-sp.png", "festa-equinor") is None
    assert extract_code_from_filename("convite.png", "festa-equinor") is None


class TestDatabaseMode:
    def test_updates_matching_guests(self, db, event, guest, invites_dir):
        content = make_zip({
            "convites/3001-festa-equinor.png": make_image("PNG"),
            "9999-festa-equinor.jpg": make_image("JPEG"),
            "__MACOSX/._3001-festa-equinor.png": b"junk",
            ".DS_Store": b"junk",
            "leia-me.txt": b"nada",
        })

        stats = InviteImageUploader(db, str(invites_dir)).upload_to_database(event.id, content)

        assert stats.total == 2
        assert stats.updated == 1
        assert stats.files == ["3001-festa-equinor.png"]
        assert stats.not_found == 1
        assert stats.not_found_files == ["9999-festa-equinor.jpg"]
        db.refresh(guest)
        assert guest.invite_image_base64.startswith("data:image/png;base64,")

    def test_updated_counts_guests_not_files(self, db, event, guest, invites_dir):
        content = make_zip({
            "3001-festa-equinor.jpg": make_image("JPEG"),
            "3001-FESTA-EQUINOR.PNG": make_image("PNG"),
        })

        stats = InviteImageUploader(db, str(invites_dir)).upload_to_database(event.id, content)

        assert stats.total == 2
        assert stats.updated == 1
        assert stats.files == ["3001-festa-equinor.jpg", "3001-FESTA-EQUINOR.PNG"]
        db.refresh(guest)
        assert guest.invite_image_base64.startswith("data:image/png;base64,")

    def test_unreadable_image_is_reported(self, db, event, guest, invites_dir):
        content = make_zip({"3001-festa-equinor.png": b"not really a png"})

        stats = InviteImageUploader(db, str(invites_dir)).upload_to_database(event.id, content)

        assert stats.updated == 0
        assert stats.invalid_files == ["3001-festa-equinor.png"]
        db.refresh(guest)
        assert guest.invite_image_base64 is None

    def test_stored_image_is_served_first(self, db, event, guest, invites_dir):
        (invites_dir / event.slug).mkdir()
        (invites_dir / event.slug / "3001-festa-equinor.jpg").write_bytes(make_image("JPEG"))
        InviteImageUploader(db, str(invites_dir)).upload_to_database(
            event.id, make_zip({"3001-festa-equinor.png": make_image("PNG")})
        )
        db.refresh(guest)

        image = resolve_invite_image(event, "3001", str(invites_dir), guest.invite_image_base64)

        assert image.source == "database"
        assert image.mime_type == "image/png"
        assert image.attachment_filename("3001") == "convite-3001.png"

    def test_bad_zip(self, db, event, invites_dir):
        with pytest.raises(InvalidRequestError):
            InviteImageUploader(db, str(invites_dir)).upload_to_database(event.id, b"PK not a zip")

    def test_unknown_event(self, db, invites_dir):
        with pytest.raises(NotFoundError):
            InviteImageUploader(db, str(invites_dir)).upload_to_database(404, make_zip({}))


class TestFilesystemMode:
    def test_extracts_and_counts_replacements(self, db, event, invites_dir):
        target = invites_dir / event.slug
        target.mkdir()
        (target / "3001-festa-equinor.png").write_bytes(b"old")

        stats = InviteImageUploader(db, str(invites_dir)).upload_to_filesystem(
            event.id,
            make_zip({
                "3001-festa-equinor.png": make_image("PNG"),
                "3002-festa-equinor.jpg": make_image("JPEG"),
                "__MACOSX/._3002-festa-equinor.jpg": b"junk",
            }),
        )

        assert (stats.total, stats.replaced, stats.new) == (2, 1, 1)
        assert (target / "3001-festa-equinor.png").read_bytes() != b"old"

        image = resolve_invite_image(event, "3002", str(invites_dir))
        assert image.source == "filesystem"
        assert image.mime_type == "image/jpeg"


def test_guest_without_qr_code_uses_guid(db, event):
    guest = Guest(guid="abc-guid", name="Sem Código", event_id=event.id)
    db.add(guest)
    db.commit()
    assert guest.invite_code == "abc-guid"
