import pytest
from sqlalchemy import select

from rsvp_service.core.exceptions import InvalidRequestError, NotFoundError
from rsvp_service.models import Guest, ImportLog
from rsvp_service.services.guest_importer import (
    GuestImporter,
    decode_csv,
    normalize_phone,
    parse_guest_csv,
    split_csv_line,
)
from rsvp_service.services.import_reports import parse_error_report
from tests.conftest import fail_commits_with_pending

HEADER = "qrcode,nome,email,celular"


def csv_bytes(*lines: str) -> bytes:
    return "\n".join((HEADER,) + lines).encode("utf-8")


class TestSplitLine:
    def test_quoted_field_keeps_commas(self):
        assert split_csv_line('3001,"Souza, Ana",ana@example.com,21 99999-0000') == [
            "3001", "Souza, Ana", "ana@example.com", "21 99999-0000",
        ]

    def test_fields_are_trimmed(self):
        assert split_csv_line(" 3001 ,  Ana , ana@example.com ,") == ["3001", "Ana", "ana@example.com", ""]

    def test_loose_quotes_are_tolerated(self):
        assert split_csv_line('3001,"Silva" Jr,a@b.co,') == ["3001", "Silva Jr", "a@b.co", ""]

    def test_unclosed_quote_runs_to_end_of_line(self):
        assert split_csv_line('3001,"Ana, B,ana@example.com') == ["3001", "Ana, B,ana@example.com"]


def test_normalize_phone_keeps_digits_only():
    assert normalize_phone("(21) 99999-0000") == "21999990000"
    assert normalize_phone(" - ") is None


def test_decode_rejects_invalid_utf8():
    with pytest.raises(InvalidRequestError):
        decode_csv(b"\xff\xfe\xfa")


def test_decode_strips_bom():
    assert decode_csv("\ufeffqrcode".encode("utf-8")) == "qrcode"


class TestParse:
    def test_header_and_blank_lines_are_not_rows(self):
        parsed = parse_guest_csv(HEADER + "\n\n3001,Ana,ana@example.com,21999990000\n\n")
        assert parsed.total_rows == 1
        assert [row.qr_code for row in parsed.rows] == ["3001"]

    def test_header_is_first_non_blank_line(self):
        parsed = parse_guest_csv("\n" + HEADER + "\n3001,Ana,ana@example.com,\n")
        assert parsed.total_rows == 1
        assert parsed.errors == []
        assert [(row.row, row.qr_code) for row in parsed.rows] == [(3, "3001")]

    def test_row_numbers_are_file_lines(self):
        parsed = parse_guest_csv(HEADER + "\n\n3001,Ana\n")
        assert parsed.errors[0].row == 3
        assert parsed.errors[0].type == "parse"

    def test_missing_name_is_a_validation_error(self):
        parsed = parse_guest_csv(HEADER + "\n3001,,ana@example.com,")
        assert parsed.errors[0].type == "validation"
        assert parsed.rows == []

    def test_invalid_email_is_a_validation_error(self):
        parsed = parse_guest_csv(HEADER + "\n3001,Ana,not-an-email,")
        assert parsed.errors[0].type == "validation"
        assert "not-an-email" in parsed.errors[0].message

    def test_email_is_optional_and_lowercased(self):
        parsed = parse_guest_csv(HEADER + "\n3001,Ana,,\n3002,Bia,BIA@Example.COM,")
        assert parsed.rows[0].email is None
        assert parsed.rows[1].email == "bia@example.com"

    def test_repeated_keys_in_file_are_duplicates(self):
        parsed = parse_guest_csv(
            HEADER
            + "\n3001,Ana,ana@example.com,"
            + "\n3001,Ana Again,other@example.com,"
            + "\n3002,Bia,ANA@example.com,"
        )
        assert [row.row for row in parsed.rows] == [2]
        assert [(error.row, error.type) for error in parsed.errors] == [(3, "duplicate"), (4, "duplicate")]


class TestImporter:
    def test_all_rows_inserted(self, db, event):
        result = GuestImporter(db).import_csv(
            event.id, "guests.csv",
            csv_bytes("3001,Ana,ana@example.com,(21) 99999-0000", "3002,Bia,,"),
        )

        assert result.status == "completed"
        assert result.inserted == 2
        assert result.errors == []
        guests = db.scalars(select(Guest).order_by(Guest.qr_code)).all()
        assert [guest.status for guest in guests] == ["pending", "pending"]
        assert guests[0].phone == "21999990000"
        assert len({guest.guid for guest in guests}) == 2

    def test_totals_add_up(self, db, event, guest):
        result = GuestImporter(db).import_csv(
            event.id, "guests.csv",
            csv_bytes(
                "3001,Ana Again,new@example.com,",  # already stored
                "3002,Bia,bia@example.com,",
                "3003,,x@example.com,",
                "broken",
                "3004,Caio,bia@example.com,",  # repeated email
            ),
        )

        assert result.total_rows == 5
        assert result.total_rows == result.inserted + result.error_count
        assert result.inserted == 1
        assert result.status == "partial"
        assert result.summary == {"parse": 1, "validation": 1, "duplicate": 2, "database": 0}
        assert [error.row for error in result.errors] == sorted(error.row for error in result.errors)
        stored = db.scalars(select(Guest).where(Guest.event_id == event.id, Guest.qr_code == "3001")).all()
        assert [item.name for item in stored] == ["Ana Souza"]

    def test_existing_email_is_reported_as_duplicate(self, db, event, guest):
        result = GuestImporter(db).import_csv(event.id, "g.csv", csv_bytes("4001,Ana,ANA@example.com,"))

        assert result.status == "failed"
        assert result.errors[0].type == "duplicate"
        assert "ana@example.com" in result.errors[0].message

    def test_same_keys_allowed_in_another_event(self, db, event, other_event, guest):
        result = GuestImporter(db).import_csv(other_event.id, "g.csv", csv_bytes("3001,Ana,ana@example.com,"))
        assert result.inserted == 1

    def test_race_lost_rows_fall_back_to_row_by_row(self, db, event, guest, monkeypatch):
        importer = GuestImporter(db)
        # Pretend the pre-check ran before another import stored guest 3001
        monkeypatch.setattr(importer, "_existing_values", lambda *args, **kwargs: set())

        result = importer.import_csv(
            event.id, "g.csv", csv_bytes("3001,Other,other@example.com,", "3002,Bia,bia@example.com,"),
        )

        assert result.inserted == 1
        assert [(error.row, error.type) for error in result.errors] == [(2, "duplicate")]
        assert "QR Code 3001" in result.errors[0].message

    def test_import_log_written(self, db, event):
        result = GuestImporter(db).import_csv(event.id, "g.csv", csv_bytes("3001,Ana,,", "x"))

        log = db.get(ImportLog, result.import_log_id)
        assert log.status == "partial"
        assert (log.total_rows, log.inserted_count, log.error_count) == (2, 1, 1)
        report = parse_error_report(log.error_details)
        assert report.kind == "detailed"
        assert report.summary["parse"] == 1

    def test_header_only_file_is_rejected_and_logged(self, db, event):
        with pytest.raises(InvalidRequestError):
            GuestImporter(db).import_csv(event.id, "empty.csv", csv_bytes())

        log = db.scalars(select(ImportLog)).one()
        assert log.status == "failed"
        assert log.total_rows == 0
        assert (log.inserted_count, log.error_count) == (0, 0)
        assert parse_error_report(log.error_details).errors[0].message == "Arquivo CSV vazio ou apenas com cabeçalho"

    def test_unknown_event(self, db):
        with pytest.raises(NotFoundError):
            GuestImporter(db).import_csv(999, "g.csv", csv_bytes("3001,Ana,,"))


class TestStoreFailures:
    def test_insert_failure_marks_every_row(self, db, event, monkeypatch):
        fail_commits_with_pending(db, monkeypatch, Guest)

        result = GuestImporter(db).import_csv(
            event.id, "g.csv", csv_bytes("3001,Ana,,", "3002,Bia,,", "broken"),
        )

        assert result.status == "failed"
        assert result.inserted == 0
        assert result.total_rows == result.inserted + result.error_count == 3
        assert result.summary == {"parse": 1, "validation": 0, "duplicate": 0, "database": 2}
        assert "database is locked" in result.errors[0].message
        assert db.scalars(select(Guest)).all() == []
        assert db.get(ImportLog, result.import_log_id).status == "failed"

    def test_import_log_failure_does_not_fail_import(self, db, event, monkeypatch):
        fail_commits_with_pending(db, monkeypatch, ImportLog)

        result = GuestImporter(db).import_csv(event.id, "g.csv", csv_bytes("3001,Ana,,"))

        assert result.status == "completed"
        assert result.inserted == 1
        assert result.import_log_id is None
        assert db.scalars(select(ImportLog)).all() == []
