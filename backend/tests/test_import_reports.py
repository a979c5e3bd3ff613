import pytest

from rsvp_service.services.import_reports import (
    DetailedErrorReport,
    LegacyErrorReport,
    RowError,
    parse_error_report,
)


def test_legacy_list_is_resolved():
    report = parse_error_report([{"row": 3, "error": "Linha inválida"}])

    assert isinstance(report, LegacyErrorReport)
    assert report.errors == [RowError(3, "parse", "Linha inválida")]
    assert report.summary["parse"] == 1


def test_detailed_object_is_resolved():
    stored = DetailedErrorReport.build(
        [RowError(2, "duplicate", "QR Code 1 já cadastrado"), RowError(5, "validation", "Email inválido")],
        duration_ms=42,
    ).to_json()

    report = parse_error_report(stored)

    assert isinstance(report, DetailedErrorReport)
    assert report.duration_ms == 42
    assert report.summary == {"parse": 0, "validation": 1, "duplicate": 1, "database": 0}
    assert [error.row for error in report.errors] == [2, 5]


def test_missing_report_is_empty():
    report = parse_error_report(None)
    assert report.errors == []
    assert report.kind == "legacy"


def test_unknown_payload_is_rejected():
    with pytest.raises(ValueError):
        parse_error_report("oops")
