"""Bulk guest import from CSV.

Expected columns, in order: ``qrcode,nome,email,celular``. The header line is
ignored. Every data row ends up either inserted or reported as a row error,
so ``total_rows == inserted + len(errors)`` always holds.
"""
import csv
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from rsvp_service.core.exceptions import InvalidRequestError, NotFoundError
from rsvp_service.core.security import generate_guest_guid
from rsvp_service.db.conflicts import ConflictKind, classify_conflict
from rsvp_service.models import Event, Guest, ImportLog
from rsvp_service.services.import_reports import DetailedErrorReport, RowError, summarize

logger = logging.getLogger(__name__)

EXPECTED_COLUMNS = 4
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NON_DIGITS = re.compile(r"\D")
_LOOKUP_CHUNK = 500


class CSVParseError(ValueError):
    pass


@dataclass(frozen=True)
class GuestRow:
    row: int
    qr_code: str
    name: str
    email: Optional[str]
    phone: Optional[str]

    def to_guest(self, event_id: int) -> Guest:
        return Guest(
            guid=generate_guest_guid(),
            qr_code=self.qr_code,
            name=self.name,
            email=self.email,
            phone=self.phone,
            event_id=event_id,
            status="pending",
        )


@dataclass
class ParsedCSV:
    total_rows: int = 0
    rows: List[GuestRow] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)


@dataclass
class ImportResult:
    event_id: int
    filename: Optional[str]
    total_rows: int
    inserted: int
    valid_rows: int
    errors: List[RowError]
    status: str
    duration_ms: int
    import_log_id: Optional[int] = None

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def summary(self) -> Dict[str, int]:
        return summarize(self.errors)

    @property
    def message(self) -> str:
        if self.status == "completed":
            return f"{self.inserted} convidado(s) importado(s) com sucesso!"
        if self.status == "partial":
            return (
                f"{self.inserted} convidado(s) importado(s), "
                f"{self.error_count} linha(s) com erro"
            )
        return "Nenhum convidado foi importado"


def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on unquoted commas, trimming fields and stray quotes.
    Loose quoting is tolerated: `"Silva" Jr` reads as `Silva Jr` and an
    unclosed quote runs to the end of the line.
    """
    try:
        fields = next(csv.reader([line], skipinitialspace=True, strict=False), [])
    except csv.Error as e:
        raise CSVParseError(str(e)) from e
    return [value.replace('"', "").strip() for value in fields]


def normalize_phone(phone: str) -> Optional[str]:
    digits = _NON_DIGITS.sub("", phone or "")
    return digits or None


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def decode_csv(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidRequestError("Could not read or decode CSV file.") from e


def parse_guest_csv(text: str) -> ParsedCSV:
    """Parse and validate every data row. Nothing here touches the store."""
    parsed = ParsedCSV()
    seen_codes: Dict[str, int] = {}
    seen_emails: Dict[str, int] = {}
    header_seen = False

    for index, raw_line in enumerate(text.splitlines()):
        row_number = index + 1
        line = raw_line.strip()
        if not line:
            continue
        # Header is the first non-blank line
        if not header_seen:
            header_seen = True
            continue
        parsed.total_rows += 1

        try:
            values = split_csv_line(line)
        except CSVParseError as e:
            parsed.errors.append(RowError(row_number, "parse", f"Erro ao processar linha: {e}"))
            continue

        if len(values) < EXPECTED_COLUMNS:
            parsed.errors.append(RowError(
                row_number,
                "parse",
                f"Linha com menos de {EXPECTED_COLUMNS} colunas (encontradas: {len(values)})",
            ))
            continue

        qr_code, name, email, phone = values[:EXPECTED_COLUMNS]

        if not qr_code or not name:
            parsed.errors.append(RowError(row_number, "validation", "QR Code e Nome são obrigatórios"))
            continue

        email = email.lower()
        if email and not is_valid_email(email):
            parsed.errors.append(RowError(row_number, "validation", f"Email inválido: {email}"))
            continue

        if qr_code in seen_codes:
            parsed.errors.append(RowError(
                row_number,
                "duplicate",
                f"QR Code {qr_code} repetido no arquivo (linha {seen_codes[qr_code]})",
            ))
            continue
        if email and email in seen_emails:
            parsed.errors.append(RowError(
                row_number,
                "duplicate",
                f"Email {email} repetido no arquivo (linha {seen_emails[email]})",
            ))
            continue

        seen_codes[qr_code] = row_number
        if email:
            seen_emails[email] = row_number

        parsed.rows.append(GuestRow(
            row=row_number,
            qr_code=qr_code,
            name=name,
            email=email or None,
            phone=normalize_phone(phone),
        ))

    return parsed


def duplicate_message(kind: ConflictKind, row: GuestRow) -> str:
    if kind == ConflictKind.EMAIL:
        return f"Email {row.email} já cadastrado para este evento"
    if kind == ConflictKind.QR_CODE:
        return f"QR Code {row.qr_code} já cadastrado para este evento"
    return "Convidado já cadastrado para este evento"


class GuestImporter:
    def __init__(self, db: Session):
        self.db = db

    def import_csv(self, event_id: int, filename: Optional[str], content: bytes) -> ImportResult:
        started = time.perf_counter()

        event = self.db.get(Event, event_id)
        if not event:
            raise NotFoundError("Evento não encontrado")

        parsed = parse_guest_csv(decode_csv(content))
        if parsed.total_rows == 0:
            self.record_failure(event.id, filename, "Arquivo CSV vazio ou apenas com cabeçalho")
            raise InvalidRequestError("Arquivo CSV vazio ou apenas com cabeçalho")

        logger.info(
            f"📊 [Import Guests] Processing {parsed.total_rows} rows for event {event.id} "
            f"({len(parsed.rows)} valid)"
        )

        errors = list(parsed.errors)
        candidates = self._exclude_existing(event.id, parsed.rows, errors)
        inserted = self._insert(event.id, candidates, errors) if candidates else 0
        errors.sort(key=lambda error: error.row)

        if not errors:
            status = "completed"
        elif inserted:
            status = "partial"
        else:
            status = "failed"

        duration_ms = int((time.perf_counter() - started) * 1000)
        result = ImportResult(
            event_id=event.id,
            filename=filename,
            total_rows=parsed.total_rows,
            inserted=inserted,
            valid_rows=len(parsed.rows),
            errors=errors,
            status=status,
            duration_ms=duration_ms,
        )
        result.import_log_id = self._record_import_log(result)

        logger.info(
            f"✅ [Import Guests] {status}: {inserted}/{parsed.total_rows} inserted, "
            f"{len(errors)} errors in {duration_ms}ms"
        )
        return result

    def record_failure(self, event_id: Optional[int], filename: Optional[str], reason: str) -> Optional[int]:
        """Best-effort log for an import that could not be processed at all.
        No row was read, so the counters stay at zero and the reason only
        lives in the error report.
        """
        report = DetailedErrorReport.build([RowError(0, "database", reason)], duration_ms=0)
        return self._write_log(ImportLog(
            event_id=event_id,
            filename=filename,
            total_rows=0,
            inserted_count=0,
            error_count=0,
            error_details=report.to_json(),
            status="failed",
        ))

    def _exclude_existing(self, event_id: int, rows: List[GuestRow], errors: List[RowError]) -> List[GuestRow]:
        """Reclassify rows whose qr code or email is already stored for the event."""
        existing_codes = self._existing_values(Guest.qr_code, event_id, [row.qr_code for row in rows])
        existing_emails = self._existing_values(Guest.email, event_id, [row.email for row in rows if row.email])

        remaining = []
        for row in rows:
            if row.qr_code in existing_codes:
                errors.append(RowError(row.row, "duplicate", duplicate_message(ConflictKind.QR_CODE, row)))
            elif row.email and row.email in existing_emails:
                errors.append(RowError(row.row, "duplicate", duplicate_message(ConflictKind.EMAIL, row)))
            else:
                remaining.append(row)
        return remaining

    def _existing_values(self, column, event_id: int, values: Iterable[str]) -> Set[str]:
        values = list(values)
        found: Set[str] = set()
        for start in range(0, len(values), _LOOKUP_CHUNK):
            chunk = values[start:start + _LOOKUP_CHUNK]
            stmt = select(column).where(Guest.event_id == event_id, column.in_(chunk))
            found.update(self.db.scalars(stmt))
        return found

    def _insert(self, event_id: int, rows: List[GuestRow], errors: List[RowError]) -> int:
        logger.info(f"   → Executing bulk INSERT for {len(rows)} guests")
        try:
            self.db.add_all([row.to_guest(event_id) for row in rows])
            self.db.commit()
            return len(rows)
        except IntegrityError as e:
            self.db.rollback()
            if classify_conflict(e) is None:
                return self._fail_batch(rows, errors, e)
            # Another import won the race for some keys; find out which rows conflict
            logger.warning(f"⚠️ [Import Guests] Bulk insert conflicted, retrying row by row: {e.orig}")
            return self._insert_each(event_id, rows, errors)
        except SQLAlchemyError as e:
            self.db.rollback()
            return self._fail_batch(rows, errors, e)

    def _insert_each(self, event_id: int, rows: List[GuestRow], errors: List[RowError]) -> int:
        inserted = 0
        for row in rows:
            try:
                self.db.add(row.to_guest(event_id))
                self.db.commit()
                inserted += 1
            except IntegrityError as e:
                self.db.rollback()
                kind = classify_conflict(e)
                if kind is None:
                    errors.append(RowError(row.row, "database", f"Erro no banco: {e.orig}"))
                else:
                    errors.append(RowError(row.row, "duplicate", duplicate_message(kind, row)))
        return inserted

    def _fail_batch(self, rows: List[GuestRow], errors: List[RowError], exc: SQLAlchemyError) -> int:
        logger.error(f"❌ [Import Guests] Insert error: {exc}")
        reason = getattr(exc, "orig", None) or exc
        errors.extend(RowError(row.row, "database", f"Erro no banco: {reason}") for row in rows)
        return 0

    def _record_import_log(self, result: ImportResult) -> Optional[int]:
        report = DetailedErrorReport.build(result.errors, result.duration_ms)
        return self._write_log(ImportLog(
            event_id=result.event_id,
            filename=result.filename,
            total_rows=result.total_rows,
            inserted_count=result.inserted,
            error_count=result.error_count,
            error_details=report.to_json(),
            status=result.status,
        ))

    def _write_log(self, log: ImportLog) -> Optional[int]:
        # The audit trail must never block the import response
        try:
            self.db.add(log)
            self.db.commit()
            return log.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ [Import Guests] Failed to save import log: {e}")
            return None
