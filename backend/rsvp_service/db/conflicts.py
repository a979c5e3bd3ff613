"""Classify uniqueness violations reported by the store.

PostgreSQL drivers expose the SQLSTATE and the violated constraint name as
structured diagnostics; SQLite only reports the offending columns in the
message text. Both are turned into a ``ConflictKind`` here, once, so callers
never inspect driver messages themselves.
"""
import enum
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION = "23505"

GUEST_QR_CODE_CONSTRAINT = "uq_guests_event_qr_code"
GUEST_EMAIL_CONSTRAINT = "uq_guests_event_email"
GUEST_GUID_CONSTRAINT = "uq_guests_guid"

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")


class ConflictKind(str, enum.Enum):
    QR_CODE = "qr_code"
    EMAIL = "email"
    GUID = "guid"
    OTHER = "other"


_BY_CONSTRAINT = {
    GUEST_QR_CODE_CONSTRAINT: ConflictKind.QR_CODE,
    GUEST_EMAIL_CONSTRAINT: ConflictKind.EMAIL,
    GUEST_GUID_CONSTRAINT: ConflictKind.GUID,
}


def _constraint_name(orig) -> Optional[str]:
    diag = getattr(orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None):
        return diag.constraint_name
    return getattr(orig, "constraint_name", None)


def _columns_from_message(message: str) -> set:
    match = _SQLITE_UNIQUE.search(message)
    if not match:
        return set()
    return {
        column.strip().split(".")[-1]
        for column in match.group("columns").split(",")
        if column.strip()
    }


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate:
        return sqlstate == UNIQUE_VIOLATION
    return bool(_SQLITE_UNIQUE.search(str(orig)))


def classify_conflict(exc: IntegrityError) -> Optional[ConflictKind]:
    """Return the conflicting key, or ``None`` when this is not a uniqueness violation."""
    if not is_unique_violation(exc):
        return None

    name = _constraint_name(exc.orig)
    if name:
        return _BY_CONSTRAINT.get(name, ConflictKind.OTHER)

    columns = _columns_from_message(str(exc.orig))
    if "qr_code" in columns:
        return ConflictKind.QR_CODE
    if "email" in columns:
        return ConflictKind.EMAIL
    if "guid" in columns:
        return ConflictKind.GUID
    return ConflictKind.OTHER
