"""Row errors and the error reports stored on ``ImportLog.error_details``.

Older import logs stored a bare list of row errors; current ones store an
object with the errors, per-type counts and the import duration. Stored JSON
is resolved into one of the two report variants by ``parse_error_report``
and nowhere else.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Union

ERROR_TYPES = ("parse", "validation", "duplicate", "database")


@dataclass(frozen=True)
class RowError:
    row: int
    type: str
    message: str

    def to_dict(self) -> dict:
        return {"row": self.row, "type": self.type, "message": self.message}

    @classmethod
    def from_dict(cls, raw: dict) -> "RowError":
        # Legacy rows only carried {"row", "error"}
        return cls(
            row=int(raw.get("row", 0)),
            type=raw.get("type") or "parse",
            message=raw.get("message") or raw.get("error") or "",
        )


def summarize(errors: List[RowError]) -> Dict[str, int]:
    counts = Counter(error.type for error in errors)
    return {error_type: counts.get(error_type, 0) for error_type in ERROR_TYPES}


@dataclass(frozen=True)
class LegacyErrorReport:
    errors: List[RowError]
    kind: str = field(default="legacy", init=False)

    @property
    def summary(self) -> Dict[str, int]:
        return summarize(self.errors)

    def to_json(self) -> list:
        return [error.to_dict() for error in self.errors]


@dataclass(frozen=True)
class DetailedErrorReport:
    errors: List[RowError]
    summary: Dict[str, int]
    duration_ms: int
    kind: str = field(default="detailed", init=False)

    @classmethod
    def build(cls, errors: List[RowError], duration_ms: int) -> "DetailedErrorReport":
        return cls(errors=list(errors), summary=summarize(errors), duration_ms=duration_ms)

    def to_json(self) -> dict:
        return {
            "errors": [error.to_dict() for error in self.errors],
            "summary": dict(self.summary),
            "duration_ms": self.duration_ms,
        }


ErrorReport = Union[LegacyErrorReport, DetailedErrorReport]


def parse_error_report(raw) -> ErrorReport:
    if raw is None:
        return LegacyErrorReport(errors=[])
    if isinstance(raw, list):
        return LegacyErrorReport(errors=[RowError.from_dict(item) for item in raw])
    if isinstance(raw, dict):
        errors = [RowError.from_dict(item) for item in raw.get("errors") or []]
        summary = raw.get("summary") or summarize(errors)
        return DetailedErrorReport(
            errors=errors,
            summary={error_type: int(summary.get(error_type, 0)) for error_type in ERROR_TYPES},
            duration_ms=int(raw.get("duration_ms") or raw.get("durationMs") or 0),
        )
    raise ValueError(f"Unsupported error report payload: {type(raw).__name__}")
