from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response envelopes are camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------------------
# Events & guests (snake_case, mirrors the tables)
# ------------------------------------------------------------------------------
class EventResult(BaseModel):
    id: int
    name: str
    name_en: Optional[str] = None
    slug: str
    template_name: Optional[str] = None
    event_date: Optional[datetime] = None
    location: Optional[str] = None
    location_en: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class EventDetail(EventResult):
    description: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    welcome_message: Optional[str] = None
    show_qr_code: bool = True
    show_event_details: bool = True


class GuestResult(BaseModel):
    id: int
    guid: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    qr_code: Optional[str] = None
    event_id: Optional[int] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    event: Optional[EventResult] = None

    model_config = ConfigDict(from_attributes=True)


class GuestDetail(GuestResult):
    event: Optional[EventDetail] = None
    has_invite_image: bool = False


# ------------------------------------------------------------------------------
# RSVP
# ------------------------------------------------------------------------------
class RSVPUpdateRequest(BaseModel):
    guid: Optional[str] = None
    status: Optional[str] = None


class ConfirmByEmailRequest(CamelModel):
    email: Optional[EmailStr] = None
    event_slug: Optional[str] = None
    event_id: Optional[int] = None


class GuestResponse(CamelModel):
    success: bool = True
    guest: GuestDetail


class RSVPResponse(CamelModel):
    success: bool = True
    guest: GuestDetail
    message: str
    email_sent: Optional[bool] = None


class GuestImageResponse(CamelModel):
    success: bool = True
    source: str
    image_data: str


# ------------------------------------------------------------------------------
# Guest listing
# ------------------------------------------------------------------------------
class GuestStatsResult(BaseModel):
    total: int
    confirmed: int
    declined: int
    pending: int

    model_config = ConfigDict(from_attributes=True)


class GuestListResponse(BaseModel):
    guests: List[GuestResult]
    stats: GuestStatsResult
    events: List[EventResult]


# ------------------------------------------------------------------------------
# CSV import
# ------------------------------------------------------------------------------
class RowErrorResult(BaseModel):
    row: int
    type: str
    message: str

    model_config = ConfigDict(from_attributes=True)


class ImportStats(CamelModel):
    total_rows: int
    inserted: int
    errors: int
    error_details: List[RowErrorResult]
    summary: Dict[str, int]
    duration_ms: int


class ImportResponse(CamelModel):
    success: bool
    status: str
    message: str
    stats: ImportStats
    import_log_id: Optional[int] = None

    @classmethod
    def from_result(cls, result) -> "ImportResponse":
        return cls(
            success=result.status != "failed",
            status=result.status,
            message=result.message,
            import_log_id=result.import_log_id,
            stats=ImportStats(
                total_rows=result.total_rows,
                inserted=result.inserted,
                errors=result.error_count,
                error_details=[RowErrorResult.model_validate(error) for error in result.errors],
                summary=result.summary,
                duration_ms=result.duration_ms,
            ),
        )


class ErrorReportResult(CamelModel):
    kind: str  # legacy | detailed
    errors: List[RowErrorResult]
    summary: Dict[str, int]
    duration_ms: Optional[int] = None


class ImportLogResult(CamelModel):
    id: int
    event_id: Optional[int] = None
    event_name: Optional[str] = None
    filename: Optional[str] = None
    total_rows: int
    inserted_count: int
    error_count: int
    status: str
    error_report: ErrorReportResult
    created_at: Optional[datetime] = None


class ImportLogsResponse(CamelModel):
    success: bool = True
    logs: List[ImportLogResult]


# ------------------------------------------------------------------------------
# Invite images upload
# ------------------------------------------------------------------------------
class DatabaseUploadStatsResult(CamelModel):
    total: int
    updated: int
    not_found: int
    files: List[str]
    not_found_files: List[str]
    invalid_files: List[str]

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class FilesystemUploadStatsResult(CamelModel):
    total: int
    replaced: int
    new: int
    files: List[str]

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class DatabaseUploadResponse(CamelModel):
    success: bool = True
    message: str = "Upload realizado com sucesso"
    stats: DatabaseUploadStatsResult


class FilesystemUploadResponse(CamelModel):
    success: bool = True
    message: str = "Upload realizado com sucesso"
    stats: FilesystemUploadStatsResult


# ------------------------------------------------------------------------------
# Email
# ------------------------------------------------------------------------------
class SendConfirmationRequest(CamelModel):
    guest_id: Optional[int] = None
    guid: Optional[str] = None


class SendConfirmationResponse(CamelModel):
    success: bool = True
    message: str = "Email sent successfully"
    message_id: Optional[str] = None
    recipient: str
