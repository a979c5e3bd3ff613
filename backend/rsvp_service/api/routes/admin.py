import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rsvp_service.api.deps import get_guest_importer, get_invite_uploader
from rsvp_service.api.errors import to_http_exception
from rsvp_service.core.config import settings
from rsvp_service.core.deps import get_current_admin
from rsvp_service.core.exceptions import RSVPError
from rsvp_service.db.session import get_db
from rsvp_service.models import ImportLog
from rsvp_service.schemas import (
    DatabaseUploadResponse,
    DatabaseUploadStatsResult,
    ErrorReportResult,
    FilesystemUploadResponse,
    FilesystemUploadStatsResult,
    ImportLogResult,
    ImportLogsResponse,
    ImportResponse,
    RowErrorResult,
)
from rsvp_service.services.guest_importer import GuestImporter
from rsvp_service.services.import_reports import parse_error_report
from rsvp_service.services.invite_uploader import InviteImageUploader

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


async def read_upload(file: UploadFile, extension: str) -> bytes:
    """Validate the file type and size, return its content"""
    if not file or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Arquivo não fornecido")

    if not file.filename.lower().endswith(extension):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file format. Please upload a {extension} file."
        )

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (max {settings.MAX_UPLOAD_SIZE_MB}MB)"
        )
    return content


# ==============================================================================
# 1. BATCH CSV IMPORT
# ==============================================================================
@router.post("/import-guests", response_model=ImportResponse)
async def import_guests(
    file: UploadFile = File(None),
    event_id: Optional[int] = Form(None, alias="eventId"),
    importer: GuestImporter = Depends(get_guest_importer),
):
    """
    Bulk import guests into one event.
    CSV columns (header ignored): qrcode,nome,email,celular
    """
    if event_id is None:
        raise HTTPException(status_code=400, detail="Event ID não fornecido")

    content = await read_upload(file, ".csv")
    logger.info(f"📊 [Import Guests] {file.filename} ({len(content)} bytes) for event {event_id}")

    try:
        result = importer.import_csv(event_id, file.filename, content)
    except RSVPError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"❌ [Import Guests] Error: {e}", exc_info=True)
        importer.record_failure(event_id, file.filename, f"Erro ao processar importação: {e}")
        raise HTTPException(status_code=500, detail="Erro ao processar importação")

    response = ImportResponse.from_result(result)
    if result.valid_rows == 0:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Nenhum convidado válido encontrado no arquivo",
                "stats": response.stats.model_dump(by_alias=True),
            },
        )
    if result.inserted == 0 and result.summary["database"]:
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Erro ao inserir convidados",
                "stats": response.stats.model_dump(by_alias=True),
            },
        )
    return response


# ==============================================================================
# 2. IMPORT LOGS
# ==============================================================================
@router.get("/import-logs", response_model=ImportLogsResponse)
def get_import_logs(
    event_id: Optional[int] = Query(None, alias="eventId"),
    limit: int = Query(settings.IMPORT_LOGS_DEFAULT_LIMIT, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Most recent import attempts, newest first"""
    query = (
        select(ImportLog)
        .options(selectinload(ImportLog.event))
        .order_by(ImportLog.created_at.desc(), ImportLog.id.desc())
        .limit(limit)
    )
    if event_id is not None:
        query = query.where(ImportLog.event_id == event_id)

    logs = []
    for log in db.scalars(query):
        report = parse_error_report(log.error_details)
        logs.append(ImportLogResult(
            id=log.id,
            event_id=log.event_id,
            event_name=log.event.name if log.event else None,
            filename=log.filename,
            total_rows=log.total_rows,
            inserted_count=log.inserted_count,
            error_count=log.error_count,
            status=log.status,
            created_at=log.created_at,
            error_report=ErrorReportResult(
                kind=report.kind,
                errors=[RowErrorResult.model_validate(error) for error in report.errors],
                summary=report.summary,
                duration_ms=getattr(report, "duration_ms", None),
            ),
        ))

    logger.info(f"✅ [Import Logs] Found {len(logs)} logs")
    return ImportLogsResponse(logs=logs)


# ==============================================================================
# 3. INVITE IMAGES (ZIP)
# ==============================================================================
@router.post("/upload-invites-db", response_model=DatabaseUploadResponse)
async def upload_invites_to_database(
    file: UploadFile = File(None),
    event_id: Optional[int] = Form(None, alias="eventId"),
    uploader: InviteImageUploader = Depends(get_invite_uploader),
):
    """
    Store invite images on the guest rows.
    ZIP entries must be named {qrCode}-{eventSlug}.{png|jpg|jpeg}
    """
    if event_id is None:
        raise HTTPException(status_code=400, detail="Evento inválido")

    content = await read_upload(file, ".zip")
    logger.info(f"📦 [Upload DB] {file.filename} ({len(content)} bytes) for event {event_id}")

    try:
        stats = uploader.upload_to_database(event_id, content)
    except RSVPError as e:
        raise to_http_exception(e)

    return DatabaseUploadResponse(stats=DatabaseUploadStatsResult.model_validate(stats))


@router.post("/upload-invites", response_model=FilesystemUploadResponse)
async def upload_invites_to_filesystem(
    file: UploadFile = File(None),
    event_id: Optional[int] = Form(None, alias="eventId"),
    uploader: InviteImageUploader = Depends(get_invite_uploader),
):
    """Extract invite images into the event's folder under INVITES_DIR"""
    if event_id is None:
        raise HTTPException(status_code=400, detail="Evento inválido")

    content = await read_upload(file, ".zip")
    logger.info(f"📦 [Upload] {file.filename} ({len(content)} bytes) for event {event_id}")

    try:
        stats = uploader.upload_to_filesystem(event_id, content)
    except RSVPError as e:
        raise to_http_exception(e)

    return FilesystemUploadResponse(stats=FilesystemUploadStatsResult.model_validate(stats))
