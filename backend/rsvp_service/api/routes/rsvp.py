import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from rsvp_service.api.deps import get_email_sender, get_guest_service
from rsvp_service.api.errors import to_http_exception
from rsvp_service.core.config import settings
from rsvp_service.core.deps import get_current_admin
from rsvp_service.core.exceptions import RSVPError
from rsvp_service.models import Guest
from rsvp_service.schemas import (
    ConfirmByEmailRequest,
    EventResult,
    GuestDetail,
    GuestImageResponse,
    GuestListResponse,
    GuestResponse,
    GuestResult,
    GuestStatsResult,
    RSVPResponse,
    RSVPUpdateRequest,
)
from rsvp_service.services.email_sender import EmailSender
from rsvp_service.services.guest_queries import GuestQueryService, parse_event_filter
from rsvp_service.services.invite_images import resolve_invite_image

router = APIRouter()
logger = logging.getLogger(__name__)


def send_confirmation_best_effort(sender: EmailSender, guest: Guest) -> Optional[bool]:
    """
    Email delivery never decides the outcome of a guest's RSVP.
    Returns None when no email was attempted.
    """
    if not settings.SEND_CONFIRMATION_EMAILS or not guest.email:
        return None
    try:
        return sender.send_confirmation(guest).success
    except Exception as e:
        logger.error(f"❌ [RSVP] Confirmation email for guest {guest.id} failed: {e}", exc_info=True)
        return False


# ==============================================================================
# 1. GUEST BY GUID
# ==============================================================================
@router.get("/rsvp", response_model=GuestResponse)
def get_rsvp(
    guid: Optional[str] = None,
    guests: GuestQueryService = Depends(get_guest_service),
):
    """Get guest (and event) by GUID"""
    if not guid:
        raise HTTPException(status_code=400, detail="GUID is required")
    try:
        return GuestResponse(guest=GuestDetail.model_validate(guests.get_by_guid(guid)))
    except RSVPError as e:
        raise to_http_exception(e)


@router.get("/rsvp/guest", response_model=GuestResponse)
def get_guest(
    guid: Optional[str] = None,
    guests: GuestQueryService = Depends(get_guest_service),
):
    """Guest details for the confirmation page"""
    logger.info(f"[Guest API] Received GUID: {guid}")
    if not guid:
        raise HTTPException(status_code=400, detail="GUID do convidado é obrigatório")
    try:
        return GuestResponse(guest=GuestDetail.model_validate(guests.get_by_guid(guid)))
    except RSVPError as e:
        raise to_http_exception(e)


# ==============================================================================
# 2. UPDATE RSVP STATUS
# ==============================================================================
@router.post("/rsvp", response_model=RSVPResponse)
def update_rsvp(
    payload: RSVPUpdateRequest,
    guests: GuestQueryService = Depends(get_guest_service),
    sender: EmailSender = Depends(get_email_sender),
):
    """
    Confirm or decline an invitation.
    A confirmation triggers the confirmation email; its failure is reported
    in `emailSent` but never fails the request.
    """
    if not payload.guid or not payload.status:
        raise HTTPException(status_code=400, detail="GUID and status are required")

    try:
        guest = guests.update_status(payload.guid, payload.status)
    except RSVPError as e:
        raise to_http_exception(e)

    email_sent = None
    if guest.status == "confirmed":
        email_sent = send_confirmation_best_effort(sender, guest)
        message = "Presença confirmada com sucesso!"
    else:
        message = "Presença recusada. Obrigado por avisar!"

    return RSVPResponse(
        guest=GuestDetail.model_validate(guest),
        message=message,
        email_sent=email_sent,
    )


@router.post("/rsvp/confirm-by-email", response_model=RSVPResponse)
def confirm_by_email(
    payload: ConfirmByEmailRequest,
    guests: GuestQueryService = Depends(get_guest_service),
    sender: EmailSender = Depends(get_email_sender),
):
    """Confirm presence for a pre-invited email address"""
    if not payload.email or not (payload.event_slug or payload.event_id is not None):
        raise HTTPException(status_code=400, detail="Email e evento são obrigatórios")

    try:
        guest = guests.confirm_by_email(
            payload.email,
            event_slug=payload.event_slug,
            event_id=payload.event_id,
        )
    except RSVPError as e:
        raise to_http_exception(e)

    return RSVPResponse(
        guest=GuestDetail.model_validate(guest),
        message="Presença confirmada com sucesso!",
        email_sent=send_confirmation_best_effort(sender, guest),
    )


# ==============================================================================
# 3. INVITE IMAGES
# ==============================================================================
@router.get("/rsvp/guest-image", response_model=GuestImageResponse)
def get_guest_image(
    qr_code: Optional[str] = Query(None, alias="qrCode"),
    event_id: Optional[int] = Query(None, alias="eventId"),
    guests: GuestQueryService = Depends(get_guest_service),
):
    """Invite image as a data URI, from the database or the published files"""
    if not qr_code:
        raise HTTPException(status_code=400, detail="QR code é obrigatório")
    if event_id is None:
        raise HTTPException(status_code=400, detail="Event ID é obrigatório")

    logger.info(f"🖼️  [Guest Image] Fetching image for QR: {qr_code}, Event: {event_id}")
    try:
        event = guests.get_event(event_id)
    except RSVPError as e:
        raise to_http_exception(e)

    guest = guests.get_by_code(qr_code, event.id)
    image = resolve_invite_image(
        event, qr_code, settings.INVITES_DIR, guest.invite_image_base64 if guest else None
    )
    if image is None:
        raise HTTPException(status_code=404, detail="Convite não encontrado")

    return GuestImageResponse(source=image.source, image_data=image.data_uri)


@router.get("/rsvp/invite-image/{guid}")
def get_invite_image(
    guid: str,
    guests: GuestQueryService = Depends(get_guest_service),
):
    """Raw invite image, linked from the confirmation email"""
    try:
        guest = guests.get_by_guid(guid)
    except RSVPError as e:
        raise to_http_exception(e)

    image = None
    if guest.event is not None:
        image = resolve_invite_image(
            guest.event, guest.invite_code, settings.INVITES_DIR, guest.invite_image_base64
        )
    if image is None:
        raise HTTPException(status_code=404, detail="Convite não encontrado")

    return Response(
        content=image.content,
        media_type=image.mime_type,
        headers={"Content-Disposition": f'inline; filename="{image.attachment_filename(guest.invite_code)}"'},
    )


# ==============================================================================
# 4. LIST GUESTS (Admin, with filters, stats & export)
# ==============================================================================
@router.get(
    "/rsvp/list",
    response_model=GuestListResponse,
    dependencies=[Depends(get_current_admin)],
)
def list_guests(
    status: Optional[str] = None,
    event_id: Optional[str] = None,
    search: Optional[str] = None,
    export: bool = False,
    guests: GuestQueryService = Depends(get_guest_service),
):
    """
    Guests matching the filters, newest first.
    Optional: ?status=confirmed&event_id=3&search=ana, ?export=true lifts the page cap.
    Stats only follow the event filter.
    """
    try:
        listing = guests.list_guests(
            status=status,
            event_id=parse_event_filter(event_id),
            search=search,
            export=export,
            limit=settings.GUEST_LIST_LIMIT,
        )
    except RSVPError as e:
        raise to_http_exception(e)

    return GuestListResponse(
        guests=[GuestResult.model_validate(guest) for guest in listing.guests],
        stats=GuestStatsResult.model_validate(listing.stats),
        events=[EventResult.model_validate(event) for event in listing.events],
    )
