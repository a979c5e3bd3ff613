import logging

from fastapi import APIRouter, Depends, HTTPException

from rsvp_service.api.deps import get_email_sender, get_guest_service
from rsvp_service.api.errors import to_http_exception
from rsvp_service.core.deps import get_current_admin
from rsvp_service.core.exceptions import RSVPError
from rsvp_service.schemas import SendConfirmationRequest, SendConfirmationResponse
from rsvp_service.services.email_sender import EmailSender
from rsvp_service.services.guest_queries import GuestQueryService

router = APIRouter(dependencies=[Depends(get_current_admin)])
logger = logging.getLogger(__name__)


@router.post("/send-confirmation", response_model=SendConfirmationResponse)
def send_confirmation(
    payload: SendConfirmationRequest,
    guests: GuestQueryService = Depends(get_guest_service),
    sender: EmailSender = Depends(get_email_sender),
):
    """Send (or resend) the confirmation email for a confirmed guest"""
    if payload.guest_id is None and not payload.guid:
        raise HTTPException(status_code=400, detail="guestId or guid is required")

    try:
        if payload.guest_id is not None:
            guest = guests.get_by_id(payload.guest_id)
        else:
            guest = guests.get_by_guid(payload.guid)
    except RSVPError as e:
        raise to_http_exception(e)

    if not guest.email:
        raise HTTPException(status_code=400, detail="Guest does not have an email address")
    if guest.status != "confirmed":
        raise HTTPException(status_code=400, detail="Guest has not confirmed attendance")
    if guest.event is None:
        raise HTTPException(status_code=404, detail="Event not found for this guest")
    if not guest.event.is_active:
        raise HTTPException(status_code=400, detail="Event is not active")

    try:
        result = sender.send_confirmation(guest)
    except RSVPError as e:
        raise to_http_exception(e)

    if not result.success:
        logger.error(f"❌ [Send Confirmation] Guest {guest.id}: {result.error}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to send email", "details": result.error},
        )

    return SendConfirmationResponse(message_id=result.message_id, recipient=guest.email)
