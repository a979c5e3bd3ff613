from fastapi import HTTPException, status

from rsvp_service.core.exceptions import InvalidRequestError, NotFoundError, RSVPError


def to_http_exception(exc: RSVPError) -> HTTPException:
    """Map a service-layer error onto the HTTP status the clients expect"""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, InvalidRequestError):
        detail = {"error": exc.message, **exc.payload} if exc.payload else exc.message
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
