class RSVPError(Exception):
    """Base class for errors raised by the service layer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RSVPError):
    """Unknown guid, qr code, guest or event."""


class InvalidRequestError(RSVPError):
    """Input rejected before it reaches the store (bad file, missing selector...)."""

    def __init__(self, message: str, payload: dict = None):
        super().__init__(message)
        self.payload = payload


class EmailTransportError(RSVPError):
    """The SMTP relay refused or failed to deliver a message."""
