import secrets
import uuid

from rsvp_service.core.config import settings


def generate_guest_guid() -> str:
    """Generate the opaque invitation token for a guest"""
    return str(uuid.uuid4())


def verify_admin_password(password: str, expected: str = None) -> bool:
    """Constant-time comparison against the configured admin secret"""
    expected = settings.ADMIN_PASSWORD if expected is None else expected
    if not password or not expected:
        return False
    return secrets.compare_digest(password.encode(), expected.encode())
