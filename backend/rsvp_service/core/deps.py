from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from rsvp_service.core.security import verify_admin_password

# Admin requests carry the shared secret in this header
admin_password_header = APIKeyHeader(name="x-admin-password", auto_error=False)


def get_current_admin(password: str = Depends(admin_password_header)):
    """
    Validates the admin password header.
    If missing or wrong, raises 401 Unauthorized.
    """
    if not verify_admin_password(password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autorizado",
        )
    return {"role": "admin"}
