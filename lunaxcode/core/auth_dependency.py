from dataclasses import dataclass
from typing import Optional
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from lunaxcode.core.dependencies import get_storage
from lunaxcode.core.errors import APIError
from lunaxcode.core.security import decode_access_token
from lunaxcode.services.storage import Storage

# Tokens are issued by the portal; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


@dataclass
class CurrentUser:
    id: str
    email: str
    role: str = "client"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """Get current user email from JWT token."""
    if not token:
        raise APIError(401, "UNAUTHORIZED", "Authentication required")
    try:
        email = decode_access_token(token)
    except JWTError:
        raise APIError(401, "UNAUTHORIZED", "Authentication required")
    if not email:
        raise APIError(401, "UNAUTHORIZED", "Authentication required")
    return email


def get_current_user_obj(
    email: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> CurrentUser:
    """Resolve the caller. Without a user row the email doubles as the user id."""
    user = storage.get_user_by_email(email)
    if user is None:
        return CurrentUser(id=email, email=email)
    return CurrentUser(id=user.id, email=user.email, role=user.role)


def require_admin(user: CurrentUser = Depends(get_current_user_obj)) -> CurrentUser:
    if not user.is_admin:
        raise APIError(403, "FORBIDDEN", "Admin access required")
    return user
