import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt
from lunaxcode.core.config import SECRET_KEY, ALGORITHM

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """
    Return the subject (user email) of a valid token.

    Raises:
        jose.JWTError: signature, expiry or format is invalid
    """
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    return payload.get("sub")
