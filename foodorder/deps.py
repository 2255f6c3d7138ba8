"""Identity resolution and the capability policy shared by every handler."""
import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .auth import decode_access_token
from .db import get_db

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

ELEVATED_ROLES = frozenset({"staff", "admin"})

ORDER_READ = "order:read"
ORDER_UPDATE = "order:update"
ORDER_DELETE = "order:delete"
PAYMENT_CREATE = "payment:create"

# capability -> whether the resource owner is granted it without an elevated role
POLICY = {
    ORDER_READ: True,
    ORDER_UPDATE: False,
    ORDER_DELETE: False,
    PAYMENT_CREATE: True,
}


def is_elevated(role: Optional[str]) -> bool:
    return (role or "").strip().lower() in ELEVATED_ROLES


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
                     db: Session = Depends(get_db)) -> models.User:
    if not creds:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        payload = decode_access_token(creds.credentials)
        user_id = int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def authorize(user: models.User, capability: str, owner_id: Optional[int] = None) -> None:
    """Raise 403 unless ``user`` holds ``capability`` for a resource owned by ``owner_id``."""
    if capability not in POLICY:
        raise ValueError(f"unknown capability: {capability}")
    if is_elevated(user.role):
        return
    if POLICY[capability] and owner_id is not None and owner_id == user.user_id:
        return
    logger.info("denied %s to user %s (owner %s)", capability, user.user_id, owner_id)
    raise HTTPException(status_code=403, detail="Forbidden")
