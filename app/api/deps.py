import logging
from dataclasses import dataclass, field
from typing import List, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import decode_access_token
from app.models import models

logger = logging.getLogger("library.auth")

bearer = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    identity: str
    roles: List[str] = field(default_factory=list)
    jti: Optional[str] = None
    expires: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return models.ROLE_ADMIN in self.roles


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
                     db: Session = Depends(get_db)) -> CurrentUser:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated",
                            headers={"WWW-Authenticate": "Bearer"})
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token",
                            headers={"WWW-Authenticate": "Bearer"})
    jti = payload.get("jti")
    if jti and db.query(models.RevokedToken).filter(models.RevokedToken.jti == jti).first():
        raise HTTPException(status_code=401, detail="Token has been revoked",
                            headers={"WWW-Authenticate": "Bearer"})
    user = db.query(models.User).filter(models.User.user_name == payload.get("sub")).first()
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists",
                            headers={"WWW-Authenticate": "Bearer"})
    return CurrentUser(identity=user.user_name, roles=user.roles, jti=jti,
                       expires=payload.get("exp"))


def require_admin(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return current
