# src/auth/services.py
import logging

from sqlalchemy.orm import Session
from jose import JWTError, jwt
from datetime import datetime, timezone
from typing import Optional
from auth.models import User
from config import settings

logger = logging.getLogger(__name__)

class AuthService:
    @staticmethod
    def decode_subject(token: str) -> Optional[str]:
        """Return the token subject (user email) or None if the token is unusable."""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM], options={"verify_exp": True})
        except JWTError as e:
            logger.info(f"Rejected bearer token: {str(e)}")
            return None
        exp = payload.get("exp")
        if exp is None or datetime.fromtimestamp(exp, tz=timezone.utc) < datetime.now(timezone.utc):
            return None
        return payload.get("sub")

    @staticmethod
    def get_user_by_email(email: str, db: Session) -> Optional[User]:
        """Retrieve a user by email."""
        return db.query(User).filter(User.email == email).first()
