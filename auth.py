"""
=============================================================================
AUTH.PY — Authentication
=============================================================================
Handles:
  - Password hashing (passwords are never stored in plain text)
  - Issuing and verifying JWT access tokens
  - Resolving the current user from a token

Flow:
  1. The client sends email + password to /auth/login
  2. If they match, the server returns a signed JWT
  3. The client sends it on every request: "Authorization: Bearer <token>"
  4. get_current_user() verifies it and loads the User row

No token → 401. Valid token for a user that no longer exists → 404.
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from database import get_db
from models import User

logger = logging.getLogger("pawledger.auth")

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

SECRET_KEY = os.getenv("SECRET_KEY", "pawledger-dev-secret-key-change-in-production")
# SECRET_KEY → signs every JWT. Use a long random value in production.

ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_DAYS = 30


# ─────────────────────────────────────────────────────────────────────────────
# PASSWORD HASHING
# ─────────────────────────────────────────────────────────────────────────────
# bcrypt turns "my_password" into something like "$2b$12$LJ3m5..."
# One-way: the original password cannot be recovered from the hash.

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """False for accounts without a password (provisioned by an external login)"""
    if not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


# ─────────────────────────────────────────────────────────────────────────────
# JWT TOKENS
# ─────────────────────────────────────────────────────────────────────────────

def create_access_token(user_id: int, email: str) -> str:
    """
    The token carries:
      - sub: the user's id
      - email: for reference
      - exp: expiry
    signed with SECRET_KEY so it cannot be forged.
    """
    expire = datetime.utcnow() + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Payload of a valid token, None if it is invalid or expired"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCY: CURRENT USER
# ─────────────────────────────────────────────────────────────────────────────
# Used on every protected endpoint:
#   @app.get("/api/dashboard-data")
#   def dashboard(user: User = Depends(get_current_user)): ...

security = HTTPBearer(auto_error=False)
# auto_error=False → a missing header reaches get_current_user, which answers 401


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise _unauthorized("Unauthorized")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if user_id is None:
        raise _unauthorized("Token has no user id")

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None:
        logger.warning(f"⚠️ Token for missing user {user_id}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return user
