"""FastAPI dependencies for user and admin authentication.

Security:
- Users: Firebase ID token (Authorization: Bearer <token>) verified with
  firebase_admin.auth
- Admins: HMAC-SHA256 signed session token (X-Admin-Token), expiry checked
  on every request
- Fail-closed by default
"""
from typing import Optional

from fastapi import Header, HTTPException
from firebase_admin import auth as firebase_auth

from board.core.identity import BoardUser
from board.services.admin.auth import AdminSession, decode_session_token
from board.services.firebase import get_db
from board.utils.logging import get_logger

logger = get_logger("api")


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


async def get_current_user(authorization: Optional[str] = Header(None)) -> BoardUser:
    """Verify the Firebase ID token and return the signed-in user.

    Raises:
        HTTPException: 401 if token missing, invalid, expired or revoked
    """
    token = _bearer_token(authorization)
    get_db()  # initializes the Firebase app

    try:
        claims = firebase_auth.verify_id_token(token)
    except (firebase_auth.InvalidIdTokenError, ValueError) as e:
        logger.warning("id_token_rejected", error_type=type(e).__name__)
        raise HTTPException(status_code=401, detail="Invalid or expired ID token")

    return BoardUser.from_claims(claims)


async def get_admin_session(x_admin_token: Optional[str] = Header(None)) -> AdminSession:
    """Decode and verify the admin session token.

    Raises:
        AuthorizationError: If token missing, forged or expired (mapped to 403)
    """
    return decode_session_token(x_admin_token)
