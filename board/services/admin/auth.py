"""Administrator authentication.

Credentials are compared against two configured secrets. A successful login
yields an AdminSession with a fixed lifetime; it travels as an HMAC-SHA256
signed token and its expiry is checked on every privileged call.
"""
import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from board.config import get_settings
from board.core.errors import AuthorizationError, ConfigurationError
from board.utils.logging import get_logger

logger = get_logger()


@dataclass
class AdminSession:
    """Authenticated administrator session."""
    id: str
    is_admin: bool
    logged_in_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "isAdmin": self.is_admin,
            "loggedInAt": self.logged_in_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }


def _session_lifetime() -> timedelta:
    return timedelta(hours=get_settings().admin_session_hours)


def admin_login(admin_id: str, password: str) -> AdminSession:
    """Authenticate administrator credentials.

    Security:
    - Timing-safe comparison of both values (hmac.compare_digest)
    - Fail-closed: rejects if secrets not configured

    Raises:
        ConfigurationError: If ADMIN_ID or ADMIN_PASSWORD not set
        AuthorizationError: If credentials do not match
    """
    settings = get_settings()
    if not settings.admin_id or not settings.admin_password:
        raise ConfigurationError("Admin credentials are not configured")

    id_ok = hmac.compare_digest((admin_id or "").encode(), settings.admin_id.encode())
    password_ok = hmac.compare_digest((password or "").encode(), settings.admin_password.encode())
    if not (id_ok and password_ok):
        logger.warning("admin_login_failed")
        raise AuthorizationError("Invalid administrator ID or password.")

    now = datetime.now(timezone.utc)
    session = AdminSession(id=settings.admin_id, is_admin=True, logged_in_at=now, expires_at=now + _session_lifetime())
    logger.info("admin_login", admin_id=session.id, expires_at=session.expires_at.isoformat())
    return session


def require_admin(session: Optional[AdminSession]) -> AdminSession:
    """Check an admin session before a privileged call.

    Raises:
        AuthorizationError: If session missing, not admin or expired
    """
    if session is None or not session.is_admin:
        raise AuthorizationError("Administrator access required.")
    if session.is_expired():
        raise AuthorizationError("Administrator session expired. Please log in again.")
    return session


def refresh_session(session: AdminSession) -> AdminSession:
    """Extend a still-valid session by one full lifetime from now."""
    require_admin(session)
    session = AdminSession(
        id=session.id,
        is_admin=True,
        logged_in_at=session.logged_in_at,
        expires_at=datetime.now(timezone.utc) + _session_lifetime(),
    )
    logger.debug("admin_session_refreshed", admin_id=session.id)
    return session


def _signing_key() -> bytes:
    secret = get_settings().admin_session_secret
    if not secret:
        raise ConfigurationError("ADMIN_SESSION_SECRET not configured")
    return secret.encode()


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def encode_session_token(session: AdminSession) -> str:
    """Serialize session as "<payload>.<hmac-sha256 hex>"."""
    payload = _b64encode(json.dumps({
        "id": session.id,
        "iat": int(session.logged_in_at.timestamp()),
        "exp": int(session.expires_at.timestamp()),
    }, separators=(",", ":")).encode())
    signature = hmac.new(_signing_key(), payload.encode(), hashlib.sha256).hexdigest()
    return f"{payload}.{signature}"


def decode_session_token(token: Optional[str]) -> AdminSession:
    """Verify a signed token and return its live session.

    Raises:
        AuthorizationError: If token missing, malformed, forged or expired
        ConfigurationError: If ADMIN_SESSION_SECRET not set
    """
    if not token or "." not in token:
        raise AuthorizationError("Administrator access required.")

    payload, signature = token.rsplit(".", 1)
    expected = hmac.new(_signing_key(), payload.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature, expected):
        logger.warning("admin_token_invalid_signature")
        raise AuthorizationError("Invalid administrator session.")

    try:
        claims = json.loads(_b64decode(payload))
        session = AdminSession(
            id=claims["id"],
            is_admin=True,
            logged_in_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise AuthorizationError("Invalid administrator session.") from e

    return require_admin(session)
