"""Signed-in user identity and authorization guards.

Sign-in itself (Google OAuth, anonymous) is handled by Firebase Auth; this
module only consumes what it hands over.
"""
from dataclasses import dataclass
from typing import Optional

from board.core.errors import AuthorizationError

GUEST_DISPLAY_NAME = "Guest"


@dataclass
class BoardUser:
    """User as supplied by the auth provider."""
    uid: str
    display_name: str = ""
    email: Optional[str] = None
    photo_url: Optional[str] = None
    is_anonymous: bool = False

    @classmethod
    def from_claims(cls, claims: dict) -> "BoardUser":
        """Build from verified Firebase ID token claims."""
        firebase_claims = claims.get("firebase") or {}
        is_anonymous = firebase_claims.get("sign_in_provider") == "anonymous"
        return cls(
            uid=claims["uid"] if "uid" in claims else claims["sub"],
            display_name=GUEST_DISPLAY_NAME if is_anonymous else (claims.get("name") or "User"),
            email=claims.get("email"),
            photo_url=claims.get("picture"),
            is_anonymous=is_anonymous,
        )

    def author(self) -> dict:
        """Author sub-document stored on posts and comments."""
        data = {"name": self.display_name or GUEST_DISPLAY_NAME}
        if self.photo_url and not self.is_anonymous:
            data["photoURL"] = self.photo_url
        return data


def require_registered(user: BoardUser, action: str) -> None:
    """Reject guest (anonymous) users.

    Raises:
        AuthorizationError: If user is anonymous
    """
    if user.is_anonymous:
        raise AuthorizationError(f"Guests cannot {action}. Sign in to continue.")


def require_author(author_id: Optional[str], caller_uid: str, action: str, resource: str = "post") -> None:
    """Reject callers that did not author the resource.

    Raises:
        AuthorizationError: If caller_uid differs from author_id
    """
    if author_id != caller_uid:
        raise AuthorizationError(f"You can only {action} your own {resource}.")
