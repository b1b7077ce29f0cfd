"""
Identity gate for the drafts API.

Session resolution belongs to the surrounding application; this gate only
verifies a signed bearer token carrying the owner id, and rejects the call
before any reconciliation runs.
"""

from typing import Optional

from fastapi import Header
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import Settings, get_settings
from .errors import AuthError

TOKEN_SALT = "draft-sync.owner"


def _serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.secret_key, salt=TOKEN_SALT)


def issue_token(owner_id: str, settings: Optional[Settings] = None) -> str:
    """Sign an owner id into a bearer token."""
    if not owner_id:
        raise ValueError("owner_id must not be empty")
    return _serializer(settings or get_settings()).dumps(owner_id)


def resolve_owner(token: str, settings: Optional[Settings] = None) -> str:
    """Verify a bearer token and return the owner id it carries.

    Raises:
        AuthError: token is missing, tampered with or expired
    """
    settings = settings or get_settings()
    if not token:
        raise AuthError("Authentication required")
    try:
        owner_id = _serializer(settings).loads(
            token, max_age=settings.access_token_expire_minutes * 60
        )
    except SignatureExpired as e:
        raise AuthError("Session expired") from e
    except BadSignature as e:
        raise AuthError("Authentication required") from e

    if not isinstance(owner_id, str) or not owner_id:
        raise AuthError("Authentication required")
    return owner_id


def get_current_owner(authorization: Optional[str] = Header(default=None)) -> str:
    """FastAPI dependency: owner id from ``Authorization: Bearer <token>``."""
    if not authorization:
        raise AuthError("Authentication required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        raise AuthError("Authentication required")
    return resolve_owner(token.strip())
