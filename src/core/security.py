"""Password hashing and bearer access tokens."""

import logging

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from src.core.config import settings
from src.core.errors import AuthenticationError


logger = logging.getLogger(__name__)

_TOKEN_SALT = "access-token"


def hash_password(password: str) -> str:
    """Hash a plaintext password with a fresh bcrypt salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("password_hash_malformed")
        return False


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(str(settings.secret_key), salt=_TOKEN_SALT)


def issue_access_token(*, user_id: str) -> str:
    """Sign an access token carrying the user id."""
    return _serializer().dumps({"sub": user_id})


def verify_access_token(token: str) -> str:
    """Resolve an access token to its user id.

    Raises:
        AuthenticationError: If the token is tampered, malformed or expired
    """
    try:
        payload = _serializer().loads(token, max_age=settings.access_token_max_age_seconds)
    except SignatureExpired as err:
        logger.info("access_token_expired")
        raise AuthenticationError("Token expired") from err
    except BadSignature as err:
        logger.warning("access_token_invalid")
        raise AuthenticationError from err

    user_id = payload.get("sub") if isinstance(payload, dict) else None
    if not user_id:
        raise AuthenticationError
    return str(user_id)
