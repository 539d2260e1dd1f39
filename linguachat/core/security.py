"""Access token utilities and the explicit per-request session context."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from linguachat.core.config import settings
from linguachat.core.exceptions import AuthenticationRequiredError


@dataclass(frozen=True)
class SessionContext:
    """Authenticated caller, passed explicitly into every pipeline call."""

    user_id: uuid.UUID
    preferred_language: str | None = None
    display_name: str | None = None


def create_access_token(
    user_id: uuid.UUID,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token whose subject is the user id."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode: dict[str, Any] = {"sub": str(user_id), "exp": expire}
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> uuid.UUID:
    """Return the user id carried by *token*.

    Raises AuthenticationRequiredError for malformed, expired or
    wrongly-signed tokens.
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return uuid.UUID(claims["sub"])
    except (JWTError, KeyError, ValueError) as e:
        raise AuthenticationRequiredError("Invalid or expired token") from e
