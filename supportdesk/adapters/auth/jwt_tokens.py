"""Session credential decoding with PyJWT.

Credentials are issued by the login service; this side only verifies the
signature and turns the claims into an Identity.
"""

from __future__ import annotations

import jwt

from supportdesk.config import settings
from supportdesk.domain.errors import AuthenticationError
from supportdesk.domain.value_objects.enums import Role
from supportdesk.domain.value_objects.identity import Identity


def decode_session_token(
    token: str | None,
    secret: str | None = None,
    algorithm: str | None = None,
) -> Identity:
    """Verify *token* and return the identity it carries.

    Expected claims: ``sub`` (user id), ``role`` (client | engineer) and an
    optional ``name``.

    Raises:
        AuthenticationError: missing, expired, tampered or malformed token.
    """
    if not token:
        raise AuthenticationError("Authentication error: No token provided")
    if token.lower().startswith("bearer "):
        token = token[7:].strip()

    try:
        claims = jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[algorithm or settings.jwt_algorithm],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Authentication error: Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Authentication error: Invalid token") from e

    try:
        role = Role(claims.get("role"))
    except ValueError as e:
        raise AuthenticationError("Authentication error: Unknown role") from e

    return Identity(user_id=str(claims["sub"]), role=role, name=str(claims.get("name") or ""))
