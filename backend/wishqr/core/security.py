from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
import secrets
from typing import Any
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt

from wishqr.core.config import settings
from wishqr.core.errors import Unauthorized

_dev_logger = logging.getLogger("wishqr.security")
_insecure_keys = {"CHANGE_ME", "secret", "jwt_secret", "changeme", ""}

if not settings.jwt_secret_key or settings.jwt_secret_key in _insecure_keys or (
    settings.jwt_algorithm.startswith("HS") and len(settings.jwt_secret_key) < 32
):
    env = getattr(settings, "environment", "local") or "local"
    if env.lower() == "local":
        settings.jwt_secret_key = secrets.token_urlsafe(64)
        _dev_logger.warning("JWT_SECRET_KEY was missing/insecure; generated ephemeral key for local dev")
    else:
        raise RuntimeError("JWT_SECRET_KEY must be set to a secure value (32+ chars) in production")


@dataclass(frozen=True)
class Identity:
    """A verified caller: the identity provider subject plus its claims."""

    uid: str
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def email(self) -> str | None:
        value = self.claims.get("email")
        return value if isinstance(value, str) and value else None

    @property
    def name(self) -> str | None:
        value = self.claims.get("name")
        return value if isinstance(value, str) and value else None


def create_id_token(
    subject: str,
    claims: dict[str, Any] | None = None,
    expires_delta_minutes: int | None = None,
) -> str:
    """Mint a token in the identity provider's format (local dev and tests)."""
    expire_minutes = (
        expires_delta_minutes
        if expires_delta_minutes is not None
        else settings.identity_token_expire_minutes
    )
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    to_encode: dict[str, Any] = {**(claims or {}), "sub": subject, "exp": expire, "jti": str(uuid4())}
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    if settings.jwt_issuer:
        to_encode["iss"] = settings.jwt_issuer
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_id_token(token: str) -> dict[str, Any] | None:
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options=options,
        )
    except ExpiredSignatureError:
        _dev_logger.info("Identity token expired")
        return None
    except JWTError:
        return None


def verify_id_token(token: str) -> Identity:
    payload = decode_id_token(token)
    if not payload:
        raise Unauthorized("Invalid token")
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise Unauthorized("Invalid token")
    return Identity(uid=subject.strip(), claims=payload)
