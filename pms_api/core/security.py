"""
Security utilities for JWT authentication
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from fastapi import HTTPException, status
from joserfc import jwt as jose_jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey
import structlog

from pms_api.core.config import settings

logger = structlog.get_logger()

# JWT Configuration
ALGORITHM = settings.JWT_ALGORITHM
SECRET_KEY = settings.JWT_SECRET_KEY
ACCESS_TOKEN_EXPIRE_MINUTES = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

# joserfc key object (reusable)
_jwt_key = OctKey.import_key(SECRET_KEY)

# exp is checked by the registry; sub must always be present
_claims_registry = jose_jwt.JWTClaimsRegistry(
    exp={"essential": True},
    sub={"essential": True},
)


def _credentials_exception(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict] = None
) -> str:
    """
    Create JWT access token

    Args:
        subject: Token subject (the user ID)
        expires_delta: Custom expiration time
        additional_claims: Additional claims to include in token

    Returns:
        Encoded JWT token
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "exp": int(expire.timestamp()),
        "sub": str(subject),
        "type": "access",
        "iat": int(now.timestamp()),
    }
    if additional_claims:
        to_encode.update(additional_claims)

    encoded_jwt = jose_jwt.encode({"alg": ALGORITHM}, to_encode, _jwt_key)

    logger.debug("Access token created", subject=str(subject), expires=expire.isoformat())
    return encoded_jwt


def verify_token(token: str, token_type: str = "access") -> str:
    """
    Verify JWT token and return subject

    Raises:
        HTTPException: 401 if the token is malformed, expired, unsigned
            by our key or of the wrong type
    """
    try:
        token_obj = jose_jwt.decode(token, _jwt_key, algorithms=[ALGORITHM])
        _claims_registry.validate(token_obj.claims)
    except (JoseError, ValueError) as e:
        logger.warning("JWT verification failed", error=str(e))
        raise _credentials_exception("Could not validate credentials")

    payload = token_obj.claims
    if payload.get("type") != token_type:
        logger.warning("Invalid token type", expected=token_type, actual=payload.get("type"))
        raise _credentials_exception("Invalid token type")

    subject = str(payload["sub"])
    logger.debug("Token verified successfully", subject=subject, type=token_type)
    return subject
