"""
Security utilities: password hashing and signed session claims
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from ems.core.config import settings
from ems.core.constants import (
    CLAIM_PRIVILEGE,
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_PASSWORD_RESET,
    TOKEN_TYPE_REFRESH,
)

logger = logging.getLogger(__name__)

# Track available backends
argon2_available = False
bcrypt_available = False

try:
    import argon2
    hasher = argon2.PasswordHasher()
    if hasher.verify(hasher.hash("test"), "test"):
        argon2_available = True
except Exception as e:
    logger.warning("Argon2 backend not available: %s", e)

try:
    import bcrypt
    if bcrypt.checkpw(b"test", bcrypt.hashpw(b"test", bcrypt.gensalt())):
        bcrypt_available = True
except Exception as e:
    logger.warning("Bcrypt backend not available: %s", e)

# Ensure at least one backend is available
if not argon2_available and not bcrypt_available:
    error_msg = "No password hashing backends available. Please install argon2-cffi or bcrypt."
    logger.critical(error_msg)
    raise RuntimeError(error_msg)

logger.debug("Available backends - Argon2: %s, Bcrypt: %s", argon2_available, bcrypt_available)

# Only used to verify hashes written by older deployments
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenExpiredError(ValueError):
    """Raised when a signed claim is well-formed but past its validity window"""


def hash_password(password: str) -> str:
    """Hash a password using available backend (argon2 preferred, bcrypt fallback)"""
    if argon2_available:
        try:
            return argon2.PasswordHasher().hash(password)
        except Exception as e:
            logger.warning("Argon2 hashing failed, falling back to bcrypt: %s", e)

    if bcrypt_available:
        # Bcrypt has a 72-byte limit
        password_bytes = password.encode("utf-8")[:72]
        return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")

    raise RuntimeError("No hashing backends available")


def validate_password(password: Optional[str]) -> str:
    """
    Validate and normalize password for hashing

    Args:
        password: Raw password string

    Returns:
        Normalized password (trimmed)

    Raises:
        ValueError: If password is invalid with specific error message
    """
    if password is None:
        raise ValueError("Password is required")

    password = password.strip()

    if not password:
        raise ValueError("Password cannot be empty")

    if len(password) < 6:
        raise ValueError("Password must be at least 6 characters")

    # Check UTF-8 byte length for bcrypt compatibility
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password cannot be longer than 72 bytes when encoded as UTF-8")

    return password


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash"""
    if not hashed_password:
        return False

    if argon2_available and hashed_password.startswith("$argon2"):
        try:
            return argon2.PasswordHasher().verify(hashed_password, plain_password)
        except Exception:
            return False

    if bcrypt_available:
        try:
            return bcrypt.checkpw(
                plain_password.encode("utf-8"),
                hashed_password.encode("utf-8")
            )
        except Exception:
            pass

    # Fallback to passlib context (for existing hashes)
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception:
        return False


def _encode(data: Dict[str, Any], token_type: str, expires_minutes: int) -> str:
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
        "jti": uuid.uuid4().hex,
    })
    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def create_access_token(
    account_id: str,
    email: str,
    privilege: Optional[str] = None,
    expires_minutes: Optional[int] = None
) -> str:
    """
    Create a session claim.

    The privilege snapshot is embedded only when one is known; claims without it
    force the client through slow reconciliation.
    """
    data: Dict[str, Any] = {"sub": account_id, "email": email}
    if privilege:
        data[CLAIM_PRIVILEGE] = privilege
    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRE_MINUTES
    return _encode(data, TOKEN_TYPE_ACCESS, expires_minutes)


def create_refresh_token(account_id: str, expires_minutes: Optional[int] = None) -> str:
    """Create a refresh credential used to obtain replacement claims"""
    if expires_minutes is None:
        expires_minutes = settings.JWT_REFRESH_EXPIRE_MINUTES
    return _encode({"sub": account_id}, TOKEN_TYPE_REFRESH, expires_minutes)


def create_password_reset_token(account_id: str, password_hash: Optional[str]) -> str:
    """
    Create a single-purpose password reset token.

    The token is bound to a fingerprint of the current hash, so it stops working
    once the password has been changed.
    """
    return _encode(
        {"sub": account_id, "fp": _hash_fingerprint(password_hash)},
        TOKEN_TYPE_PASSWORD_RESET,
        settings.PASSWORD_RESET_EXPIRE_MINUTES,
    )


def _hash_fingerprint(password_hash: Optional[str]) -> str:
    return (password_hash or "")[-12:]


def password_reset_matches(payload: Dict[str, Any], password_hash: Optional[str]) -> bool:
    return payload.get("fp") == _hash_fingerprint(password_hash)


def decode_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Decode and verify a signed claim

    Raises:
        TokenExpiredError: If the claim is past its validity window
        ValueError: If the claim is malformed, forged or of the wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        raise TokenExpiredError("Token expired")
    except JWTError:
        raise ValueError("Invalid token")

    if expected_type is not None and payload.get("type") != expected_type:
        raise ValueError("Invalid token type")
    if not payload.get("sub"):
        raise ValueError("Invalid token subject")
    return payload
