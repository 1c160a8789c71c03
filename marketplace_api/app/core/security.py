"""
Security helpers for password hashing, one-time tokens and JWT authentication.

JSON Web Tokens are implemented directly with HMAC-SHA256 signatures
and base64url encoding.  Tokens carry the user id in ``sub`` and an
expiration timestamp in ``exp``; the secret key comes from the
application settings.  Passwords are hashed with PBKDF2-HMAC-SHA256
and a random salt.  One-time secrets mailed or texted to users (email
verification links, password reset links, phone codes) are only ever
stored as SHA-256 digests.

FastAPI dependencies at the bottom of the module resolve the current
user from either an ``Authorization: Bearer`` header or the ``token``
cookie set at login, and enforce roles and email verification.
"""

import base64
import hashlib
import hmac
import json
import os
import secrets
import time
from datetime import timezone
from typing import Any, Callable, Dict, Optional

from bson import ObjectId
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import USERS, get_database
from .errors import AppError, InvalidTokenError, TokenExpiredError

TOKEN_COOKIE = "token"
PBKDF2_ITERATIONS = 100_000


def _b64_url_encode(data: bytes) -> str:
    """Base64-url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64-url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Create a signed JWT with the given claims.

    Parameters
    ----------
    data : dict
        Claims to embed in the token, typically ``{"sub": "<user id>"}``.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.

    Returns
    -------
    str
        The token in ``header.payload.signature`` form.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    to_encode["iat"] = int(time.time())
    to_encode["exp"] = to_encode["iat"] + exp_seconds
    header = {"alg": settings.algorithm, "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify a JWT and return its payload.

    Raises
    ------
    InvalidTokenError
        If the token is malformed or its signature does not match.
    TokenExpiredError
        If the token is validly signed but past its ``exp`` claim.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise InvalidTokenError("token must have three segments")
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    try:
        actual_sig = _b64_url_decode(signature_b64)
        payload = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidTokenError("token is not valid base64url JSON") from exc
    if not hmac.compare_digest(_sign(signing_input, settings.secret_key), actual_sig):
        raise InvalidTokenError("signature mismatch")
    if not isinstance(payload, dict) or "exp" not in payload:
        raise InvalidTokenError("token has no expiry")
    if int(payload["exp"]) < int(time.time()):
        raise TokenExpiredError("token expired")
    return payload


def hash_password(password: str) -> str:
    """Hash a password with PBKDF2-HMAC-SHA256.

    Returns the hex salt and hex digest joined by ``$``.
    """
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check a plain password against a ``salt$hash`` string."""
    if not hashed_password or "$" not in hashed_password:
        return False
    salt_hex, hash_hex = hashed_password.split("$", 1)
    try:
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store one-time tokens and codes."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_token() -> str:
    """Random URL-safe secret for emailed links."""
    return secrets.token_hex(32)


def generate_phone_code() -> str:
    """Six digit numeric code for SMS verification."""
    return str(secrets.randbelow(900_000) + 100_000)


security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """Dependency returning the authenticated user document.

    The token is taken from the bearer header first and the ``token``
    cookie second.  Raises 401 when no token is present or when the
    user it names no longer exists; token decoding errors propagate to
    the central error handlers.
    """
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise AppError("You are not logged in! Please log in to get access.", 401)
    payload = decode_access_token(token)
    subject = payload.get("sub")
    if not subject or not ObjectId.is_valid(subject):
        raise InvalidTokenError("token has no valid subject")

    user = await get_database()[USERS].find_one({"_id": ObjectId(subject)})
    if not user:
        raise AppError("The user belonging to this token no longer exists.", 401)
    if changed_password_after(user, payload.get("iat", 0)):
        raise AppError("User recently changed password! Please log in again.", 401)
    return user


def changed_password_after(user: Dict[str, Any], issued_at: int) -> bool:
    """True if the user's password changed after a token was issued."""
    changed_at = user.get("passwordChangedAt")
    if not changed_at:
        return False
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)
    return int(issued_at) < int(changed_at.timestamp())


def restrict_to(*roles: str) -> Callable[..., Any]:
    """Dependency factory allowing only users whose role is in ``roles``."""

    async def _role_dependency(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user.get("role") not in roles:
            raise AppError("You do not have permission to perform this action!", 403)
        return current_user

    return _role_dependency


async def require_verified(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Dependency rejecting users whose email address is not verified."""
    if not current_user.get("isEmailVerified"):
        raise AppError("Please verify your email address first!", 403)
    return current_user
