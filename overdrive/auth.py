"""
Password hashing, API tokens and handler decorators.
"""

import hashlib
import hmac
import os
import secrets
from functools import wraps
from typing import Any, Awaitable, Callable, Optional

from aiohttp import web

from .errors import AuthenticationRequired, PermissionDenied

SALT_LENGTH = 16
HASH_ITERATIONS = 100000

Handler = Callable[[Any, web.Request], Awaitable[web.StreamResponse]]


def hash_password(password: str) -> str:
    """
    Hash a password with PBKDF2-SHA256 and a random salt.

    @param password: Plain-text password
    @return: Hex string of salt + derived key
    """
    salt = os.urandom(SALT_LENGTH)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, HASH_ITERATIONS)
    return (salt + derived).hex()


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        raw = bytes.fromhex(password_hash)
    except ValueError:
        return False
    if len(raw) <= SALT_LENGTH:
        return False

    salt, stored = raw[:SALT_LENGTH], raw[SALT_LENGTH:]
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, HASH_ITERATIONS)
    return hmac.compare_digest(derived, stored)


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def bearer_token(request: web.Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def login_required(handler: Handler) -> Handler:
    """
    Resolve the bearer token to a profile and store it as request["profile"].

    Expects the decorated method's owner to expose the database as self.db.
    """

    @wraps(handler)
    async def wrapper(self: Any, request: web.Request) -> web.StreamResponse:
        token = bearer_token(request)
        profile = await self.db.get_profile_by_token(token) if token else None
        if profile is None:
            raise AuthenticationRequired("Please log in first.")
        request["profile"] = profile
        return await handler(self, request)

    return wrapper


def admin_required(handler: Handler) -> Handler:
    @login_required
    @wraps(handler)
    async def wrapper(self: Any, request: web.Request) -> web.StreamResponse:
        if not request["profile"]["is_admin"]:
            raise PermissionDenied("Administrator access required.")
        return await handler(self, request)

    return wrapper
