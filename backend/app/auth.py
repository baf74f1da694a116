"""Authentication utilities for the VocabLoop sync backend."""

import base64
import hashlib
import re
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from vocabloop.protocols import AccountStore, AuthenticationError

from .config import Settings

MIN_USERNAME_LENGTH = 5
PASSWORD_PATTERN = re.compile(r"^\d{6,}$")
BCRYPT_MAX_BYTES = 72


def normalize_username(value) -> str:
    """Usernames are case-insensitive and ignore surrounding whitespace."""
    return str(value or "").strip().lower()


def validate_username(username: str) -> bool:
    return isinstance(username, str) and len(username.strip()) >= MIN_USERNAME_LENGTH


def validate_password(password) -> bool:
    """Passwords are PINs of at least six digits."""
    return isinstance(password, str) and PASSWORD_PATTERN.match(password) is not None


def _bcrypt_input(password: str) -> bytes:
    """bcrypt rejects inputs over 72 bytes; longer PINs are SHA-256 digested first."""
    raw = password.encode()
    if len(raw) > BCRYPT_MAX_BYTES:
        raw = base64.b64encode(hashlib.sha256(raw).digest())
    return raw


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(_bcrypt_input(password), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(_bcrypt_input(plain), hashed.encode())
    except (ValueError, TypeError):
        return False


def create_access_token(
    username: str,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token for a user."""
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(days=settings.token_expire_days)

    to_encode = {
        "sub": username,
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a token. Raises AuthenticationError."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise AuthenticationError("Invalid or expired token.")


class TokenAuthGate:
    """Resolves signed tokens into usernames that still have an account."""

    def __init__(self, settings: Settings, accounts: AccountStore):
        self.settings = settings
        self.accounts = accounts

    async def authenticate(self, token) -> str:
        if not token or not isinstance(token, str):
            raise AuthenticationError("Invalid or expired token.")
        payload = decode_token(token, self.settings)
        username = payload.get("sub")
        if not username or not isinstance(username, str):
            raise AuthenticationError("Invalid or expired token.")
        if not await self.accounts.account_exists(username):
            raise AuthenticationError("User not found.")
        return username
