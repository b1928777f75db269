import hmac
import secrets
from typing import Optional

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _normalize_password(password: str) -> str:
    """bcrypt only reads the first 72 bytes; truncate on a UTF-8 boundary."""
    return password.encode("utf-8")[:72].decode("utf-8", errors="ignore")


def hash_password(password: str) -> str:
    return pwd_context.hash(_normalize_password(password))


def verify_password(password: Optional[str], hashed: Optional[str]) -> bool:
    if not password or not hashed:
        return False
    try:
        return pwd_context.verify(_normalize_password(password), hashed)
    except ValueError:
        # Stored value is not a recognised hash
        return False


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def keys_match(supplied: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison for API and master keys"""
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))
