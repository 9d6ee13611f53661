from datetime import datetime, timedelta
from typing import Optional
import secrets
import string

from jose import JWTError, jwt
from passlib.context import CryptContext

from passport.core.config import get_settings
from passport.core.identity import Actor

settings = get_settings()

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

_TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def generate_temporary_password(length: Optional[int] = None) -> str:
    """Random credential handed to a supplier once, stored only as a hash."""
    length = length or settings.temporary_password_length
    return "".join(secrets.choice(_TEMP_PASSWORD_ALPHABET) for _ in range(length))


def create_access_token(
    user_id: int,
    role: str,
    username: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed JWT carrying the caller's id and role."""
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": str(user_id),
        "user_id": user_id,
        "username": username,
        "role": role,
        "exp": expire,
        "iss": settings.token_issuer,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> Optional[Actor]:
    """Decode and validate a JWT. Returns the actor if the token is valid."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            issuer=settings.token_issuer,
        )
    except JWTError:
        return None

    user_id = payload.get("user_id")
    role = payload.get("role")
    if user_id is None or not role:
        return None

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None

    return Actor(user_id=user_id, role=role, username=payload.get("username"))
