from datetime import timedelta
from typing import Optional, Iterable

from jose import jwt
from passlib.context import CryptContext

from alphamarket.config import settings
from alphamarket.domain.clock import utcnow

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # Unrecognised hash format (e.g. rows imported from another system).
        return False

def create_access_token(subject: str, roles: Optional[Iterable[str]] = None) -> str:
    now = utcnow()
    exp = now + timedelta(minutes=settings.JWT_EXPIRE_MIN)
    payload = {
        "sub": subject,
        "roles": list(roles or []),
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
