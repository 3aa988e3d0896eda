from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass
class AuthIdentity:
    user_id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def validate_password_policy(password: str) -> None:
    min_len = max(1, int(settings.AUTH_PASSWORD_MIN_LENGTH))
    if len(str(password or "")) < min_len:
        raise ValueError(f"password must be at least {min_len} chars")


def _token_exp(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=max(1, int(minutes)))


def create_access_token(*, identity: AuthIdentity) -> str:
    payload = {
        "sub": identity.user_id,
        "email": identity.email,
        "role": identity.role,
        "exp": _token_exp(settings.AUTH_ACCESS_TOKEN_MINUTES),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.AUTH_SECRET_KEY, algorithm=settings.AUTH_ALGORITHM)


def decode_access_token(token: str) -> AuthIdentity | None:
    try:
        payload = jwt.decode(token, settings.AUTH_SECRET_KEY, algorithms=[settings.AUTH_ALGORITHM])
    except JWTError:
        return None

    user_id = str(payload.get("sub") or "").strip()
    email = str(payload.get("email") or "").strip().lower()
    role = str(payload.get("role") or "").strip().upper()
    if not user_id or not role:
        return None
    return AuthIdentity(user_id=user_id, email=email, role=role)


def extract_bearer_token(authorization_header: str | None, cookie_token: str | None = None) -> str | None:
    raw = (authorization_header or "").strip()
    if raw.lower().startswith("bearer "):
        token = raw[7:].strip()
        return token or None
    if not raw:
        # Browser clients may only carry the token cookie.
        token = (cookie_token or "").strip()
        return token or None
    return None


def extract_identity(authorization_header: str | None, cookie_token: str | None = None) -> AuthIdentity | None:
    token = extract_bearer_token(authorization_header, cookie_token)
    if not token:
        return None
    return decode_access_token(token)
