"""Password hashing, bearer tokens and the account lifecycle."""

import datetime
import logging
import re
import secrets

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

import settings
from models.auth import User
from models.common import atomic
from models.types import as_utc, utcnow
from services import email
from services.errors import Conflict, InvalidInput, Unauthenticated
from services.friendship import get_user_by_email, normalize_email

logger = logging.getLogger("campus.auth")

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])")
RESET_TOKEN_TTL = datetime.timedelta(hours=1)


def _bcrypt_secret(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes of the encoded password
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    return pwd_context.hash(_bcrypt_secret(password))


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(_bcrypt_secret(password), password_hash)


def generate_token() -> str:
    return secrets.token_hex(32)


def create_access_token(user: User, expires_delta: datetime.timedelta | None = None) -> str:
    expire = utcnow() + (
        expires_delta or datetime.timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    )
    claims = {
        "sub": user.id,
        "email": user.email,
        "role": user.role.value,
        "verified": user.verified,
        "exp": expire,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        claims = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.debug(f"Rejected bearer token: {e}")
        raise Unauthenticated("Invalid or expired token")
    if not claims.get("sub"):
        raise Unauthenticated("Invalid or expired token")
    return claims


def validate_password(password: str) -> None:
    if len(password or "") < 8:
        raise InvalidInput("Password must be at least 8 characters long")
    if not PASSWORD_RE.match(password):
        raise InvalidInput(
            "Password must contain at least one uppercase letter, one lowercase "
            "letter, one number, and one special character"
        )


def validate_email(address: str) -> None:
    if not EMAIL_RE.match(address):
        raise InvalidInput("A valid email is required")
    domain = settings.ALLOWED_EMAIL_DOMAIN
    if domain and not address.endswith(f"@{domain.lower()}"):
        raise InvalidInput(f"Email must be from @{domain}")


def signup(session: Session, *, name: str, email_address: str, password: str) -> User:
    name = (name or "").strip()
    if not 2 <= len(name) <= 100:
        raise InvalidInput("Name must be between 2 and 100 characters")
    address = normalize_email(email_address)
    validate_email(address)
    validate_password(password)

    if get_user_by_email(session, address):
        raise Conflict("User with this email already exists")

    user = User(
        name=name,
        email=address,
        password_hash=hash_password(password),
        verification_token=generate_token(),
    )
    with atomic(session):
        session.add(user)
    session.refresh(user)

    logger.info(f"New user {user.id} signed up")
    email.send_verification_email(user, user.verification_token)
    return user


def login(session: Session, *, email_address: str, password: str) -> tuple[User, str]:
    user = get_user_by_email(session, email_address)
    if not user or not verify_password(password or "", user.password_hash):
        raise Unauthenticated("Invalid email or password")
    return user, create_access_token(user)


def user_from_token(session: Session, token: str) -> User:
    claims = decode_access_token(token)
    user = session.get(User, claims["sub"])
    if not user:
        raise Unauthenticated("User no longer exists")
    return user


def verify_email(session: Session, *, token: str) -> User:
    user = None
    if token:
        user = session.exec(
            select(User).where(
                User.verification_token == token,
                User.verified == False,  # noqa: E712
            )
        ).first()
    if not user:
        raise InvalidInput("Invalid or expired verification token")

    user.verified = True
    user.verification_token = None
    with atomic(session):
        session.add(user)
    logger.info(f"User {user.id} verified their email")
    return user


def request_password_reset(session: Session, *, email_address: str) -> None:
    """Silently does nothing for unknown addresses, not to reveal who is registered."""
    user = get_user_by_email(session, email_address)
    if not user:
        logger.debug("Password reset requested for an unknown address")
        return

    user.reset_token = generate_token()
    user.reset_token_expires = utcnow() + RESET_TOKEN_TTL
    with atomic(session):
        session.add(user)
    email.send_password_reset_email(user, user.reset_token)


def reset_password(session: Session, *, token: str, new_password: str) -> User:
    user = None
    if token:
        user = session.exec(select(User).where(User.reset_token == token)).first()
    if (
        not user
        or not user.reset_token_expires
        or as_utc(user.reset_token_expires) <= utcnow()
    ):
        raise InvalidInput("Invalid or expired reset token")
    validate_password(new_password)

    user.password_hash = hash_password(new_password)
    user.reset_token = None
    user.reset_token_expires = None
    with atomic(session):
        session.add(user)
    logger.info(f"User {user.id} reset their password")
    return user


def update_profile(session: Session, *, user: User, name: str) -> User:
    name = (name or "").strip()
    if not 2 <= len(name) <= 100:
        raise InvalidInput("Name must be between 2 and 100 characters")
    db_user = session.get(User, user.id)
    db_user.name = name
    with atomic(session):
        session.add(db_user)
    session.refresh(db_user)
    return db_user
