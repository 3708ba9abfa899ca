import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from mainevents.core.errors import AuthenticationError, ConflictError
from mainevents.core.security import hash_password, verify_password
from mainevents.models.users import User
from mainevents.schemas.auth import RegisterRequest

logger = structlog.get_logger(__name__)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email.lower()))


def register_user(db: Session, payload: RegisterRequest) -> User:
    if get_user_by_email(db, payload.email) is not None:
        raise ConflictError("Email is already registered")

    user = User(
        name=payload.name.strip(),
        last_name=payload.last_name.strip(),
        email=payload.email.lower(),
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User registered", user_id=user.id)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User:
    user = get_user_by_email(db, email)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    return user
