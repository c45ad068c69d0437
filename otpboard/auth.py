import logging
from functools import lru_cache

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from otpboard import config
from otpboard.database import storage_guard
from otpboard.errors import DuplicateKey
from otpboard.models import UserInfo

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return pwd_context.hash("otpboard-dummy-password")


def check_credentials(user: UserInfo | None, password: str) -> bool:
    """
    Password check that costs one bcrypt verification whether or not the
    user exists, so an unknown username is not faster to reject.
    """
    if user is None:
        verify_password(password, _dummy_hash())
        return False
    return verify_password(password, user.hashed_password)


def find_by_username(db: Session, username: str) -> UserInfo | None:
    with storage_guard(db):
        return db.query(UserInfo).filter(UserInfo.username == username).first()


def register_user(db: Session, username: str, email: str, password: str) -> UserInfo:
    with storage_guard(db):
        existing_user = db.query(UserInfo).filter(
            (UserInfo.username == username) | (UserInfo.email == email)
        ).first()
        if existing_user:
            raise DuplicateKey()

        user = UserInfo(
            username=username,
            email=email,
            hashed_password=hash_password(password),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration.
            db.rollback()
            raise DuplicateKey()
        db.refresh(user)

    logger.info(f"Registered user {user.internal_id}")
    return user
