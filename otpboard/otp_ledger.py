"""
One-time login codes.

Codes are looked up by value alone. A record counts only while it is younger
than OTP_TTL_MINUTES; `verify` checks that itself, the reaper just keeps the
table small.
"""
import asyncio
import logging
import secrets
from datetime import datetime, timedelta

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from otpboard import config
from otpboard.database import storage_guard
from otpboard.errors import StorageError
from otpboard.models import OtpCode, utcnow

logger = logging.getLogger(__name__)

OTP_DIGITS = 6


def generate_code() -> str:
    """Uniform 6-digit code in 100000..999999."""
    return str(100000 + secrets.randbelow(900000))


def _cutoff(now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(minutes=config.OTP_TTL_MINUTES)


def issue(db: Session, user_id: str) -> str:
    code = generate_code()
    with storage_guard(db):
        db.add(OtpCode(user_id=user_id, code=code))
        db.commit()
    logger.info(f"Issued OTP for user {user_id}")
    return code


def verify(db: Session, code: str) -> str | None:
    """
    Consume a live code and return its owner's id.

    Returns None for wrong, expired, malformed or already used codes alike.
    When several live records share the code the oldest one is consumed.
    """
    if not code or len(code) != OTP_DIGITS or not code.isdigit():
        return None

    with storage_guard(db):
        record = (
            db.query(OtpCode)
            .filter(OtpCode.code == code, OtpCode.created_at > _cutoff())
            .order_by(OtpCode.created_at)
            .first()
        )
        if record is None:
            return None

        record_id, user_id = record.id, record.user_id
        deleted = (
            db.query(OtpCode)
            .filter(OtpCode.id == record_id)
            .delete(synchronize_session=False)
        )
        db.commit()

    if not deleted:
        # Consumed by a concurrent request between the select and the delete.
        return None
    logger.info(f"OTP verified for user {user_id}")
    return user_id


def purge_expired(db: Session, now: datetime | None = None) -> int:
    with storage_guard(db):
        removed = (
            db.query(OtpCode)
            .filter(OtpCode.created_at <= _cutoff(now))
            .delete(synchronize_session=False)
        )
        db.commit()
    return removed


def _purge_once(session_factory) -> int:
    db = session_factory()
    try:
        return purge_expired(db)
    finally:
        db.close()


async def run_reaper(session_factory, interval: float):
    """Periodically delete expired codes until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await run_in_threadpool(_purge_once, session_factory)
        except StorageError:
            logger.warning("OTP reaper could not reach the database, retrying next round")
            continue
        if removed:
            logger.info(f"OTP reaper purged {removed} expired codes")
