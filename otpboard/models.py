from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from otpboard.database import Base
import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    # Naive UTC, the way the columns store it.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserInfo(Base):
    __tablename__ = "users"
    internal_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=False, unique=True)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    otp_codes = relationship("OtpCode", back_populates="user", cascade="all, delete-orphan")


class OtpCode(Base):
    __tablename__ = "otp_codes"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.internal_id"), nullable=False, index=True)
    code = Column(String(6), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    user = relationship("UserInfo", back_populates="otp_codes")


class Board(Base):
    __tablename__ = "boards"
    internal_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    board_id = Column(String, nullable=False, unique=True)
    title = Column(String, nullable=False)
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    cards = relationship(
        "Card",
        back_populates="board",
        order_by="Card.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    # UPDATE ... WHERE version = <loaded version>; a mismatch raises StaleDataError.
    __mapper_args__ = {"version_id_col": version}


class Card(Base):
    __tablename__ = "cards"
    pk = Column(Integer, primary_key=True, autoincrement=True)
    board_pk = Column(String, ForeignKey("boards.internal_id"), nullable=False, index=True)
    card_id = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    position = Column(Integer, nullable=False)

    board = relationship("Board", back_populates="cards")
