from typing import List

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterResponse(BaseModel):
    message: str
    id: str


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    message: str
    pending_user_id: str


class VerifyOtpRequest(BaseModel):
    # Clients may post the code as a JSON number.
    model_config = ConfigDict(coerce_numbers_to_str=True)

    otp: str


class VerifyOtpResponse(BaseModel):
    message: str
    authenticated: bool
    user_id: str


class ContactRequest(BaseModel):
    name: str
    email: EmailStr
    number: str = ""
    message: str


class MessageResponse(BaseModel):
    message: str


class CardPayload(BaseModel):
    id: str = Field(min_length=1)
    title: str
    description: str = ""


class CardResponse(BaseModel):
    id: str
    title: str
    description: str

    @classmethod
    def from_model(cls, card) -> "CardResponse":
        return cls(id=card.card_id, title=card.title, description=card.description or "")


class BoardResponse(BaseModel):
    id: str
    title: str
    cards: List[CardResponse]

    @classmethod
    def from_model(cls, board) -> "BoardResponse":
        return cls(
            id=board.board_id,
            title=board.title,
            cards=[CardResponse.from_model(card) for card in board.cards],
        )
