from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from otpboard import board_store
from otpboard.database import get_db
from otpboard.schemas import BoardResponse, CardPayload, MessageResponse

router = APIRouter(prefix="/boards", tags=["Boards"])


@router.get("", response_model=list[BoardResponse])
def get_boards(db: Session = Depends(get_db)):
    return [BoardResponse.from_model(board) for board in board_store.list_boards(db)]


@router.post("/{board_id}/cards", status_code=status.HTTP_201_CREATED, response_model=BoardResponse)
def add_card(board_id: str, card: CardPayload, db: Session = Depends(get_db)):
    board = board_store.add_card(db, board_id, card)
    return BoardResponse.from_model(board)


@router.delete("/{board_id}/cards/{card_id}", response_model=MessageResponse)
def delete_card(board_id: str, card_id: str, db: Session = Depends(get_db)):
    board_store.delete_card(db, board_id, card_id)
    return {"message": "Card deleted"}


@router.post("/{board_id}/move/{dest_id}", response_model=MessageResponse)
def move_card(board_id: str, dest_id: str, card: CardPayload, db: Session = Depends(get_db)):
    board_store.move_card(db, board_id, dest_id, card)
    return {"message": "Card moved"}
