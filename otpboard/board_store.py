"""
Boards and their ordered cards.

Writes to a board are serialized twice over: a per-board lock inside this
process, and the board row's version column across processes. Every mutation
touches each board it changes, so its commit is an
UPDATE ... WHERE version = <version read>; losing that race rolls back and
replays the mutation on fresh state.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from otpboard import config
from otpboard.database import storage_guard
from otpboard.errors import AppError, ConcurrentUpdate, DuplicateKey, NotFound
from otpboard.models import Board, Card, utcnow
from otpboard.schemas import CardPayload

logger = logging.getLogger(__name__)


class BoardLocks:
    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, board_id: str) -> threading.Lock:
        with self._guard:
            if board_id not in self._locks:
                self._locks[board_id] = threading.Lock()
            return self._locks[board_id]

    @contextmanager
    def hold(self, *board_ids: str, timeout: float = config.BOARD_LOCK_TIMEOUT_SECONDS):
        """Hold the locks of all given boards, taken in sorted order."""
        acquired = []
        try:
            for board_id in sorted(set(board_ids)):
                lock = self._lock_for(board_id)
                if not lock.acquire(timeout=timeout):
                    logger.warning(f"Timed out waiting for board {board_id}")
                    raise ConcurrentUpdate(f"Board '{board_id}' is busy, try again")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


board_locks = BoardLocks()


def _new_card(card: CardPayload) -> Card:
    return Card(card_id=card.id, title=card.title, description=card.description or "")


def _find_card_index(board: Board, card_id: str) -> int | None:
    for index, card in enumerate(board.cards):
        if card.card_id == card_id:
            return index
    return None


def _resolve(db: Session, board_ids: Iterable[str]) -> Dict[str, Board]:
    boards = {}
    for board_id in board_ids:
        board = db.query(Board).filter(Board.board_id == board_id).first()
        if board is None:
            raise NotFound(f"Board '{board_id}' not found")
        boards[board_id] = board
    return boards


def _mutate(db: Session, board_ids: List[str], mutation: Callable[[Dict[str, Board]], object]):
    board_ids = list(dict.fromkeys(board_ids))

    # Unknown boards fail fast and never get a lock entry.
    with storage_guard(db):
        found = {row.board_id for row in db.query(Board.board_id).filter(Board.board_id.in_(board_ids))}
    for board_id in board_ids:
        if board_id not in found:
            raise NotFound(f"Board '{board_id}' not found")

    with board_locks.hold(*board_ids, timeout=config.BOARD_LOCK_TIMEOUT_SECONDS):
        for attempt in range(1, config.BOARD_WRITE_RETRIES + 1):
            with storage_guard(db):
                db.expire_all()
                try:
                    boards = _resolve(db, board_ids)
                    result = mutation(boards)
                    for board in boards.values():
                        board.updated_at = utcnow()
                    db.commit()
                    return result
                except StaleDataError:
                    db.rollback()
                    logger.warning(f"Boards {board_ids} changed underneath us (attempt {attempt})")
                except AppError:
                    db.rollback()
                    raise

    raise ConcurrentUpdate()


def list_boards(db: Session) -> List[Board]:
    with storage_guard(db):
        return db.query(Board).options(selectinload(Board.cards)).order_by(Board.board_id).all()


def get_board(db: Session, board_id: str) -> Board | None:
    with storage_guard(db):
        return db.query(Board).filter(Board.board_id == board_id).first()


def provision_board(db: Session, board_id: str, title: str, cards: Iterable[CardPayload] = ()) -> Board:
    """Create a board out of band. Not reachable over HTTP."""
    with storage_guard(db):
        if db.query(Board).filter(Board.board_id == board_id).first():
            raise DuplicateKey(f"Board '{board_id}' already exists")

        board = Board(board_id=board_id, title=title)
        for card in cards:
            board.cards.append(_new_card(card))
        db.add(board)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateKey(f"Board '{board_id}' already exists")
        db.refresh(board)

    logger.info(f"Provisioned board {board_id}")
    return board


def add_card(db: Session, board_id: str, card: CardPayload) -> Board:
    def append(boards):
        board = boards[board_id]
        board.cards.append(_new_card(card))
        return board

    return _mutate(db, [board_id], append)


def delete_card(db: Session, board_id: str, card_id: str):
    """Remove the first card with `card_id`; ids may repeat within a board."""
    def remove(boards):
        board = boards[board_id]
        index = _find_card_index(board, card_id)
        if index is None:
            raise NotFound(f"Card '{card_id}' not found in board '{board_id}'")
        board.cards.pop(index)

    _mutate(db, [board_id], remove)


def move_card(db: Session, source_id: str, dest_id: str, card: CardPayload):
    """
    Take the first card matching `card.id` off the source board and append
    `card` to the destination. Both changes commit in one transaction, so a
    failure leaves the card where it was.
    """
    def move(boards):
        source, dest = boards[source_id], boards[dest_id]
        index = _find_card_index(source, card.id)
        if index is None:
            raise NotFound(f"Card '{card.id}' not found in board '{source_id}'")
        source.cards.pop(index)
        dest.cards.append(_new_card(card))

    _mutate(db, [source_id, dest_id], move)
    logger.info(f"Moved card {card.id} from {source_id} to {dest_id}")
