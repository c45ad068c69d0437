"""
Provision boards from a JSON file:

    python -m otpboard.seed boards.json

The file holds a list of {"id": ..., "title": ..., "cards": [...]} objects.
Boards that already exist are left untouched.
"""
import json
import logging
import sys
from pathlib import Path

from otpboard import board_store
from otpboard.database import SessionLocal, init_db
from otpboard.errors import DuplicateKey
from otpboard.schemas import CardPayload

logger = logging.getLogger(__name__)


def seed_boards(db, boards: list) -> int:
    created = 0
    for entry in boards:
        cards = [CardPayload(**card) for card in entry.get("cards", [])]
        try:
            board_store.provision_board(db, entry["id"], entry.get("title", entry["id"]), cards)
        except DuplicateKey:
            logger.info(f"Board {entry['id']} already exists, skipping")
            continue
        created += 1
    return created


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("usage: python -m otpboard.seed <boards.json>")
        return 2

    boards = json.loads(Path(argv[0]).read_text(encoding="utf-8"))
    init_db()
    db = SessionLocal()
    try:
        created = seed_boards(db, boards)
    finally:
        db.close()
    print(f"Provisioned {created} of {len(boards)} boards")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
