#!/usr/bin/env python3
"""Load binary IS/IT polls from a YAML file into the game database.

Usage:
    python scripts/seed_polls.py scripts/polls.example.yaml [--replace]

Each entry under ``polls:`` becomes one poll with an IS object, an IT object,
their side links, and the two ``IS``/``IT`` options votes point at. Existing
polls are left alone unless ``--replace`` is given.
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from pathlib import Path

import yaml
from sqlalchemy.orm import Session

# Ensure the project package is importable when the script is executed directly.
if __name__ == "__main__" and __package__ is None:
    sys.path.append(".")

from isit_game.database import Base, SessionLocal, engine  # noqa: E402
from isit_game.models.poll import (  # noqa: E402
    Poll,
    PollObject,
    PollObjectLink,
    PollOption,
    PollStatus,
)
from isit_game.services.assignment import Bucket  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("seed_polls")


@contextmanager
def managed_session() -> Session:
    """Yield a DB session that automatically rolls back on failure."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _side(entry: dict, key: str) -> dict:
    raw = entry.get(key) or entry.get(key.upper())
    if isinstance(raw, str):
        return {"word": raw}
    if isinstance(raw, dict) and raw.get("word"):
        return raw
    raise ValueError(f"Poll {entry.get('poll_id') or entry.get('title')!r} needs an '{key}' word.")


def add_poll(session: Session, entry: dict) -> Poll:
    is_side = _side(entry, "is")
    it_side = _side(entry, "it")
    correct = Bucket.parse(entry.get("correct"))
    status = str(entry.get("status") or PollStatus.PUBLISHED.value).lower()
    if status not in {member.value for member in PollStatus}:
        raise ValueError(f"Unknown poll status {status!r}")

    poll = Poll(
        title=entry.get("title") or f"{is_side['word']} | {it_side['word']}",
        status=status,
        prompt_word=entry.get("prompt_word"),
        correct=correct.value if correct else None,
        stage=int(entry.get("stage", 0)),
        level=int(entry.get("level", 1)),
    )
    if entry.get("poll_id"):
        poll.poll_id = str(entry["poll_id"])
    session.add(poll)
    session.flush()

    for bucket, side in ((Bucket.IS, is_side), (Bucket.IT, it_side)):
        obj = PollObject(
            word=str(side["word"]).strip(),
            image_url=side.get("image_url"),
            points=int(side.get("points", 0)),
        )
        session.add(obj)
        session.flush()
        session.add(
            PollObjectLink(poll_id=poll.poll_id, side=bucket.value, object_id=obj.object_id)
        )
        session.add(PollOption(poll_id=poll.poll_id, text=bucket.value))
    return poll


def seed(path: Path, replace: bool = False) -> int:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    entries = data.get("polls") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ValueError(f"{path} must contain a 'polls:' list.")

    Base.metadata.create_all(bind=engine)
    created = 0
    with managed_session() as session:
        for entry in entries:
            poll_id = entry.get("poll_id")
            existing = session.get(Poll, str(poll_id)) if poll_id else None
            if existing is not None:
                if not replace:
                    logger.info("Poll %s already present; skipping.", poll_id)
                    continue
                logger.info("Replacing poll %s.", poll_id)
                session.delete(existing)
                session.flush()
            poll = add_poll(session, entry)
            created += 1
            logger.info(
                "Seeded poll %s (stage %s, level %s): %s",
                poll.poll_id,
                poll.stage,
                poll.level,
                poll.title,
            )
    return created


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path", type=Path, help="YAML file with a 'polls:' list")
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete and re-create polls whose poll_id already exists",
    )
    args = parser.parse_args(argv)

    try:
        created = seed(args.path, replace=args.replace)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Seeding failed: %s", exc)
        return 1
    logger.info("Seeded %d poll(s).", created)
    return 0


if __name__ == "__main__":
    sys.exit(main())
