import argparse
import os
import sys

# Add project root to path
sys.path.append(os.getcwd())

from isit_game.auth import create_access_token
from isit_game.data.player_manager import PlayerManager
from isit_game.database import Base, SessionLocal, engine


def issue_token(login: str, display_name: str | None = None) -> str:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        player = PlayerManager(db).get_or_create_player(login, display_name)
        print(f"Player {player.login} -> {player.user_id}", file=sys.stderr)
        return create_access_token({"sub": player.user_id})
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Create a player if needed and print a bearer token for them."
    )
    parser.add_argument("login")
    parser.add_argument("--name", dest="display_name", default=None)
    args = parser.parse_args()
    print(issue_token(args.login, args.display_name))
