import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Tests must not depend on a developer's JWT secret.
os.environ.setdefault("ISIT_JWT_SECRET_KEY", "test-secret-key-for-isit-game-suite-0123456789")

from isit_game.auth import create_access_token
from isit_game.data.player_manager import PlayerManager
from isit_game.database import Base, get_db, get_session_factory
from isit_game.main import app
from isit_game.models.poll import Poll, PollObject, PollObjectLink, PollOption

TEST_DATABASE_URL = "sqlite:///:memory:"  # Use in-memory SQLite for tests
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def create_test_tables():
    """Create all database tables once per session before tests run."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db_session(create_test_tables):
    """
    Provides a transactional database session for a test.
    Rolls back changes after the test and overrides the app's get_db dependency.
    """
    connection = engine.connect()
    transaction = connection.begin()
    db = TestingSessionLocal(bind=connection)

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db
    # Worker-thread sessions share the test connection so they see its data.
    app.dependency_overrides[get_session_factory] = lambda: (
        lambda: TestingSessionLocal(bind=connection)
    )

    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]
        app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture(scope="function")
def client(db_session: Session):
    """Provides a TestClient instance for making requests to the FastAPI app."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def player(db_session: Session):
    return PlayerManager(db_session).add_player("ada", "Ada")


@pytest.fixture(scope="function")
def auth_headers(player):
    token = create_access_token({"sub": player.user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def make_poll(db_session: Session):
    """
    Factory creating a binary poll with its IS/IT objects, links and options.
    Pass ``links=False`` to leave the poll unconfigured.
    """

    def _make(
        poll_id: str,
        is_word: str = "Cat",
        it_word: str = "Dog",
        *,
        title: str | None = None,
        stage: int = 0,
        level: int = 1,
        correct: str | None = "IS",
        points: int = 0,
        links: bool = True,
        options: bool = True,
        status: str = "published",
    ) -> Poll:
        poll = Poll(
            poll_id=poll_id,
            title=title or f"{is_word} | {it_word}",
            status=status,
            stage=stage,
            level=level,
            correct=correct,
        )
        db_session.add(poll)
        db_session.flush()
        if links:
            for side, word in (("IS", is_word), ("IT", it_word)):
                obj = PollObject(
                    object_id=f"{poll_id}-{side.lower()}",
                    word=word,
                    points=points,
                )
                db_session.add(obj)
                db_session.flush()
                db_session.add(
                    PollObjectLink(poll_id=poll_id, side=side, object_id=obj.object_id)
                )
        if options:
            for text in ("IS", "IT"):
                db_session.add(
                    PollOption(
                        option_id=f"{poll_id}-opt-{text.lower()}",
                        poll_id=poll_id,
                        text=text,
                    )
                )
        db_session.commit()
        return poll

    return _make
