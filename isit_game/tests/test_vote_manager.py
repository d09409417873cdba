import pytest

from isit_game.data.vote_manager import VoteManager, possible_points
from isit_game.models.poll import Poll
from isit_game.models.vote import PollVote


@pytest.mark.usefixtures("db_session")
def test_second_vote_overwrites_first(db_session, player, make_poll):
    make_poll("poll-a")
    manager = VoteManager(db_session)

    manager.upsert_vote("poll-a", "poll-a-opt-is", player.user_id)
    receipt = manager.upsert_vote("poll-a", "poll-a-opt-it", player.user_id)

    rows = (
        db_session.query(PollVote)
        .filter(PollVote.poll_id == "poll-a", PollVote.user_id == player.user_id)
        .all()
    )
    assert len(rows) == 1
    assert rows[0].option_id == "poll-a-opt-it"
    assert rows[0].is_correct is False
    assert receipt.is_correct is False
    assert manager.count_votes("poll-a") == 1


def test_correct_vote_earns_fallback_points(db_session, player, make_poll):
    make_poll("poll-b", stage=2, level=3)

    receipt = VoteManager(db_session).upsert_vote(
        "poll-b", "poll-b-opt-is", player.user_id
    )

    assert receipt.is_correct is True
    assert receipt.points_earned == 2 * 2 * 3


def test_correct_vote_prefers_object_points(db_session, player, make_poll):
    make_poll("poll-c", points=5)

    receipt = VoteManager(db_session).upsert_vote(
        "poll-c", "poll-c-opt-is", player.user_id
    )

    assert receipt.points_earned == 10


def test_poll_without_answer_is_unscored(db_session, player, make_poll):
    make_poll("poll-d", correct=None)

    receipt = VoteManager(db_session).upsert_vote(
        "poll-d", "poll-d-opt-it", player.user_id
    )

    assert receipt.is_correct is None
    assert receipt.points_earned == 0
    vote = VoteManager(db_session).get_vote("poll-d", player.user_id)
    assert vote is not None
    assert vote.is_correct is None


def test_option_from_another_poll_is_rejected(db_session, player, make_poll):
    make_poll("poll-e")
    make_poll("poll-f")

    with pytest.raises(LookupError):
        VoteManager(db_session).upsert_vote("poll-e", "poll-f-opt-is", player.user_id)

    assert VoteManager(db_session).count_votes("poll-e") == 0


def test_possible_points_floors_stage_and_level():
    poll = Poll(poll_id="x", title="A | B", stage=0, level=0)

    assert possible_points(poll, 0) == 2
    assert possible_points(poll, 7) == 7
