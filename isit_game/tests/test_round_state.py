import asyncio
import random
from datetime import timedelta

import pytest
from fastapi import HTTPException

from isit_game.data.poll_manager import PollContent
from isit_game.services.assignment import LEFT, RIGHT, Bucket
from isit_game.services.round_state import RoundStateManager, _now


def _content(poll_id="poll-1"):
    return PollContent(
        poll_id=poll_id,
        title="HONESTY | INTEGRITY",
        left_word="HONESTY",
        right_word="INTEGRITY",
        prompt_word="HONESTY",
        correct=Bucket.IS,
    )


@pytest.mark.anyio("asyncio")
async def test_open_round_registers_fresh_resolver():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10, rng=random.Random(1))

    resolver = await manager.open_round(_content(), owner_user_id="user-1")

    assert await manager.count() == 1
    assert resolver.round.left.text == "HONESTY"
    assert resolver.round.right.text == "INTEGRITY"
    assert resolver.round.correct is Bucket.IS
    assert not resolver.has_assignment
    assert (await manager.get(resolver.round.round_id, "user-1")) is resolver


@pytest.mark.anyio("asyncio")
async def test_each_view_gets_its_own_round():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10)

    first = await manager.open_round(_content())
    second = await manager.open_round(_content())
    await manager.apply(
        first.round.round_id, lambda r: r.place_on_bucket(LEFT, Bucket.IS)
    )

    assert first.round.round_id != second.round.round_id
    assert first.has_assignment
    assert not second.has_assignment


@pytest.mark.anyio("asyncio")
async def test_apply_returns_gesture_result():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10)
    resolver = await manager.open_round(_content(), owner_user_id="user-1")

    _, selected = await manager.apply(
        resolver.round.round_id, lambda r: r.select_item(RIGHT), "user-1"
    )

    assert selected == RIGHT
    snapshot = await manager.snapshot(resolver.round.round_id)
    assert snapshot["selected"] == RIGHT


@pytest.mark.anyio("asyncio")
async def test_unknown_round_is_404():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10)

    with pytest.raises(HTTPException) as excinfo:
        await manager.get("missing")

    assert excinfo.value.status_code == 404


@pytest.mark.anyio("asyncio")
async def test_owned_round_rejects_other_players():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10)
    resolver = await manager.open_round(_content(), owner_user_id="user-1")

    with pytest.raises(HTTPException) as excinfo:
        await manager.apply(
            resolver.round.round_id, lambda r: r.select_item(LEFT), "user-2"
        )

    assert excinfo.value.status_code == 403
    assert resolver.selected is None


@pytest.mark.anyio("asyncio")
async def test_discard_removes_round():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10)
    resolver = await manager.open_round(_content())

    await manager.discard(resolver.round.round_id)

    assert await manager.count() == 0
    assert await manager.snapshot(resolver.round.round_id) is None


@pytest.mark.anyio("asyncio")
async def test_registry_evicts_oldest_at_capacity():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=2)

    first = await manager.open_round(_content("poll-1"))
    await asyncio.sleep(0.01)
    second = await manager.open_round(_content("poll-2"))
    await asyncio.sleep(0.01)
    third = await manager.open_round(_content("poll-3"))

    assert await manager.count() == 2
    assert await manager.snapshot(first.round.round_id) is None
    assert await manager.snapshot(second.round.round_id) is not None
    assert await manager.snapshot(third.round.round_id) is not None


@pytest.mark.anyio("asyncio")
async def test_concurrent_gestures_serialize():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10)
    resolver = await manager.open_round(_content())
    round_id = resolver.round.round_id

    await asyncio.gather(
        manager.apply(round_id, lambda r: r.place_on_bucket(LEFT, Bucket.IS)),
        manager.apply(round_id, lambda r: r.place_on_bucket(RIGHT, Bucket.IS)),
    )

    mapping = resolver.assignment.as_mapping()
    assert set(mapping.values()) == {Bucket.IS, Bucket.IT}


@pytest.mark.anyio("asyncio")
async def test_round_past_ttl_is_gone_without_new_rounds():
    manager = RoundStateManager(ttl_seconds=1, max_rounds=10)
    resolver = await manager.open_round(_content(), owner_user_id="user-1")
    round_id = resolver.round.round_id
    manager._touched[round_id] = _now() - timedelta(hours=5)

    with pytest.raises(HTTPException) as excinfo:
        await manager.apply(round_id, lambda r: r.select_item(LEFT), "user-1")

    assert excinfo.value.status_code == 404
    assert resolver.selected is None
    assert await manager.count() == 0


@pytest.mark.anyio("asyncio")
async def test_expired_round_has_no_snapshot():
    manager = RoundStateManager(ttl_seconds=1, max_rounds=10)
    resolver = await manager.open_round(_content())
    round_id = resolver.round.round_id
    manager._touched[round_id] = _now() - timedelta(seconds=5)

    assert await manager.snapshot(round_id) is None
    with pytest.raises(HTTPException):
        await manager.get(round_id)


@pytest.mark.anyio("asyncio")
async def test_gestures_keep_round_alive():
    manager = RoundStateManager(ttl_seconds=60, max_rounds=10)
    resolver = await manager.open_round(_content())
    round_id = resolver.round.round_id
    manager._touched[round_id] = _now() - timedelta(seconds=59)

    await manager.apply(round_id, lambda r: r.select_item(LEFT))

    assert manager._touched[round_id] > _now() - timedelta(seconds=5)
    assert (await manager.get(round_id)).selected == LEFT
