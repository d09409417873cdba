import random

import pytest

from isit_game.services.assignment import (
    LEFT,
    RIGHT,
    AssignmentResolver,
    Bucket,
    Item,
    Round,
)


def _round(word_flip=False, symbol_flip=False):
    return Round(
        poll_id="poll-1",
        left=Item(key=LEFT, text="HONESTY"),
        right=Item(key=RIGHT, text="INTEGRITY"),
        correct=Bucket.IS,
        word_flip=word_flip,
        symbol_flip=symbol_flip,
    )


def _texts(assignment):
    return {
        item.text: assignment.bucket_for(item.key)
        for item in (assignment.moved, assignment.other)
    }


def test_drag_onto_bucket_resolves_both_items():
    resolver = AssignmentResolver(_round())

    resolver.begin_drag(LEFT)
    assignment = resolver.drop_on_bucket(Bucket.IS, 0)

    assert assignment is not None
    assert _texts(assignment) == {"HONESTY": Bucket.IS, "INTEGRITY": Bucket.IT}
    assert resolver.dragging is None
    assert resolver.has_assignment


def test_select_twice_deselects_without_placing():
    resolver = AssignmentResolver(_round())

    assert resolver.select_item(RIGHT) == RIGHT
    assert resolver.select_item(RIGHT) is None

    assert resolver.selected is None
    assert not resolver.has_assignment
    assert resolver.assignment.as_mapping() == {}


def test_click_item_then_bucket_auto_resolves_complement():
    resolver = AssignmentResolver(_round())

    resolver.select_item(LEFT)
    assignment = resolver.click_bucket(Bucket.IT, 1)

    assert _texts(assignment) == {"HONESTY": Bucket.IT, "INTEGRITY": Bucket.IS}
    assert assignment.chosen is Bucket.IT
    assert resolver.selected is None


def test_selecting_other_item_moves_selection():
    resolver = AssignmentResolver(_round())

    resolver.select_item(LEFT)
    resolver.select_item(RIGHT)

    assert resolver.selected == RIGHT


def test_unknown_item_is_ignored():
    resolver = AssignmentResolver(_round())

    resolver.select_item("middle")
    resolver.begin_drag("middle")

    assert resolver.selected is None
    assert resolver.dragging is None


@pytest.mark.parametrize(
    "bucket, slot_index",
    [
        (None, 0),
        (Bucket.IS, None),
        (Bucket.IS, 1),
        (Bucket.IT, 0),
        (Bucket.IS, 2),
    ],
)
def test_invalid_drop_target_changes_nothing(bucket, slot_index):
    resolver = AssignmentResolver(_round())
    resolver.begin_drag(LEFT)

    assert resolver.drop_on_bucket(bucket, slot_index) is None

    assert resolver.dragging == LEFT
    assert not resolver.has_assignment


def test_bucket_click_without_selection_is_noop():
    resolver = AssignmentResolver(_round())

    assert resolver.click_bucket(Bucket.IS, 0) is None
    assert not resolver.has_assignment


def test_drop_without_drag_is_noop():
    resolver = AssignmentResolver(_round())

    assert resolver.drop_on_bucket(Bucket.IS, 0) is None


def test_cancel_drag_clears_drag_only():
    resolver = AssignmentResolver(_round())
    resolver.select_item(LEFT)
    resolver.begin_drag(RIGHT)

    resolver.cancel_drag()

    assert resolver.dragging is None
    assert resolver.selected == LEFT


def test_placement_always_uses_both_buckets():
    for key in (LEFT, RIGHT):
        for bucket in Bucket:
            resolver = AssignmentResolver(_round())
            assignment = resolver.place_on_bucket(key, bucket)
            mapping = assignment.as_mapping()
            assert set(mapping) == {LEFT, RIGHT}
            assert set(mapping.values()) == {Bucket.IS, Bucket.IT}
            assert mapping[key] is bucket


def test_replacing_overwrites_previous_assignment():
    resolver = AssignmentResolver(_round())
    resolver.place_on_bucket(LEFT, Bucket.IS)

    resolver.place_on_bucket(RIGHT, Bucket.IS)

    assert resolver.assignment.as_mapping() == {RIGHT: Bucket.IS, LEFT: Bucket.IT}


def test_place_unknown_item_raises():
    resolver = AssignmentResolver(_round())

    with pytest.raises(ValueError):
        resolver.place_on_bucket("middle", Bucket.IS)


def test_reset_returns_to_nothing_placed():
    resolver = AssignmentResolver(_round())
    resolver.select_item(LEFT)
    resolver.click_bucket(Bucket.IS, 0)
    resolver.begin_drag(RIGHT)

    resolver.reset()

    assert resolver.selected is None
    assert resolver.dragging is None
    assert not resolver.has_assignment
    assert resolver.assignment.by_bucket() == {}
    assert resolver.column_for_item(LEFT) == 0


def test_symbol_flip_swaps_bucket_slots():
    resolver = AssignmentResolver(_round(symbol_flip=True))
    resolver.begin_drag(LEFT)

    # IS now sits in slot 1.
    assert resolver.drop_on_bucket(Bucket.IS, 0) is None
    assignment = resolver.drop_on_bucket(Bucket.IS, 1)

    assert assignment.chosen is Bucket.IS
    assert resolver.column_for_item(LEFT) == 1
    assert resolver.column_for_item(RIGHT) == 0


def test_word_flip_swaps_initial_columns():
    resolver = AssignmentResolver(_round(word_flip=True))

    assert resolver.column_for_item(LEFT) == 1
    assert resolver.column_for_item(RIGHT) == 0


def test_placement_moves_other_item_to_opposite_column():
    resolver = AssignmentResolver(_round())
    resolver.begin_drag(LEFT)
    resolver.drop_on_bucket(Bucket.IT, 1)

    payload = resolver.to_payload()

    assert payload["columns"] == [RIGHT, LEFT]
    assert payload["byBucket"] == {"IT": "HONESTY", "IS": "INTEGRITY"}
    assert payload["chosen"] == "IT"
    assert payload["hasAssignment"] is True


def test_round_flips_fixed_at_creation():
    rng = random.Random(7)
    round_ = Round.create(
        "poll-1",
        Item(key=LEFT, text="HONESTY"),
        Item(key=RIGHT, text="INTEGRITY"),
        rng=rng,
    )
    first = (round_.item_slots, round_.bucket_slots)

    resolver = AssignmentResolver(round_)
    resolver.place_on_bucket(LEFT, Bucket.IS)
    resolver.reset()

    assert (round_.item_slots, round_.bucket_slots) == first
    assert isinstance(round_.word_flip, bool)
    assert isinstance(round_.symbol_flip, bool)


def test_bucket_parse():
    assert Bucket.parse(" is ") is Bucket.IS
    assert Bucket.parse("IT") is Bucket.IT
    assert Bucket.parse("maybe") is None
    assert Bucket.parse(None) is None
