"""Tests for staging session edits."""

from dataclasses import replace

import pytest

from vintage_catalog.domain.errors import (
    ClusteringInputError,
    MergeError,
    PhotoIndexError,
    SessionInvariantError,
    StackNotFoundError,
)
from vintage_catalog.domain.photos import Stack, StagingSession
from vintage_catalog.services import staging
from tests.conftest import make_photo, sequential_ids


def _session(*sizes: int) -> StagingSession:
    """Build a session with stacks of the given sizes."""
    session = staging.start_session(
        "owner-1",
        [make_photo(float(i)) for i in range(sum(sizes))],
        id_factory=sequential_ids("s"),
    )
    photos = session.photos()
    stacks = []
    offset = 0
    for number, size in enumerate(sizes, start=1):
        stacks.append(
            Stack(id=f"stack-{number}", photos=tuple(photos[offset : offset + size]))
        )
        offset += size
    return replace(session, stacks=tuple(stacks))


def _photo_ids(stack: Stack) -> list[str]:
    return [photo.id for photo in stack.photos]


def test_start_session_creates_singleton_stacks() -> None:
    photos = [make_photo(t) for t in (3, 1, 2)]

    session = staging.start_session("owner-1", photos)

    assert [stack.photos for stack in session.stacks] == [(p,) for p in photos]
    assert session.original_count == 3
    session.check_invariants()


def test_add_photos_appends_singletons() -> None:
    session = _session(2)
    extra = [make_photo(10), make_photo(11)]

    updated = staging.add_photos(session, extra)

    assert updated.photo_count == 4
    assert [stack.photos for stack in updated.stacks[1:]] == [(extra[0],), (extra[1],)]


def test_add_photos_rejects_known_photo() -> None:
    session = _session(2)

    with pytest.raises(SessionInvariantError):
        staging.add_photos(session, [session.stacks[0].photos[0]])


def test_auto_group_reclusters_owned_photos() -> None:
    photos = [make_photo(t) for t in (0, 5, 100, 104)]
    session = staging.start_session("owner-1", photos)

    grouped = staging.auto_group(session)

    assert [stack.size for stack in grouped.stacks] == [2, 2]
    assert grouped.photo_count == 4


def test_auto_group_empty_session_is_informational() -> None:
    session = staging.start_session("owner-1", [])

    with pytest.raises(ClusteringInputError):
        staging.auto_group(session)


def test_merge_stacks_prepends_merged_stack_in_session_order() -> None:
    session = _session(1, 2, 1, 3)
    stack_1, stack_2, stack_3, stack_4 = session.stacks

    merged = staging.merge_stacks(
        session, ["stack-4", "stack-2"], id_factory=lambda: "merged"
    )

    assert [stack.id for stack in merged.stacks] == ["merged", "stack-1", "stack-3"]
    assert _photo_ids(merged.stacks[0]) == _photo_ids(stack_2) + _photo_ids(stack_4)
    assert merged.photo_count == session.photo_count


def test_merge_stacks_requires_two_stacks() -> None:
    session = _session(1, 1)

    with pytest.raises(MergeError):
        staging.merge_stacks(session, ["stack-1"])
    with pytest.raises(MergeError):
        staging.merge_stacks(session, ["stack-1", "stack-1"])


def test_merge_stacks_unknown_id() -> None:
    session = _session(1, 1)

    with pytest.raises(StackNotFoundError):
        staging.merge_stacks(session, ["stack-1", "missing"])


def test_split_photo_out_appends_singleton() -> None:
    session = _session(3, 1)
    moved = session.stacks[0].photos[1]

    updated = staging.split_photo_out(
        session, "stack-1", 1, id_factory=lambda: "loose"
    )

    assert [stack.id for stack in updated.stacks] == ["stack-1", "stack-2", "loose"]
    assert updated.stacks[0].size == 2
    assert updated.stacks[-1].photos == (moved,)
    assert updated.photo_count == session.photo_count


def test_split_photo_out_deletes_emptied_stack() -> None:
    session = _session(1, 2)

    updated = staging.split_photo_out(session, "stack-1", 0, id_factory=lambda: "x")

    assert [stack.id for stack in updated.stacks] == ["stack-2", "x"]
    assert updated.photo_count == 3


def test_split_photo_out_rejects_bad_index() -> None:
    session = _session(2)

    with pytest.raises(PhotoIndexError):
        staging.split_photo_out(session, "stack-1", 2)


def test_explode_stack_appends_singletons_in_order() -> None:
    session = _session(3, 1)
    original = _photo_ids(session.stacks[0])

    exploded = staging.explode_stack(session, "stack-1")

    assert exploded.stacks[0].id == "stack-2"
    assert [_photo_ids(stack) for stack in exploded.stacks[1:]] == [
        [photo_id] for photo_id in original
    ]
    assert exploded.photo_count == 4


def test_explode_single_photo_stack_is_noop() -> None:
    session = _session(1, 2)

    assert staging.explode_stack(session, "stack-1") is session


def test_merge_then_explode_preserves_photo_count() -> None:
    session = _session(2, 3, 1)

    merged = staging.merge_stacks(session, ["stack-1", "stack-2", "stack-3"])
    exploded = staging.explode_stack(merged, merged.stacks[0].id)

    assert exploded.photo_count == session.photo_count
    assert len(exploded.stacks) == 6
    exploded.check_invariants()


def test_reorder_within_stack_round_trip_restores_order() -> None:
    session = _session(4)
    original = _photo_ids(session.stacks[0])

    moved = staging.reorder_within_stack(session, "stack-1", 0, 3)
    restored = staging.reorder_within_stack(moved, "stack-1", 3, 0)

    assert _photo_ids(moved.stacks[0]) == original[1:] + original[:1]
    assert _photo_ids(restored.stacks[0]) == original


def test_reorder_within_stack_sets_hero() -> None:
    session = _session(3)
    new_hero = session.stacks[0].photos[2]

    updated = staging.reorder_within_stack(session, "stack-1", 2, 0)

    assert updated.stacks[0].hero == new_hero


def test_move_stack_reorders_into_empty_slot() -> None:
    session = _session(1, 1, 1)

    moved = staging.move_stack(session, "stack-1", 2)

    assert [stack.id for stack in moved.stacks] == ["stack-2", "stack-3", "stack-1"]


def test_move_stack_onto_stack_merges_after_target_photos() -> None:
    session = _session(2, 1, 2)
    target_photos = _photo_ids(session.stacks[0])
    dragged_photos = _photo_ids(session.stacks[2])

    merged = staging.move_stack(session, "stack-3", 0, onto_stack=True)

    assert [stack.id for stack in merged.stacks] == ["stack-1", "stack-2"]
    assert _photo_ids(merged.stacks[0]) == target_photos + dragged_photos
    assert merged.photo_count == session.photo_count


def test_move_stack_onto_itself_is_noop() -> None:
    session = _session(2, 1)

    assert staging.move_stack(session, "stack-1", 0, onto_stack=True) is session
    assert staging.move_stack(session, "stack-1", 0) is session


def test_remove_stack_drops_exactly_its_photos() -> None:
    session = _session(2, 3, 1)
    untouched = (session.stacks[0], session.stacks[2])

    updated = staging.remove_stack(session, "stack-2")

    assert updated.photo_count == session.photo_count - 3
    assert updated.stacks == untouched
    assert updated.removed_count == 3
    assert updated.photo_count == updated.original_count - updated.removed_count


def test_remove_photo_deletes_single_photo() -> None:
    session = _session(1, 2)

    updated = staging.remove_photo(session, "stack-1", 0)

    assert [stack.id for stack in updated.stacks] == ["stack-2"]
    assert updated.removed_count == 1
    assert updated.photo_count == 2


def test_edits_do_not_mutate_input_session() -> None:
    session = _session(2, 2)
    before = session.stacks

    staging.merge_stacks(session, ["stack-1", "stack-2"])
    staging.remove_stack(session, "stack-1")
    staging.split_photo_out(session, "stack-2", 0)

    assert session.stacks == before


def test_check_invariants_detects_duplicate_ownership() -> None:
    session = _session(2)
    photo = session.stacks[0].photos[0]
    broken = replace(
        session,
        stacks=(*session.stacks, Stack(id="dup", photos=(photo,))),
    )

    with pytest.raises(SessionInvariantError):
        broken.check_invariants()


def test_check_invariants_detects_lost_photo() -> None:
    session = _session(2, 1)
    broken = replace(session, stacks=session.stacks[:1])

    with pytest.raises(SessionInvariantError):
        broken.check_invariants()


def test_stack_requires_a_photo() -> None:
    with pytest.raises(ValueError):
        Stack(id="empty", photos=())
