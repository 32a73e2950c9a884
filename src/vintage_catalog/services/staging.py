"""Editing operations over staging sessions.

Every operation returns a new `StagingSession` and leaves its input untouched.
Photos only leave a session through `remove_stack` or `remove_photo`.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace

from vintage_catalog.domain.errors import (
    ClusteringInputError,
    MergeError,
    PhotoIndexError,
    SessionInvariantError,
    StackNotFoundError,
)
from vintage_catalog.domain.photos import Photo, Stack, StagingSession, new_id
from vintage_catalog.services.clustering import (
    DEFAULT_MAX_GAP_SECONDS,
    DEFAULT_MAX_GROUP_SIZE,
    cluster_by_time,
)

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]


def start_session(
    owner_id: str, photos: Sequence[Photo], id_factory: IdFactory = new_id
) -> StagingSession:
    """Create a session where every photo starts as its own stack."""
    session = StagingSession(id=id_factory(), owner_id=owner_id)
    return add_photos(session, photos, id_factory=id_factory)


def add_photos(
    session: StagingSession, photos: Sequence[Photo], id_factory: IdFactory = new_id
) -> StagingSession:
    """Append new photos as singleton stacks."""
    incoming = [photo.id for photo in photos]
    if len(set(incoming)) != len(incoming):
        raise SessionInvariantError("The same photo was added twice")
    already_known = set(incoming) & session.photo_ids
    if already_known:
        raise SessionInvariantError(
            f"Photos already belong to session {session.id}: {sorted(already_known)}"
        )
    singles = tuple(Stack(id=id_factory(), photos=(photo,)) for photo in photos)
    return _commit(
        session,
        stacks=session.stacks + singles,
        photo_ids=session.photo_ids | set(incoming),
    )


def auto_group(
    session: StagingSession,
    max_gap_seconds: float = DEFAULT_MAX_GAP_SECONDS,
    max_group_size: int = DEFAULT_MAX_GROUP_SIZE,
    id_factory: IdFactory = new_id,
) -> StagingSession:
    """Regroup every owned photo by capture time, discarding manual grouping."""
    photos = session.photos()
    if not photos:
        raise ClusteringInputError("No photos to group")
    stacks = cluster_by_time(
        photos,
        max_gap_seconds=max_gap_seconds,
        max_group_size=max_group_size,
        id_factory=id_factory,
    )
    return _commit(session, stacks=tuple(stacks))


def merge_stacks(
    session: StagingSession, stack_ids: Iterable[str], id_factory: IdFactory = new_id
) -> StagingSession:
    """Merge the selected stacks into a new stack placed first.

    Photos keep the order in which their stacks appear in the session.
    """
    selected = set(stack_ids)
    if len(selected) < 2:
        raise MergeError("Select at least two stacks to merge")
    for stack_id in selected:
        session.index_of(stack_id)

    merged: list[Photo] = []
    remaining: list[Stack] = []
    for stack in session.stacks:
        if stack.id in selected:
            merged.extend(stack.photos)
        else:
            remaining.append(stack)
    merged_stack = Stack(id=id_factory(), photos=tuple(merged))
    return _commit(session, stacks=(merged_stack, *remaining))


def split_photo_out(
    session: StagingSession,
    stack_id: str,
    photo_index: int,
    id_factory: IdFactory = new_id,
) -> StagingSession:
    """Move one photo out of its stack into a new stack at the end."""
    index = session.index_of(stack_id)
    photo, rest = _take_photo(session.stacks[index], photo_index)
    stacks = _replace_stack(session.stacks, index, rest)
    return _commit(session, stacks=(*stacks, Stack(id=id_factory(), photos=(photo,))))


def explode_stack(
    session: StagingSession, stack_id: str, id_factory: IdFactory = new_id
) -> StagingSession:
    """Break a stack into single-photo stacks appended at the end."""
    index = session.index_of(stack_id)
    stack = session.stacks[index]
    if stack.size <= 1:
        return session
    singles = tuple(Stack(id=id_factory(), photos=(photo,)) for photo in stack.photos)
    stacks = _replace_stack(session.stacks, index, None)
    return _commit(session, stacks=(*stacks, *singles))


def reorder_within_stack(
    session: StagingSession, stack_id: str, from_index: int, to_index: int
) -> StagingSession:
    """Move a photo inside its stack; index 0 becomes the hero."""
    index = session.index_of(stack_id)
    stack = session.stacks[index]
    _check_photo_index(stack, from_index)
    _check_photo_index(stack, to_index)
    photos = list(stack.photos)
    photos.insert(to_index, photos.pop(from_index))
    stacks = _replace_stack(session.stacks, index, replace(stack, photos=tuple(photos)))
    return _commit(session, stacks=stacks)


def move_stack(
    session: StagingSession,
    stack_id: str,
    target_index: int,
    *,
    onto_stack: bool = False,
) -> StagingSession:
    """Relocate a stack, or merge it into the stack it was dropped onto.

    With `onto_stack` the stack at `target_index` keeps its id and position
    and the dragged photos are appended after its own, without re-sorting.
    """
    source_index = session.index_of(stack_id)
    if onto_stack:
        if not 0 <= target_index < len(session.stacks):
            raise StackNotFoundError(f"No stack at position {target_index}")
        if target_index == source_index:
            return session
        source = session.stacks[source_index]
        target = session.stacks[target_index]
        combined = replace(target, photos=target.photos + source.photos)
        stacks = list(session.stacks)
        stacks[target_index] = combined
        del stacks[source_index]
        return _commit(session, stacks=tuple(stacks))

    target_index = max(0, min(target_index, len(session.stacks) - 1))
    if target_index == source_index:
        return session
    stacks = list(session.stacks)
    stacks.insert(target_index, stacks.pop(source_index))
    return _commit(session, stacks=tuple(stacks))


def remove_stack(session: StagingSession, stack_id: str) -> StagingSession:
    """Delete a stack together with its photos."""
    index = session.index_of(stack_id)
    removed = {photo.id for photo in session.stacks[index].photos}
    return _commit(
        session,
        stacks=_replace_stack(session.stacks, index, None),
        removed_photo_ids=session.removed_photo_ids | removed,
    )


def remove_photo(
    session: StagingSession, stack_id: str, photo_index: int
) -> StagingSession:
    """Delete a single photo; an emptied stack disappears with it."""
    index = session.index_of(stack_id)
    photo, rest = _take_photo(session.stacks[index], photo_index)
    return _commit(
        session,
        stacks=_replace_stack(session.stacks, index, rest),
        removed_photo_ids=session.removed_photo_ids | {photo.id},
    )


def _commit(session: StagingSession, **changes: object) -> StagingSession:
    updated = replace(session, **changes)
    updated.check_invariants()
    logger.debug(
        "Session %s now has %d stacks and %d photos",
        updated.id,
        len(updated.stacks),
        updated.photo_count,
    )
    return updated


def _check_photo_index(stack: Stack, photo_index: int) -> None:
    if not 0 <= photo_index < stack.size:
        raise PhotoIndexError(
            f"Photo index {photo_index} is outside stack {stack.id} of {stack.size}"
        )


def _take_photo(stack: Stack, photo_index: int) -> tuple[Photo, Stack | None]:
    _check_photo_index(stack, photo_index)
    photos = list(stack.photos)
    photo = photos.pop(photo_index)
    rest = replace(stack, photos=tuple(photos)) if photos else None
    return photo, rest


def _replace_stack(
    stacks: tuple[Stack, ...], index: int, stack: Stack | None
) -> tuple[Stack, ...]:
    """Swap the stack at `index`, dropping it when `stack` is None."""
    if stack is None:
        return stacks[:index] + stacks[index + 1 :]
    return stacks[:index] + (stack,) + stacks[index + 1 :]
