"""Domain models for staged photos and stacks."""

from collections import Counter
from dataclasses import dataclass, field
from uuid import uuid4

from vintage_catalog.domain.errors import SessionInvariantError, StackNotFoundError


def new_id() -> str:
    """Return a collision-resistant identifier."""
    return uuid4().hex


@dataclass(frozen=True)
class Photo:
    """A captured photo waiting to be catalogued."""

    id: str
    data: bytes = field(repr=False)
    captured_at: float
    filename: str | None = None


@dataclass(frozen=True)
class Stack:
    """Ordered group of photos for one prospective catalog item.

    The first photo is the hero used as the item's cover.
    """

    id: str
    photos: tuple[Photo, ...]

    def __post_init__(self) -> None:
        if not self.photos:
            raise ValueError("A stack must hold at least one photo")

    @property
    def hero(self) -> Photo:
        return self.photos[0]

    @property
    def size(self) -> int:
        return len(self.photos)


@dataclass(frozen=True)
class StagingSession:
    """All stacks being organized before ingestion.

    `photo_ids` remembers every photo the session was given and
    `removed_photo_ids` the ones deleted on purpose, so ownership can be
    checked after every edit.
    """

    id: str
    owner_id: str
    stacks: tuple[Stack, ...] = ()
    photo_ids: frozenset[str] = frozenset()
    removed_photo_ids: frozenset[str] = frozenset()

    @property
    def photo_count(self) -> int:
        return sum(stack.size for stack in self.stacks)

    @property
    def original_count(self) -> int:
        return len(self.photo_ids)

    @property
    def removed_count(self) -> int:
        return len(self.removed_photo_ids)

    def photos(self) -> list[Photo]:
        """Return every owned photo in session order."""
        return [photo for stack in self.stacks for photo in stack.photos]

    def index_of(self, stack_id: str) -> int:
        """Return the position of a stack or raise StackNotFoundError."""
        for index, stack in enumerate(self.stacks):
            if stack.id == stack_id:
                return index
        raise StackNotFoundError(f"Stack {stack_id} is not in session {self.id}")

    def stack(self, stack_id: str) -> Stack:
        return self.stacks[self.index_of(stack_id)]

    def check_invariants(self) -> None:
        """Raise SessionInvariantError unless every photo has exactly one owner."""
        owned = Counter(photo.id for photo in self.photos())
        duplicates = sorted(photo_id for photo_id, count in owned.items() if count > 1)
        if duplicates:
            raise SessionInvariantError(f"Photos owned twice: {duplicates}")
        owned_ids = set(owned)
        if owned_ids & self.removed_photo_ids:
            raise SessionInvariantError("Removed photos are still owned by a stack")
        unknown = owned_ids - self.photo_ids
        if unknown:
            raise SessionInvariantError(
                f"Photos not given to session: {sorted(unknown)}"
            )
        missing = self.photo_ids - owned_ids - self.removed_photo_ids
        if missing:
            raise SessionInvariantError(f"Photos lost from session: {sorted(missing)}")
