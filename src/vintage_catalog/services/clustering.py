"""Temporal clustering of photos into candidate stacks."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from vintage_catalog.domain.photos import Photo, Stack, new_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_GAP_SECONDS = 30.0
DEFAULT_MAX_GROUP_SIZE = 4


@dataclass(frozen=True)
class ClusterSummary:
    """Feedback about a clustering pass."""

    stack_count: int
    grouped_count: int

    @property
    def message(self) -> str:
        if self.grouped_count:
            return (
                f"Grouped into {self.stack_count} items "
                f"({self.grouped_count} stacks)."
            )
        return "No time-based groups found. Group photos manually."


def cluster_by_time(
    photos: Sequence[Photo],
    max_gap_seconds: float = DEFAULT_MAX_GAP_SECONDS,
    max_group_size: int = DEFAULT_MAX_GROUP_SIZE,
    id_factory: Callable[[], str] = new_id,
) -> list[Stack]:
    """Group photos taken close together into stacks.

    Photos are ordered by capture time (input order breaks ties). A photo joins
    the current stack when it was taken less than `max_gap_seconds` after the
    stack's last photo and the stack holds fewer than `max_group_size` photos.
    """
    if max_gap_seconds <= 0:
        raise ValueError("max_gap_seconds must be positive")
    if max_group_size < 1:
        raise ValueError("max_group_size must be at least 1")
    if not photos:
        return []

    # sorted() is stable, so equal timestamps keep their input order.
    ordered = sorted(photos, key=lambda photo: photo.captured_at)
    stacks: list[Stack] = []
    current: list[Photo] = [ordered[0]]
    for photo in ordered[1:]:
        gap = photo.captured_at - current[-1].captured_at
        if gap < max_gap_seconds and len(current) < max_group_size:
            current.append(photo)
            continue
        logger.debug(
            "Closing stack of %d photos (%s)",
            len(current),
            "size cap" if gap < max_gap_seconds else f"gap {gap:.1f}s",
        )
        stacks.append(Stack(id=id_factory(), photos=tuple(current)))
        current = [photo]
    stacks.append(Stack(id=id_factory(), photos=tuple(current)))
    return stacks


def summarize_clusters(stacks: Sequence[Stack]) -> ClusterSummary:
    """Count stacks and how many of them group several photos."""
    return ClusterSummary(
        stack_count=len(stacks),
        grouped_count=sum(1 for stack in stacks if stack.size > 1),
    )
