"""
Automatic resource assignment.

Resources are interchangeable; they are tried in a fixed priority order and
the first one free for every requested slot wins. The fixed order keeps
assignment deterministic, which tests and the admin calendar rely on.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from .slot_calendar import SLOT, BookingInterval


def is_free(
    resource_id: str,
    slots: Sequence[datetime],
    intervals: Iterable[BookingInterval],
) -> bool:
    """True when no interval on ``resource_id`` touches any of ``slots``."""
    on_resource = [iv for iv in intervals if iv.resource_id == resource_id]
    for slot_start in slots:
        slot_end = slot_start + SLOT
        if any(iv.overlaps(slot_start, slot_end) for iv in on_resource):
            return False
    return True


def assign(
    slots: Sequence[datetime],
    resource_ids: Sequence[str],
    existing: Iterable[BookingInterval],
    holds: Iterable[BookingInterval] = (),
) -> Optional[str]:
    """
    Pick the first resource free for all ``slots``.

    ``holds`` are intervals not yet persisted, such as earlier items of the
    same checkout. Returns ``None`` when no single resource can take the
    whole span; callers must not split a span across resources.
    """
    if not slots:
        raise ValueError("at least one slot is required")
    occupied = list(existing) + list(holds)
    for resource_id in resource_ids:
        if is_free(resource_id, slots, occupied):
            return resource_id
    return None
