"""Slot pricing in balance units."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

# Evening band covers slots starting 18:00 up to 22:30
EVENING_FROM_HOUR = 18
EVENING_UNTIL_HOUR = 23
EARLY_BEFORE_HOUR = 7


@dataclass(frozen=True)
class SlotPriceTable:
    default: int = 50
    evening: int = 80
    early: int = 40
    solo_discount: int = 15
    privileged_discount_percent: int = 15

    @classmethod
    def from_settings(cls, settings: Any) -> "SlotPriceTable":
        return cls(
            default=settings.slot_price_default,
            evening=settings.slot_price_evening,
            early=settings.slot_price_early,
            solo_discount=settings.solo_discount_per_slot,
            privileged_discount_percent=settings.privileged_discount_percent,
        )

    def slot_price(self, slot_start: datetime, *, solo: bool = False) -> int:
        if EVENING_FROM_HOUR <= slot_start.hour < EVENING_UNTIL_HOUR:
            price = self.evening
        elif slot_start.hour < EARLY_BEFORE_HOUR:
            price = self.early
        else:
            price = self.default
        if solo:
            price = max(price - self.solo_discount, 0)
        return price

    def quote(
        self, slots: Iterable[datetime], *, solo: bool = False, privileged: bool = False
    ) -> int:
        """
        Price a span.

        The privileged discount and the solo discount do not stack: a solo
        booking by a privileged caller pays whichever is cheaper.
        """
        slots = list(slots)
        base = sum(self.slot_price(slot) for slot in slots)
        cost = base
        if privileged:
            cost = base * (100 - self.privileged_discount_percent) // 100
        if solo:
            cost = min(cost, base - self.solo_discount * len(slots))
        return max(cost, 0)
