# tablebook/repositories/booking_repository.py
"""
Booking Repository.

Overlap queries use the corrected ``[starts_at, ends_at)`` interval, so
overnight bookings are found without special casing.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.PENDING_PAYMENT.value)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_active_for_dates(self, first_day: date, last_day: date) -> List[Booking]:
        """Active bookings whose booking_date falls in ``[first_day, last_day]``."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.booking_date >= first_day,
                    Booking.booking_date <= last_day,
                    Booking.status.in_(ACTIVE_STATUSES),
                )
                .order_by(Booking.starts_at.asc(), Booking.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self._raise("list", e)

    def get_active_for_day(self, day: date) -> List[Booking]:
        """Bookings of ``day`` plus the previous day, whose overnight tail may spill over."""
        return self.get_active_for_dates(day - timedelta(days=1), day)

    def find_overlapping(
        self,
        start: datetime,
        end: datetime,
        *,
        resource_id: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.starts_at < end,
                Booking.ends_at > start,
            )
            if resource_id is not None:
                query = query.filter(Booking.resource_id == resource_id)
            excluded = list(exclude_ids)
            if excluded:
                query = query.filter(Booking.id.notin_(excluded))
            return query.all()
        except SQLAlchemyError as e:
            self._raise("check overlap of", e)

    def get_by_secret(self, secret: str) -> Optional[Booking]:
        return self.find_one_by(redemption_secret=secret)

    def list_for_user(self, user_id: str, *, include_cancelled: bool = True) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.user_id == user_id)
            if not include_cancelled:
                query = query.filter(Booking.status.in_(ACTIVE_STATUSES))
            return query.order_by(Booking.starts_at.desc()).all()
        except SQLAlchemyError as e:
            self._raise("list", e)

    def transition(
        self,
        booking_id: str,
        from_statuses: Iterable[str],
        to_status: str,
        **values: Any,
    ) -> bool:
        """Compare-and-set the status; False when another writer got there first."""
        try:
            result = self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status.in_(list(from_statuses)))
                .values(status=to_status, **values)
                .execution_options(synchronize_session=False)
            )
            return self._changed(booking_id, result.rowcount)
        except SQLAlchemyError as e:
            self._raise("update status of", e)

    def mark_redeemed(self, booking_id: str, redeemed_at: datetime) -> bool:
        """Consume the redemption secret exactly once."""
        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.redeemed_at.is_(None),
                )
                .values(redeemed_at=redeemed_at)
                .execution_options(synchronize_session=False)
            )
            return self._changed(booking_id, result.rowcount)
        except SQLAlchemyError as e:
            self._raise("redeem", e)
