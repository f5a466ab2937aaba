"""Repositories for top-up requests and received payment notifications."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.top_up import PaymentNotification, TopUpRequest
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class TopUpRequestRepository(BaseRepository[TopUpRequest]):
    def __init__(self, db: Session):
        super().__init__(db, TopUpRequest)

    def find_pending_by_amount(
        self, amount_cents: int, statuses: Iterable[str], *, for_update: bool = True
    ) -> List[TopUpRequest]:
        """Exact-amount candidates for a payment notification."""
        try:
            query = (
                self.db.query(TopUpRequest)
                .filter(
                    TopUpRequest.amount_cents == amount_cents,
                    TopUpRequest.status.in_(list(statuses)),
                )
                .order_by(TopUpRequest.created_at.asc(), TopUpRequest.id.asc())
            )
            if for_update and self.supports_row_locks:
                query = query.with_for_update()
            return query.all()
        except SQLAlchemyError as e:
            self._raise("match", e)

    def get_by_booking_id(self, booking_id: str) -> Optional[TopUpRequest]:
        return self.find_one_by(booking_id=booking_id)

    def list_for_user(self, user_id: str) -> List[TopUpRequest]:
        try:
            return (
                self.db.query(TopUpRequest)
                .filter(TopUpRequest.user_id == user_id)
                .order_by(TopUpRequest.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self._raise("list", e)

    def transition(
        self,
        request_id: str,
        from_statuses: Iterable[str],
        to_status: str,
        **values: Any,
    ) -> bool:
        """Compare-and-set; the row moves only if it is still in ``from_statuses``."""
        try:
            result = self.db.execute(
                update(TopUpRequest)
                .where(
                    TopUpRequest.id == request_id,
                    TopUpRequest.status.in_(list(from_statuses)),
                )
                .values(status=to_status, **values)
                .execution_options(synchronize_session=False)
            )
            return self._changed(request_id, result.rowcount)
        except SQLAlchemyError as e:
            self._raise("update status of", e)


class PaymentNotificationRepository(BaseRepository[PaymentNotification]):
    def __init__(self, db: Session):
        super().__init__(db, PaymentNotification)

    def list_by_outcome(self, outcome: str) -> List[PaymentNotification]:
        try:
            return (
                self.db.query(PaymentNotification)
                .filter(PaymentNotification.outcome == outcome)
                .order_by(PaymentNotification.received_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self._raise("list", e)
