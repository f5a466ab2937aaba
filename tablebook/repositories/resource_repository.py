"""Repository for the configured resource set."""

from __future__ import annotations

import logging
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.resource import Resource
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ResourceRepository(BaseRepository[Resource]):
    def __init__(self, db: Session):
        super().__init__(db, Resource)

    def list_active(self, *, for_update: bool = False) -> List[Resource]:
        """Active resources in assignment priority order."""
        try:
            query = (
                self.db.query(Resource)
                .filter(Resource.is_active.is_(True))
                .order_by(Resource.priority.asc(), Resource.id.asc())
            )
            if for_update and self.supports_row_locks:
                query = query.with_for_update()
            return query.all()
        except SQLAlchemyError as e:
            self._raise("list", e)

    def sync_configured(self, resources: Dict[str, str]) -> List[Resource]:
        """
        Make the table match configuration.

        Configured ids are upserted with their position as priority; ids no
        longer configured are deactivated, never deleted, because bookings
        reference them.
        """
        existing = {resource.id: resource for resource in self.db.query(Resource).all()}
        for priority, (resource_id, name) in enumerate(resources.items()):
            resource = existing.pop(resource_id, None)
            if resource is None:
                self.db.add(Resource(id=resource_id, name=name, priority=priority, is_active=True))
            else:
                resource.name = name
                resource.priority = priority
                resource.is_active = True
        for stale in existing.values():
            logger.info("Deactivating resource %s no longer in configuration", stale.id)
            stale.is_active = False
        self.db.flush()
        return self.list_active()
