"""Bookable resources (tables/rooms). Seeded from configuration."""

from sqlalchemy import Boolean, Column, Integer, String

from ..database import Base


class Resource(Base):
    __tablename__ = "resources"

    id = Column(String(32), primary_key=True)
    name = Column(String(100), nullable=False)
    # Lower priority is tried first during automatic assignment
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Resource {self.id} priority={self.priority}>"
