"""Time-boxed door access codes. The id doubles as the redemption secret."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.sql import func

from ..core.enums import AccessCodeStatus
from ..database import Base


class AccessCode(Base):
    __tablename__ = "access_codes"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    user_email = Column(String(255), nullable=False)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default=AccessCodeStatus.ACTIVE.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    redeemed_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_access_codes_user_status", "user_id", "status"),)

    def __repr__(self) -> str:
        return f"<AccessCode {self.user_id} {self.valid_from}->{self.valid_until} {self.status}>"
