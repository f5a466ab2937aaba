"""
Helpers for working with SQLAlchemy sessions in a dialect-agnostic way.
"""

from __future__ import annotations

from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Return the bound dialect name, falling back to ``default``."""
    try:
        bind = session.get_bind()
    except Exception:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default


def supports_row_locks(session: Session) -> bool:
    """SQLite serialises whole transactions instead of honouring FOR UPDATE."""
    return get_dialect_name(session) != "sqlite"
