"""
Location database model.

Maps branch / warehouse display names to the short codes the ledger is keyed by.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from inventory_backend.app.db.session import Base


class Location(Base):
    """Stock-holding location (branch or warehouse)."""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(200), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Location(code='{self.code}', name='{self.name}')>"
