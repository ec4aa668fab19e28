"""Clover merchant OAuth credential."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func

from storefront.database import Base, IdType


class CloverToken(Base):
    """Access/refresh token pair stored by the Clover OAuth install flow."""

    __tablename__ = 'clover_tokens'

    id = Column(IdType, primary_key=True, autoincrement=True)
    merchant_id = Column(String(64), nullable=False, unique=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    scope = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<CloverToken(merchant_id='{self.merchant_id}', expires_at={self.expires_at})>"
