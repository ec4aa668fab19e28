"""Promo Code model."""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, CheckConstraint
from sqlalchemy.sql import func

from storefront.database import Base, IdType
from storefront.utils.dates import isoformat_or_none


class DiscountType(str, enum.Enum):
    """Promo discount type."""
    FLAT = 'flat'
    PERCENT = 'percent'


def normalize_promo_code(value) -> str:
    """Codes are case-insensitive; stored and compared upper-case."""
    return str(value or '').strip().upper()


class PromoCode(Base):
    """Admin-managed promo code."""

    __tablename__ = 'promo_codes'

    id = Column(IdType, primary_key=True, autoincrement=True)
    code = Column(String(40), nullable=False, unique=True)
    discount_type = Column(String(10), nullable=False)
    discount_value = Column(Integer, nullable=False)
    min_order_cents = Column(Integer, nullable=False, default=0)
    max_discount_cents = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0, server_default='0')
    note = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("discount_type IN ('flat', 'percent')", name='check_discount_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'min_order_cents': self.min_order_cents,
            'max_discount_cents': self.max_discount_cents,
            'active': self.active,
            'starts_at': isoformat_or_none(self.starts_at),
            'expires_at': isoformat_or_none(self.expires_at),
            'usage_limit': self.usage_limit,
            'used_count': self.used_count,
            'note': self.note,
        }

    def __repr__(self):
        return f"<PromoCode(code='{self.code}', type={self.discount_type}, value={self.discount_value})>"
