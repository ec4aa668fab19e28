"""Settings model (singleton row)."""
from sqlalchemy import Column, Integer, Boolean, Float, DateTime
from sqlalchemy.sql import func

from storefront.database import Base


class Settings(Base):
    """Ordering, delivery and fee configuration. Exactly one row (id=1)."""

    __tablename__ = 'settings'

    SINGLETON_ID = 1

    id = Column(Integer, primary_key=True)
    ordering_enabled = Column(Boolean, nullable=False, default=True)
    delivery_enabled = Column(Boolean, nullable=False, default=False)
    delivery_radius_miles = Column(Float, nullable=False, default=0)
    processing_fee_cents = Column(Integer, nullable=False, default=0)
    delivery_fee_cents = Column(Integer, nullable=False, default=0)
    delivery_min_total_cents = Column(Integer, nullable=False, default=0)
    free_juice_enabled = Column(Boolean, nullable=False, default=False)
    free_juice_min_subtotal_cents = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    EDITABLE_FLAGS = ('ordering_enabled', 'delivery_enabled', 'free_juice_enabled')
    EDITABLE_NUMBERS = (
        'delivery_radius_miles',
        'processing_fee_cents',
        'delivery_fee_cents',
        'delivery_min_total_cents',
        'free_juice_min_subtotal_cents',
    )

    def to_dict(self):
        return {
            'ordering_enabled': self.ordering_enabled,
            'delivery_enabled': self.delivery_enabled,
            'delivery_radius_miles': self.delivery_radius_miles,
            'processing_fee_cents': self.processing_fee_cents,
            'delivery_fee_cents': self.delivery_fee_cents,
            'delivery_min_total_cents': self.delivery_min_total_cents,
            'free_juice_enabled': self.free_juice_enabled,
            'free_juice_min_subtotal_cents': self.free_juice_min_subtotal_cents,
        }

    def __repr__(self):
        return f"<Settings(ordering={self.ordering_enabled}, delivery={self.delivery_enabled})>"
