"""Menu Item model."""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func

from storefront.database import Base, IdType


class MenuItemTag(str, enum.Enum):
    """Admin-assigned classification used by promotions."""
    STANDARD = 'standard'
    NATURAL_JUICE = 'natural_juice'


class MenuItem(Base):
    """Menu item shown on the storefront."""

    __tablename__ = 'menu_items'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    category = Column(String(60), nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)
    badge = Column(String(40), nullable=True)
    tag = Column(String(20), nullable=False, default=MenuItemTag.STANDARD.value, server_default=MenuItemTag.STANDARD.value)
    promo_excluded = Column(Boolean, nullable=False, default=False, server_default='false')
    is_active = Column(Boolean, nullable=False, default=True)
    in_stock = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    @property
    def is_available(self):
        return bool(self.is_active and self.in_stock)

    @property
    def is_free_juice_eligible(self):
        return self.is_available and self.tag == MenuItemTag.NATURAL_JUICE.value and not self.promo_excluded

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'price_cents': self.price_cents,
            'badge': self.badge,
            'tag': self.tag,
            'promo_excluded': self.promo_excluded,
            'in_stock': self.in_stock,
            'is_active': self.is_active,
            'sort_order': self.sort_order,
        }

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name='{self.name}', price={self.price_cents})>"
