"""Order Item model."""
from sqlalchemy import Column, BigInteger, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from storefront.database import Base, IdType


class OrderItem(Base):
    """Order line; name and price are snapshots taken when the order was placed."""

    __tablename__ = 'order_items'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    menu_item_id = Column(BigInteger, nullable=True)
    item_name = Column(String(120), nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    qty = Column(Integer, nullable=False)
    line_total_cents = Column(Integer, nullable=False)

    # Relationships
    order = relationship('Order', back_populates='items')

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'item_name': self.item_name,
            'unit_price_cents': self.unit_price_cents,
            'qty': self.qty,
            'line_total_cents': self.line_total_cents,
        }

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, qty={self.qty})>"
