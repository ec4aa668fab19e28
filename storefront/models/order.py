"""Order model."""
import enum

from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.database import Base, IdType
from storefront.utils.dates import isoformat_or_none


class FulfillmentType(str, enum.Enum):
    """How the customer receives the order."""
    PICKUP = 'pickup'
    DELIVERY = 'delivery'


class PaymentStatus(str, enum.Enum):
    """Payment state; only moves forward from unpaid to paid."""
    UNPAID = 'unpaid'
    PAID = 'paid'


class OrderStatus(str, enum.Enum):
    """Kitchen state driven by the staff dashboard."""
    NEW = 'new'
    COMPLETED = 'completed'


class PrintStatus(str, enum.Enum):
    """Where the POS sync chain stopped for this order."""
    PENDING = 'pending'
    OK = 'ok'
    FAILED = 'failed'


class Order(Base):
    """Online order placed from the storefront."""

    __tablename__ = 'orders'

    id = Column(IdType, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    order_code = Column(String(20), nullable=False, index=True)

    customer_name = Column(String(30), nullable=False)
    customer_phone = Column(String(30), nullable=False)
    fulfillment_type = Column(String(10), nullable=False)
    delivery_address = Column(String(60), nullable=True)
    delivery_distance_miles = Column(Float, nullable=True)

    # Money (integer cents)
    subtotal_cents = Column(Integer, nullable=False, default=0)
    processing_fee_cents = Column(Integer, nullable=False, default=0)
    delivery_fee_cents = Column(Integer, nullable=False, default=0)
    discount_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    promo_code = Column(String(40), nullable=True)

    payment_status = Column(String(10), nullable=False, default=PaymentStatus.UNPAID.value, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=OrderStatus.NEW.value, server_default=OrderStatus.NEW.value)

    # Clover linkage
    clover_order_id = Column(String(64), nullable=True)       # eCommerce order the card was charged against
    clover_payment_id = Column(String(64), nullable=True)
    clover_pos_order_id = Column(String(64), nullable=True)   # POS ticket created by the sync job
    print_status = Column(String(10), nullable=True)
    print_error = Column(String(180), nullable=True)

    # SMS sent-flags (conditional writes guard against duplicate sends)
    confirmation_sms_sent = Column(Boolean, nullable=False, default=False, server_default='false')
    confirmation_sms_sent_at = Column(DateTime(timezone=True), nullable=True)
    ready_sms_sent = Column(Boolean, nullable=False, default=False, server_default='false')
    ready_sms_sent_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    items = relationship(
        'OrderItem',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='OrderItem.id',
    )

    @property
    def computed_total_cents(self):
        """Total derived from the stored components."""
        return (
            (self.subtotal_cents or 0)
            + (self.processing_fee_cents or 0)
            + (self.delivery_fee_cents or 0)
            - (self.discount_cents or 0)
        )

    @property
    def is_paid(self):
        return self.payment_status == PaymentStatus.PAID.value

    def snapshot(self):
        """Fields used to detect status transitions."""
        return {
            'id': self.id,
            'payment_status': self.payment_status,
            'status': self.status,
        }

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'created_at': isoformat_or_none(self.created_at),
            'order_code': self.order_code,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'fulfillment_type': self.fulfillment_type,
            'delivery_address': self.delivery_address,
            'subtotal_cents': self.subtotal_cents,
            'processing_fee_cents': self.processing_fee_cents,
            'delivery_fee_cents': self.delivery_fee_cents,
            'discount_cents': self.discount_cents,
            'total_cents': self.total_cents,
            'promo_code': self.promo_code,
            'payment_status': self.payment_status,
            'paid_at': isoformat_or_none(self.paid_at),
            'status': self.status,
            'clover_order_id': self.clover_order_id,
            'clover_payment_id': self.clover_payment_id,
            'clover_pos_order_id': self.clover_pos_order_id,
            'print_status': self.print_status,
            'print_error': self.print_error,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Order(id={self.id}, code='{self.order_code}', total={self.total_cents}, payment={self.payment_status})>"
