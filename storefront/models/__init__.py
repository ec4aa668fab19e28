"""Models package - exports all SQLAlchemy models."""
from storefront.models.menu_item import MenuItem, MenuItemTag
from storefront.models.order import Order, OrderStatus, PaymentStatus, PrintStatus, FulfillmentType
from storefront.models.order_item import OrderItem
from storefront.models.settings import Settings
from storefront.models.promo_code import PromoCode, DiscountType, normalize_promo_code
from storefront.models.clover_token import CloverToken
from storefront.models.background_job import BackgroundJob, JobKind, JobStatus
from storefront.models.schema_version import SchemaVersion

__all__ = [
    'MenuItem', 'MenuItemTag',
    'Order', 'OrderStatus', 'PaymentStatus', 'PrintStatus', 'FulfillmentType',
    'OrderItem',
    'Settings',
    'PromoCode', 'DiscountType', 'normalize_promo_code',
    'CloverToken',
    'BackgroundJob', 'JobKind', 'JobStatus',
    'SchemaVersion',
]
