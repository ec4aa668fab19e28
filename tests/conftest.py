import pytest
from unittest.mock import patch

from storefront import create_app, database
from storefront.database import get_session
from storefront.models import MenuItem, MenuItemTag, Order, PromoCode, Settings
from storefront.services import order_service, pricing_service

ADMIN_TOKEN = 'test-admin-token'
STAFF_TOKEN = 'test-staff-token'


@pytest.fixture(scope='function')
def app():
    """Create application instance with a fresh in-memory database."""
    app = create_app('config.TestingConfig')
    ctx = app.app_context()
    ctx.push()
    database.create_schema()

    yield app

    database.db_session.remove()
    database.drop_schema()
    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session shared with the request handlers."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture
def admin_headers():
    return {'x-admin-token': ADMIN_TOKEN}


@pytest.fixture
def staff_headers():
    return {'Authorization': f'Bearer {STAFF_TOKEN}'}


@pytest.fixture(scope='function')
def settings(session):
    """Ordering open, pickup only, 150 cent processing fee."""
    settings = Settings(
        id=Settings.SINGLETON_ID,
        ordering_enabled=True,
        delivery_enabled=False,
        delivery_radius_miles=3.0,
        processing_fee_cents=150,
        delivery_fee_cents=300,
        delivery_min_total_cents=1500,
        free_juice_enabled=False,
        free_juice_min_subtotal_cents=0,
    )
    session.add(settings)
    session.commit()
    return settings


@pytest.fixture
def make_menu_item(session):
    """Factory for menu items."""
    def _make(name='Pollo Guisado', price_cents=500, **fields):
        fields.setdefault('category', 'Plates')
        fields.setdefault('is_active', True)
        fields.setdefault('in_stock', True)
        fields.setdefault('tag', MenuItemTag.STANDARD.value)
        item = MenuItem(name=name, price_cents=price_cents, **fields)
        session.add(item)
        session.commit()
        return item

    return _make


@pytest.fixture
def menu_item(make_menu_item):
    return make_menu_item()


@pytest.fixture
def make_promo(session):
    """Factory for promo codes."""
    def _make(code='FLAT10OFF', discount_type='flat', discount_value=1000, **fields):
        fields.setdefault('min_order_cents', 0)
        fields.setdefault('active', True)
        promo = PromoCode(
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            used_count=0,
            **fields
        )
        session.add(promo)
        session.commit()
        return promo

    return _make


@pytest.fixture
def place_order(session, settings):
    """Factory placing an unpaid order through the pricing engine and ledger."""
    def _place(items, fulfillment_type='pickup', promo_code=None, **customer):
        payload = {
            'customer_name': customer.get('customer_name', 'Maria'),
            'customer_phone': customer.get('customer_phone', '(215) 555-0123'),
            'fulfillment_type': fulfillment_type,
            'delivery_address': customer.get('delivery_address'),
            'promo_code': promo_code,
            'items': items,
        }
        request_data = pricing_service.parse_order_request(payload)
        quote = pricing_service.price_order(session, settings, request_data)
        return order_service.create_order(session, request_data, quote)

    return _place


@pytest.fixture
def unpaid_order(place_order, menu_item):
    """Two plates at $5.00, pickup: total $11.50."""
    return place_order([{'id': menu_item.id, 'qty': 2}])


@pytest.fixture
def ecomm_client():
    """Mocked Clover eCommerce client used by the payment service."""
    with patch('storefront.services.payment_service.CloverEcommClient') as client_cls:
        client = client_cls.return_value
        client.create_order.return_value = 'ECOMM-ORDER-1'
        client.pay_order.return_value = {'id': 'PAYMENT-1', 'status': 'succeeded'}
        yield client


@pytest.fixture
def twilio_client():
    """Mocked Twilio client used by the notification service."""
    with patch('storefront.services.notification_service.TwilioClient') as client_cls:
        client = client_cls.return_value
        client.send.return_value = {'sid': 'SM123', 'status': 'queued'}
        yield client


@pytest.fixture
def pos_client():
    """Mocked Clover POS client used by the POS sync service."""
    with patch('storefront.services.pos_sync_service.CloverPosClient') as client_cls:
        client = client_cls.return_value
        client.create_order.return_value = {'id': 'POS-ORDER-1'}
        client.add_line_item.return_value = {'id': 'LINE-1'}
        client.print_order.return_value = {'id': 'PRINT-1'}
        yield client


@pytest.fixture
def paid_order(session, unpaid_order, ecomm_client):
    """Order charged through the payment service (jobs enqueued, not run)."""
    from storefront.services.payment_service import charge_order

    charge_order(session, unpaid_order.id, 'clv_test_token', unpaid_order.total_cents)
    session.expire_all()
    return session.get(Order, unpaid_order.id)
