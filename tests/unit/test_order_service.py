"""
Unit tests for the order ledger.
"""

import pytest

from storefront.exceptions import PersistenceError, ValidationError
from storefront.models import Order, OrderItem
from storefront.services.order_service import create_order, generate_order_code


CUSTOMER = {'customer_name': 'Maria', 'customer_phone': '+12155550123', 'fulfillment_type': 'pickup'}


def _quote(lines, processing_fee_cents=150, discount_cents=0):
    subtotal = sum(line['line_total_cents'] for line in lines)
    return {
        'lines': lines,
        'subtotal_cents': subtotal,
        'processing_fee_cents': processing_fee_cents,
        'delivery_fee_cents': 0,
        'discount_cents': discount_cents,
        'total_cents': subtotal + processing_fee_cents - discount_cents,
    }


def _line(name='Pollo Guisado', unit_price_cents=500, qty=2):
    return {
        'menu_item_id': None,
        'item_name': name,
        'unit_price_cents': unit_price_cents,
        'qty': qty,
        'line_total_cents': unit_price_cents * qty,
    }


class TestCreateOrder:
    """Tests for atomic order creation."""

    def test_persists_order_and_lines(self, app, session):
        order = create_order(session, CUSTOMER, _quote([_line(), _line('Jugo Natural', 350, 1)]))

        assert order.id is not None
        assert order.total_cents == 1000 + 350 + 150
        assert order.payment_status == 'unpaid'
        assert order.status == 'new'
        assert [item.item_name for item in order.items] == ['Pollo Guisado', 'Jugo Natural']

    def test_failed_line_insert_leaves_nothing_behind(self, app, session):
        quote = _quote([_line(), _line(name=None)])

        with pytest.raises(PersistenceError) as exc_info:
            create_order(session, CUSTOMER, quote)

        assert exc_info.value.code == 'ORDER_FAILED'
        assert session.query(Order).count() == 0
        assert session.query(OrderItem).count() == 0

    def test_empty_cart(self, app, session):
        with pytest.raises(ValidationError):
            create_order(session, CUSTOMER, _quote([]))

    def test_inconsistent_totals(self, app, session):
        quote = _quote([_line()])
        quote['total_cents'] += 1

        with pytest.raises(ValidationError) as exc_info:
            create_order(session, CUSTOMER, quote)

        assert exc_info.value.code == 'INVALID_TOTAL'
        assert session.query(Order).count() == 0


class TestOrderCode:

    def test_prefix(self, app):
        code = generate_order_code()
        prefix, digits = code.split('-')
        assert prefix == 'DCO'
        assert len(digits) == 5 and digits.isdigit()

    def test_custom_prefix(self, app):
        assert generate_order_code('TST').startswith('TST-')
