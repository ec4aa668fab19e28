"""
Unit tests for the admin sales summary.
"""

from datetime import date, datetime, timezone

import pytest

from storefront.exceptions import ValidationError
from storefront.models import Order
from storefront.services.stats_service import parse_summary_date, sales_summary


@pytest.fixture
def add_order(session):
    """Factory for orders created at a fixed UTC time."""
    def _add(created_at, total_cents, payment_status='paid'):
        order = Order(
            order_code='DCO-10000',
            customer_name='Maria',
            customer_phone='+12155550123',
            fulfillment_type='pickup',
            subtotal_cents=total_cents,
            total_cents=total_cents,
            payment_status=payment_status,
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(order)
        session.commit()
        return order

    return _add


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestParseSummaryDate:

    def test_blank_is_today(self, app):
        assert parse_summary_date('') == datetime.now(timezone.utc).date()
        assert parse_summary_date(None) == datetime.now(timezone.utc).date()

    def test_iso_date(self):
        assert parse_summary_date(' 2026-10-14 ') == date(2026, 10, 14)

    @pytest.mark.parametrize('raw', ['2026-02-30', '14/10/2026', '20261014', '2026-10-14T00:00', 'today'])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            parse_summary_date(raw)
        assert exc_info.value.code == 'INVALID_DATE'


class TestSalesSummary:
    """2026-10-14 is a Wednesday; its week starts Monday 2026-10-12."""

    def test_buckets(self, session, add_order):
        add_order(_utc(2026, 10, 14, 15, 0), 1000)
        add_order(_utc(2026, 10, 12, 9, 0), 500)
        add_order(_utc(2026, 10, 9, 20, 0), 700)
        add_order(_utc(2026, 9, 30, 23, 0), 900)
        add_order(_utc(2026, 10, 15, 1, 0), 400)
        add_order(_utc(2026, 10, 14, 12, 0), 1200, payment_status='unpaid')

        summary = sales_summary(session, date(2026, 10, 14))

        assert summary['weekStartsOn'] == 'monday'
        assert summary['today'] == {'date': '2026-10-14', 'ordersCount': 1, 'revenueCents': 1000}
        assert summary['weekToDate'] == {'ordersCount': 2, 'revenueCents': 1500}
        assert summary['monthToDate'] == {'ordersCount': 3, 'revenueCents': 2200}

        last_days = {bucket['date']: bucket['revenueCents'] for bucket in summary['last7Days']}
        assert list(last_days) == [
            '2026-10-08', '2026-10-09', '2026-10-10', '2026-10-11', '2026-10-12', '2026-10-13', '2026-10-14',
        ]
        assert last_days == {
            '2026-10-08': 0, '2026-10-09': 700, '2026-10-10': 0, '2026-10-11': 0,
            '2026-10-12': 500, '2026-10-13': 0, '2026-10-14': 1000,
        }

    def test_last_days_reach_into_previous_month(self, session, add_order):
        add_order(_utc(2026, 9, 28, 18, 0), 800)
        add_order(_utc(2026, 10, 2, 18, 0), 300)

        summary = sales_summary(session, date(2026, 10, 3))

        assert summary['monthToDate'] == {'ordersCount': 1, 'revenueCents': 300}
        assert summary['weekToDate'] == {'ordersCount': 2, 'revenueCents': 1100}
        assert sum(bucket['ordersCount'] for bucket in summary['last7Days']) == 2

    def test_empty(self, session):
        summary = sales_summary(session, date(2026, 10, 14))
        assert summary['today']['ordersCount'] == 0
        assert len(summary['last7Days']) == 7
