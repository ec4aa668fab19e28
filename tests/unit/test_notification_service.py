"""
Unit tests for SMS bodies, transition detection and at-most-once sending.
"""

import pytest
from unittest.mock import MagicMock, patch

from storefront.database import stamp_schema_version
from storefront.exceptions import GatewayError
from storefront.models import JobKind, Order
from storefront.services import notification_service
from storefront.services.notification_service import (
    MORE_ITEMS_MARKER, SMS_MAX_LENGTH, build_confirmation_body, build_ready_body, fit_sms_body,
    send_confirmation_sms, send_ready_sms, send_with_retry, transition_jobs,
)
from storefront.services.sms_client import SmsSendError


class TestTransitionJobs:
    """Tests for before/after snapshot comparison."""

    def test_payment_into_paid(self):
        before = {'id': 1, 'payment_status': 'unpaid', 'status': 'new'}
        after = {'id': 1, 'payment_status': 'paid', 'status': 'new'}
        assert transition_jobs(before, after) == [JobKind.SMS_CONFIRMATION.value]

    def test_status_into_completed(self):
        before = {'id': 1, 'payment_status': 'paid', 'status': 'new'}
        after = {'id': 1, 'payment_status': 'paid', 'status': 'completed'}
        assert transition_jobs(before, after) == [JobKind.SMS_READY.value]

    def test_no_change(self):
        snapshot = {'id': 1, 'payment_status': 'paid', 'status': 'completed'}
        assert transition_jobs(snapshot, dict(snapshot)) == []

    def test_reopening_does_not_notify(self):
        before = {'id': 1, 'payment_status': 'paid', 'status': 'completed'}
        after = {'id': 1, 'payment_status': 'paid', 'status': 'new'}
        assert transition_jobs(before, after) == []

    def test_different_orders(self):
        assert transition_jobs({'id': 1, 'payment_status': 'unpaid'}, {'id': 2, 'payment_status': 'paid'}) == []


class TestFitSmsBody:
    """Tests for the 1600 character cap."""

    def test_short_body_unchanged(self):
        assert fit_sms_body('Header', ['1x Tostones'], 'Total: $4.00') == 'Header\n1x Tostones\nTotal: $4.00'

    def test_trailing_items_dropped(self):
        items = [f"{i}x {'Mofongo con camarones ' * 2}" for i in range(1, 200)]
        body = fit_sms_body('Header', items, 'Total: $99.00')

        assert len(body) <= SMS_MAX_LENGTH
        lines = body.splitlines()
        assert lines[0] == 'Header'
        assert lines[1] == items[0]
        assert lines[-2] == MORE_ITEMS_MARKER
        assert lines[-1] == 'Total: $99.00'

    def test_header_cut_when_alone_too_long(self):
        body = fit_sms_body('A' * 50, ['1x Item'], 'Total: $1.00', limit=30)
        assert len(body) == 30
        assert body.endswith('\nTotal: $1.00')
        assert body.startswith('A' * 17)


class TestBodies:

    def test_confirmation_body(self, unpaid_order):
        body = build_confirmation_body(unpaid_order)

        assert body.startswith(f"Decoo Restaurant: Thanks Maria! Order {unpaid_order.order_code} is confirmed.")
        assert '2x Pollo Guisado' in body
        assert body.endswith('Total: $11.50')

    def test_ready_body_for_pickup(self, unpaid_order):
        body = build_ready_body(unpaid_order)
        assert f"your order {unpaid_order.order_code} is ready for pickup." in body
        assert 'Total: $11.50' in body


class TestSendWithRetry:

    def test_retries_then_succeeds(self, app):
        client = MagicMock()
        client.send.side_effect = [SmsSendError('timeout'), {'sid': 'SM1'}]

        assert send_with_retry(client, '+12155550123', 'hi') == {'sid': 'SM1'}
        assert client.send.call_count == 2

    def test_backoff_doubles(self, app):
        client = MagicMock()
        client.send.side_effect = SmsSendError('down')

        with patch.object(notification_service.time, 'sleep') as sleep:
            with pytest.raises(SmsSendError):
                send_with_retry(client, '+12155550123', 'hi', max_attempts=3, backoff_base=0.4)

        assert client.send.call_count == 3
        assert [call.args[0] for call in sleep.call_args_list] == [0.4, 0.8]


class TestSendOrderSms:
    """Tests for the sent-flag guard."""

    def test_confirmation_sent_once(self, session, unpaid_order, twilio_client):
        assert send_confirmation_sms(session, unpaid_order.id) is True
        assert send_confirmation_sms(session, unpaid_order.id) is False

        assert twilio_client.send.call_count == 1
        to, body = twilio_client.send.call_args.args
        assert to == '+12155550123'
        assert unpaid_order.order_code in body

        order = session.get(Order, unpaid_order.id)
        session.refresh(order)
        assert order.confirmation_sms_sent is True
        assert order.confirmation_sms_sent_at is not None
        assert order.ready_sms_sent is False

    def test_ready_flag_is_independent(self, session, unpaid_order, twilio_client):
        send_confirmation_sms(session, unpaid_order.id)
        assert send_ready_sms(session, unpaid_order.id) is True
        assert twilio_client.send.call_count == 2

    def test_failure_releases_flag(self, session, unpaid_order, twilio_client):
        twilio_client.send.side_effect = SmsSendError('Twilio error 500')

        with pytest.raises(GatewayError) as exc:
            send_confirmation_sms(session, unpaid_order.id)

        assert exc.value.code == 'SMS_FAILED'
        assert twilio_client.send.call_count == 3
        order = session.get(Order, unpaid_order.id)
        session.refresh(order)
        assert order.confirmation_sms_sent is False

        twilio_client.send.side_effect = None
        assert send_confirmation_sms(session, unpaid_order.id) is True

    def test_unusable_phone_is_skipped(self, session, unpaid_order, twilio_client):
        unpaid_order.customer_phone = 'call the front desk'
        session.commit()

        assert send_confirmation_sms(session, unpaid_order.id) is False
        twilio_client.send.assert_not_called()

    def test_old_schema_sends_without_guard(self, session, unpaid_order, twilio_client):
        stamp_schema_version(1)

        assert send_confirmation_sms(session, unpaid_order.id) is True
        assert send_confirmation_sms(session, unpaid_order.id) is True
        assert twilio_client.send.call_count == 2

    def test_missing_order(self, session, twilio_client):
        assert send_confirmation_sms(session, 4242) is False
        twilio_client.send.assert_not_called()
