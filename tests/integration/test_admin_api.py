"""
Integration tests for the admin console API.
"""

import pytest

from storefront.models import BackgroundJob, JobKind


class TestAdminAuth:
    """Every admin route requires the x-admin-token header."""

    @pytest.mark.parametrize('method, path', [
        ('get', '/admin/settings'),
        ('patch', '/admin/settings'),
        ('get', '/admin/orders'),
        ('get', '/admin/orders/1'),
        ('post', '/admin/orders/1/reprint'),
        ('get', '/admin/promo-codes'),
        ('patch', '/admin/menu-items/1'),
        ('get', '/admin/menu'),
        ('get', '/admin/stats/summary'),
    ])
    def test_missing_token(self, client, method, path):
        response = getattr(client, method)(path, json={})
        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'UNAUTHORIZED'

    def test_wrong_token(self, client, settings):
        response = client.get('/admin/settings', headers={'x-admin-token': 'nope'})
        assert response.status_code == 401

    def test_admin_token_not_configured(self, app, client, admin_headers):
        app.config['ADMIN_TOKEN'] = None
        response = client.get('/admin/settings', headers=admin_headers)
        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'ADMIN_TOKEN_MISSING'


class TestAdminSettings:

    def test_get(self, client, settings, admin_headers):
        response = client.get('/admin/settings', headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()['delivery_fee_cents'] == 300

    def test_patch(self, client, settings, admin_headers):
        response = client.patch('/admin/settings', headers=admin_headers, json={
            'delivery_enabled': True, 'delivery_radius_miles': 4,
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['delivery_enabled'] is True
        assert data['delivery_radius_miles'] == 4.0

    def test_patch_invalid(self, client, settings, admin_headers):
        response = client.patch('/admin/settings', headers=admin_headers, json={'processing_fee_cents': -10})
        assert response.status_code == 400

    def test_method_not_allowed(self, client, admin_headers):
        response = client.delete('/admin/settings', headers=admin_headers)
        assert response.status_code == 405
        allowed = response.headers['Allow']
        assert 'GET' in allowed and 'PATCH' in allowed
        assert response.get_json()['error']['code'] == 'METHOD_NOT_ALLOWED'


class TestAdminOrders:
    """Tests for order review and status changes."""

    def test_list_defaults_to_paid(self, client, paid_order, place_order, menu_item, admin_headers):
        unpaid = place_order([{'id': menu_item.id, 'qty': 1}])

        paid_only = client.get('/admin/orders', headers=admin_headers).get_json()
        everything = client.get('/admin/orders?payment_status=all', headers=admin_headers).get_json()
        unpaid_only = client.get('/admin/orders?payment_status=unpaid', headers=admin_headers).get_json()

        assert [order['id'] for order in paid_only] == [paid_order.id]
        assert {order['id'] for order in everything} == {paid_order.id, unpaid.id}
        assert [order['id'] for order in unpaid_only] == [unpaid.id]

    def test_list_rejects_unknown_filter(self, client, admin_headers):
        response = client.get('/admin/orders?payment_status=refunded', headers=admin_headers)
        assert response.status_code == 400

    def test_detail(self, client, paid_order, admin_headers):
        data = client.get(f'/admin/orders/{paid_order.id}', headers=admin_headers).get_json()

        assert data['order']['order_code'] == paid_order.order_code
        assert data['order']['payment_status'] == 'paid'
        assert 'items' not in data['order']
        assert data['items'][0]['item_name'] == 'Pollo Guisado'
        assert data['items'][0]['qty'] == 2

    def test_detail_not_found(self, client, admin_headers):
        assert client.get('/admin/orders/999', headers=admin_headers).status_code == 404

    def test_detail_bad_id(self, client, admin_headers):
        assert client.get('/admin/orders/abc', headers=admin_headers).status_code == 400

    def test_complete_enqueues_ready_sms(self, client, session, paid_order, admin_headers):
        response = client.patch(f'/admin/orders/{paid_order.id}', headers=admin_headers,
                                json={'status': 'Completed'})

        assert response.get_json() == {'id': paid_order.id, 'status': 'completed'}
        kinds = [job.kind for job in session.query(BackgroundJob).filter_by(order_id=paid_order.id)]
        assert kinds.count(JobKind.SMS_READY.value) == 1

    def test_invalid_status(self, client, paid_order, admin_headers):
        response = client.patch(f'/admin/orders/{paid_order.id}', headers=admin_headers,
                                json={'status': 'cancelled'})
        assert response.status_code == 400

    def test_reprint(self, app, client, session, paid_order, pos_client, admin_headers):
        from storefront.services.pos_sync_service import sync_order_to_pos

        app.config['CLOVER_REST_API_TOKEN'] = 'static-token'
        sync_order_to_pos(session, paid_order.id)

        response = client.post(f'/admin/orders/{paid_order.id}/reprint', headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['print_status'] == 'ok'
        assert pos_client.print_order.call_count == 2

    def test_reprint_without_pos_order(self, client, paid_order, admin_headers):
        response = client.post(f'/admin/orders/{paid_order.id}/reprint', headers=admin_headers)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'NO_POS_ORDER'


class TestAdminPromoCodes:

    def test_create_and_list(self, client, admin_headers):
        response = client.post('/admin/promo-codes', headers=admin_headers, json={
            'code': 'flat10off',
            'discount_type': 'flat',
            'discount_value': 1000,
            'min_order_cents': 2000,
            'active': True,
        })
        assert response.status_code == 200
        assert response.get_json()['promo_code']['code'] == 'FLAT10OFF'

        data = client.get('/admin/promo-codes', headers=admin_headers).get_json()
        assert data['ok'] is True
        assert [promo['code'] for promo in data['promo_codes']] == ['FLAT10OFF']

    def test_create_invalid(self, client, admin_headers):
        response = client.post('/admin/promo-codes', headers=admin_headers, json={
            'code': 'HALF', 'discount_type': 'percent', 'discount_value': 150, 'active': True,
        })
        assert response.status_code == 400


class TestAdminMenuItems:

    def test_patch(self, client, menu_item, admin_headers):
        response = client.patch(f'/admin/menu-items/{menu_item.id}', headers=admin_headers,
                                json={'tag': 'natural_juice', 'price_cents': 450})
        assert response.status_code == 200
        data = response.get_json()
        assert data['tag'] == 'natural_juice'
        assert data['price_cents'] == 450

    def test_patch_unknown(self, client, admin_headers):
        response = client.patch('/admin/menu-items/999', headers=admin_headers, json={'in_stock': False})
        assert response.status_code == 404


class TestAdminMenu:

    def test_includes_inactive_items(self, client, make_menu_item, admin_headers):
        make_menu_item('Pollo Guisado', 500, category='Plates', sort_order=2)
        make_menu_item('Old Special', 900, category='Plates', sort_order=1, is_active=False)

        response = client.get('/admin/menu', headers=admin_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert [item['name'] for item in data] == ['Old Special', 'Pollo Guisado']
        assert data[0]['is_active'] is False

    def test_requires_token(self, client):
        assert client.get('/admin/menu').status_code == 401


class TestAdminStatsSummary:

    def test_summary(self, client, paid_order, admin_headers):
        today = paid_order.created_at.date().isoformat()

        response = client.get(f'/admin/stats/summary?date={today}', headers=admin_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['today'] == {'date': today, 'ordersCount': 1, 'revenueCents': paid_order.total_cents}
        assert data['weekStartsOn'] == 'monday'
        assert len(data['last7Days']) == 7
        assert data['last7Days'][-1]['date'] == today

    def test_invalid_date(self, client, admin_headers):
        response = client.get('/admin/stats/summary?date=2026-13-01', headers=admin_headers)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_DATE'

    def test_requires_token(self, client):
        assert client.get('/admin/stats/summary').status_code == 401
