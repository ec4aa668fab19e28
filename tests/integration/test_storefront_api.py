"""
Integration tests for the public storefront endpoints.
"""

from unittest.mock import MagicMock, patch

from storefront.models import Order, OrderItem


def _order_body(item_id, qty=2, **overrides):
    body = {
        'customer_name': 'Maria',
        'customer_phone': '(215) 555-0123',
        'fulfillment_type': 'pickup',
        'items': [{'id': item_id, 'qty': qty}],
    }
    body.update(overrides)
    return body


class TestMenuAndSettings:

    def test_menu_lists_active_items(self, client, make_menu_item):
        make_menu_item('Tostones', 400, category='Sides')
        make_menu_item('Retired Plate', 900, is_active=False)
        make_menu_item('Sold Out Plate', 900, in_stock=False)

        response = client.get('/menu')

        assert response.status_code == 200
        names = [item['name'] for item in response.get_json()]
        assert names == ['Sold Out Plate', 'Tostones']

    def test_public_settings(self, client, settings):
        response = client.get('/settings')
        assert response.status_code == 200
        data = response.get_json()
        assert data['processing_fee_cents'] == 150
        assert data['delivery_enabled'] is False

    def test_settings_missing(self, client):
        response = client.get('/settings')
        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'SETTINGS_MISSING'

    def test_health(self, client, settings):
        data = client.get('/health').get_json()
        assert data['ok'] is True
        assert data['checks']['database'] is True
        assert data['checks']['settings_row'] is True

    def test_health_without_settings(self, client):
        data = client.get('/health').get_json()
        assert data['ok'] is False
        assert data['checks']['settings_row'] is False


class TestPlaceOrder:
    """Tests for POST /orders."""

    def test_pickup_order(self, client, session, settings, menu_item):
        response = client.post('/orders', json=_order_body(menu_item.id))

        assert response.status_code == 200
        data = response.get_json()
        assert data['ok'] is True
        assert data['total_cents'] == 1150
        assert data['order_code'].startswith('DCO-')

        order = session.get(Order, data['order_id'])
        assert order.payment_status == 'unpaid'
        assert order.status == 'new'
        assert [(item.item_name, item.qty, item.line_total_cents) for item in order.items] == [
            ('Pollo Guisado', 2, 1000),
        ]

    def test_invalid_phone(self, client, settings, menu_item):
        response = client.post('/orders', json=_order_body(menu_item.id, customer_phone='555'))
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'VALIDATION_ERROR'

    def test_ordering_closed_creates_nothing(self, client, session, settings, menu_item):
        settings.ordering_enabled = False
        session.commit()

        response = client.post('/orders', json=_order_body(menu_item.id))

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'ORDERING_CLOSED'
        assert session.query(Order).count() == 0
        assert session.query(OrderItem).count() == 0

    def test_out_of_stock(self, client, session, settings, make_menu_item):
        item = make_menu_item(in_stock=False)
        response = client.post('/orders', json=_order_body(item.id))
        assert response.get_json()['error']['code'] == 'ITEM_UNAVAILABLE'

    def test_non_json_body(self, client, settings):
        response = client.post('/orders', data='not json', content_type='text/plain')
        assert response.status_code == 400

    def test_delivery_min_not_met(self, client, session, settings, menu_item):
        settings.delivery_enabled = True
        session.commit()

        response = client.post('/orders', json=_order_body(
            menu_item.id, fulfillment_type='delivery', delivery_address='123 Main St'
        ))

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'DELIVERY_MIN_NOT_MET'

    def test_delivery_order(self, client, session, settings, menu_item):
        settings.delivery_enabled = True
        session.commit()

        with patch('storefront.services.pricing_service.MapboxClient') as mapbox:
            mapbox.return_value.geocode.return_value = {
                'lat': 39.9530, 'lng': -75.1600, 'place_name': '1500 Market St, Philadelphia, PA 19102',
            }
            response = client.post('/orders', json=_order_body(
                menu_item.id, qty=4, fulfillment_type='delivery', delivery_address='1500 Market St'
            ))

        assert response.status_code == 200
        assert response.get_json()['total_cents'] == 2000 + 150 + 300
        order = session.get(Order, response.get_json()['order_id'])
        assert order.delivery_address == '1500 Market St, Philadelphia, PA'
        assert order.delivery_fee_cents == 300

    def test_rate_limited(self, app, client, settings, menu_item):
        limiter = MagicMock()
        limiter.hit.return_value = (False, 17)
        app.extensions['rate_limiter'] = limiter

        response = client.post('/orders', json=_order_body(menu_item.id),
                               environ_base={'REMOTE_ADDR': '203.0.113.9'})

        assert response.status_code == 429
        assert response.headers['Retry-After'] == '17'
        assert response.get_json()['error']['code'] == 'RATE_LIMITED'
        route, ip, limit, window = limiter.hit.call_args.args
        assert (route, ip, limit, window) == ('orders', '203.0.113.9', 10, 60)

    def test_forwarded_header_does_not_change_bucket(self, app, client, settings, menu_item):
        limiter = MagicMock()
        limiter.hit.return_value = (True, 0)
        app.extensions['rate_limiter'] = limiter

        for forwarded in ('10.0.0.0', '10.0.0.1', '10.0.0.2'):
            client.post('/orders', json=_order_body(menu_item.id), headers={'X-Forwarded-For': forwarded})

        keys = [call.args[1] for call in limiter.hit.call_args_list]
        assert keys == ['127.0.0.1'] * 3


class TestValidateDelivery:

    def test_address_required(self, client, settings):
        response = client.post('/validate-delivery', json={'address': ' '})
        assert response.get_json()['error']['code'] == 'ADDRESS_REQUIRED'

    def test_delivery_disabled(self, client, settings):
        response = client.post('/validate-delivery', json={'address': '1500 Market St'})
        assert response.get_json()['error']['code'] == 'DELIVERY_DISABLED'

    def test_within_radius(self, client, session, settings):
        settings.delivery_enabled = True
        session.commit()

        with patch('storefront.services.pricing_service.MapboxClient') as mapbox:
            mapbox.return_value.geocode.return_value = {
                'lat': 39.9530, 'lng': -75.1600, 'place_name': '1500 Market St, Philadelphia, PA 19102',
            }
            response = client.post('/validate-delivery', json={'address': '1500 Market St'})

        data = response.get_json()
        assert response.status_code == 200
        assert data['withinRadius'] is True
        assert data['radiusMiles'] == 3.0
        assert data['distanceMiles'] < 1
        assert data['normalizedAddress'] == '1500 Market St, Philadelphia, PA 19102'
        assert data['inputAddress'] == '1500 Market St, Philadelphia, PA'

    def test_geocoder_outage(self, client, session, settings):
        settings.delivery_enabled = True
        session.commit()

        with patch('storefront.services.geocoding_client.requests.get') as get:
            get.return_value = MagicMock(ok=False, status_code=503, text='unavailable')
            response = client.post('/validate-delivery', json={'address': '1500 Market St'})

        assert response.status_code == 502
        assert response.get_json()['error']['code'] == 'GEOCODING_FAILED'


class TestValidatePromo:

    def test_valid(self, client, make_promo):
        make_promo('FLAT10OFF', 'flat', 1000, min_order_cents=2000)

        response = client.post('/validate-promo', json={'code': 'flat10off', 'subtotal_cents': 2500})

        assert response.get_json() == {
            'ok': True, 'valid': True, 'code': 'FLAT10OFF', 'discount_cents': 1000, 'message': 'Promo applied.',
        }

    def test_below_minimum(self, client, make_promo):
        make_promo('FLAT10OFF', 'flat', 1000, min_order_cents=2000)

        data = client.post('/validate-promo', json={'code': 'FLAT10OFF', 'subtotal_cents': 1000}).get_json()

        assert data['valid'] is False
        assert data['discount_cents'] == 0

    def test_missing_code(self, client):
        response = client.post('/validate-promo', json={'subtotal_cents': 1000})
        assert response.status_code == 400
