"""
Integration tests for the Clover merchant install flow.
"""

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

from storefront.models import CloverToken


def _connect(client):
    response = client.get('/clover/connect')
    query = parse_qs(urlparse(response.headers['Location']).query)
    return response, query['state'][0]


def _token_response(body):
    response = MagicMock(ok=True, status_code=200)
    response.json.return_value = body
    return response


class TestConnect:

    def test_redirects_to_clover(self, client):
        response, state = _connect(client)

        assert response.status_code == 302
        location = response.headers['Location']
        assert location.startswith('https://www.clover.com/oauth/v2/authorize?')
        assert 'client_id=test-client-id' in location
        assert len(state) == 32
        assert 'clover_oauth_state=' in response.headers['Set-Cookie']
        assert 'HttpOnly' in response.headers['Set-Cookie']


class TestCallback:

    def test_missing_code(self, client):
        response = client.get('/clover/callback?state=abc')
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_CODE'

    def test_state_mismatch(self, client):
        _connect(client)
        response = client.get('/clover/callback?code=abc&state=forged')
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_OAUTH_STATE'

    def test_state_without_cookie(self, client):
        response = client.get('/clover/callback?code=abc&state=whatever')
        assert response.get_json()['error']['code'] == 'INVALID_OAUTH_STATE'

    def test_stores_token(self, client, session):
        _, state = _connect(client)

        with patch('storefront.services.clover_auth_service.requests.post') as post:
            post.return_value = _token_response({
                'merchant_id': 'MERCHANT1',
                'access_token': 'access-1',
                'refresh_token': 'refresh-1',
                'expires_in': 3600,
            })
            response = client.get(f'/clover/callback?code=auth-code&state={state}')

        assert response.status_code == 302
        assert response.headers['Location'].endswith('/admin.html?clover=connected&merchant_id=MERCHANT1')
        assert post.call_args.kwargs['data']['code'] == 'auth-code'

        token = session.query(CloverToken).filter_by(merchant_id='MERCHANT1').one()
        assert token.access_token == 'access-1'
        assert token.refresh_token == 'refresh-1'
        assert token.expires_at is not None

    def test_exchange_rejected(self, client, session):
        _, state = _connect(client)

        with patch('storefront.services.clover_auth_service.requests.post') as post:
            post.return_value = MagicMock(ok=False, status_code=400, text='bad code')
            post.return_value.json.return_value = {'message': 'invalid code'}
            response = client.get(f'/clover/callback?code=auth-code&state={state}')

        assert response.status_code == 502
        assert response.get_json()['error']['code'] == 'CLOVER_OAUTH_FAILED'
        assert session.query(CloverToken).count() == 0
