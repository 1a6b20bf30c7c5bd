"""
Integration tests: HTTP requests against the FastAPI proxy, with the
order-management API answered by an httpx MockTransport.

Every test checks status_code + the {result, message} envelope.
"""
import httpx
import pytest

from checkout import main

SUCCESS_ORDER = {
    'result': 'SUCCESS',
    'message': {
        'orderId': 'ORD-1',
        'dateCreated': '2026-10-17 12:00:00',
        'orderType': 'NEW_SALE',
        'orderStatus': 'COMPLETE',
        'customerId': 99,
    },
}


@pytest.fixture
def order_payload():
    return {
        'firstName': 'Jane',
        'lastName': 'Doe',
        'postalCode': '94043',
        'emailAddress': 'jane@example.com',
        'phoneNumber': '+15551234567',
        'address1': '1600 Amphitheatre Parkway',
        'paySource': 'CREDITCARD',
        'cardNumber': '4111111111111111',
        'cardMonth': '12',
        'cardYear': '30',
        'cardSecurityCode': '123',
        'city': 'Mountain View',
        'country': 'US',
        'ipAddress': '203.0.113.9',
        'state': 'CA',
        'product1_id': '42',
        'billShipSame': 'YES',
        'latitude': 37.42,
    }


class TestHealthAndConfig:

    def test_health(self, api_client):
        response = api_client.get('/health')
        assert response.status_code == 200
        assert response.json() == {'status': 'success', 'message': 'OK'}

    def test_request_id_is_echoed(self, api_client):
        response = api_client.get('/health', headers={'X-Request-ID': 'abc-123'})
        assert response.headers['X-Request-ID'] == 'abc-123'

    def test_config_reports_missing_maps_key(self, api_client, monkeypatch):
        monkeypatch.setattr(main.settings, 'google_maps_api_key', None)
        body = api_client.get('/api/config').json()
        assert body == {'result': 'SUCCESS', 'message': {'campaignId': '7', 'googleMapsApiKey': 'missing'}}

    def test_maps_key_unconfigured_is_404(self, api_client, monkeypatch):
        monkeypatch.setattr(main.settings, 'google_maps_api_key', None)
        response = api_client.get('/api/maps-key')
        assert response.status_code == 404
        assert response.json() == {'result': 'ERROR', 'message': 'Google Maps API key not configured'}

    def test_maps_key_configured(self, api_client, monkeypatch):
        monkeypatch.setattr(main.settings, 'google_maps_api_key', 'browser-key')
        monkeypatch.setattr(main.settings, 'google_maps_map_id', None)
        response = api_client.get('/api/maps-key')
        assert response.status_code == 200
        assert response.json() == {'result': 'SUCCESS', 'message': {'key': 'browser-key'}}

        monkeypatch.setattr(main.settings, 'google_maps_map_id', 'map-1')
        assert api_client.get('/api/maps-key').json()['message'] == {'key': 'browser-key', 'mapId': 'map-1'}


class TestCatalog:

    def test_countries_of_the_campaign(self, api_client, upstream):
        upstream.reply('/campaign/query/', {
            'result': 'SUCCESS',
            'message': {'data': {'7': {'countries': [{'countryCode': 'US', 'countryName': 'United States'}]}}},
        })

        response = api_client.get('/api/countries')

        assert response.status_code == 200
        assert response.json() == {
            'result': 'SUCCESS',
            'message': {'countries': [{'countryCode': 'US', 'countryName': 'United States'}]},
        }
        form = upstream.form()
        assert form['loginId'] == 'api-user'
        assert form['password'] == 'api-secret'
        assert form['campaignId'] == '7'

    def test_other_campaigns_are_ignored(self, api_client, upstream):
        upstream.reply('/campaign/query/', {'result': 'SUCCESS', 'message': {'data': {'8': {'countries': [{}]}}}})
        assert api_client.get('/api/countries').json()['message'] == {'countries': []}

    def test_countries_upstream_http_error(self, api_client, upstream):
        upstream.reply('/campaign/query/', {'result': 'ERROR', 'message': 'Invalid login'}, status_code=401)
        response = api_client.get('/api/countries')
        assert response.status_code == 500
        assert response.json() == {'result': 'ERROR', 'message': {'result': 'ERROR', 'message': 'Invalid login'}}

    def test_countries_transport_error(self, api_client, upstream):
        upstream.responses['/campaign/query/'] = httpx.ConnectError('connection refused')
        response = api_client.get('/api/countries')
        assert response.status_code == 500
        assert response.json() == {'result': 'ERROR', 'message': 'connection refused'}

    def test_products_are_offers(self, api_client, upstream):
        upstream.reply('/product/query/', {'result': 'SUCCESS', 'message': {'data': [{'productId': 42}]}})

        response = api_client.get('/api/products')

        assert response.json() == {'result': 'SUCCESS', 'message': {'products': [{'productId': 42}]}}
        assert upstream.form()['productType'] == 'OFFER'


class TestLead:

    def test_create_partial_lead(self, api_client, upstream):
        upstream.reply('/leads/import/', {'result': 'SUCCESS', 'message': {'orderId': 555}})

        response = api_client.post('/api/lead', json={
            'firstName': 'Jane', 'lastName': 'Doe', 'emailAddress': 'jane@example.com', 'product1_id': '42',
        })

        assert response.status_code == 200
        assert response.json() == {'result': 'SUCCESS', 'message': {'orderId': '555'}}
        form = upstream.form()
        assert form['firstName'] == 'Jane'
        assert 'orderId' not in form
        assert 'leadId' not in form

    def test_update_existing_lead(self, api_client, upstream):
        upstream.reply('/order/update/', {'result': 'SUCCESS', 'message': 'Order updated'})

        response = api_client.post('/api/lead', json={
            'leadId': 'L-1', 'firstName': 'Janet', 'lastName': 'Doe',
            'emailAddress': 'jane@example.com', 'product1_id': '42',
        })

        assert response.json() == {'result': 'SUCCESS', 'message': {'orderId': 'L-1'}}
        assert upstream.requests[0].url.path == '/order/update/'
        assert upstream.form()['orderId'] == 'L-1'

    def test_create_rejected(self, api_client, upstream):
        upstream.reply('/leads/import/', {'result': 'ERROR', 'message': 'Invalid email'})
        response = api_client.post('/api/lead', json={'firstName': 'Jane'})
        assert response.status_code == 400
        assert response.json() == {'result': 'ERROR', 'message': 'Invalid email'}

    def test_update_rejected_without_text(self, api_client, upstream):
        upstream.reply('/order/update/', {'result': 'ERROR', 'message': {'code': 1}})
        response = api_client.post('/api/lead', json={'leadId': 'L-1'})
        assert response.status_code == 400
        assert response.json()['message'] == 'Failed to update partial lead'

    def test_create_rejected_without_text(self, api_client, upstream):
        upstream.reply('/leads/import/', {'result': 'ERROR'})
        response = api_client.post('/api/lead', json={})
        assert response.json()['message'] == 'Failed to create partial lead'


class TestCheckout:

    def test_order_import_success(self, api_client, upstream, order_payload):
        upstream.reply('/order/import/', SUCCESS_ORDER)

        response = api_client.post('/api/checkout', json=order_payload)

        assert response.status_code == 200
        assert response.json() == {
            'result': 'SUCCESS',
            'message': {
                'orderId': 'ORD-1',
                'dateCreated': '2026-10-17 12:00:00',
                'orderType': 'NEW_SALE',
                'orderStatus': 'COMPLETE',
            },
        }
        form = upstream.form()
        assert form['cardNumber'] == '4111111111111111'
        assert form['latitude'] == '37.42'
        assert 'address2' not in form
        assert 'longitude' not in form

    def test_order_declined(self, api_client, upstream, order_payload):
        upstream.reply('/order/import/', {'result': 'ERROR', 'message': 'Card declined'})
        response = api_client.post('/api/checkout', json=order_payload)
        assert response.status_code == 400
        assert response.json() == {'result': 'ERROR', 'message': 'Card declined'}

    def test_order_error_without_text(self, api_client, upstream, order_payload):
        upstream.reply('/order/import/', {'result': 'ERROR', 'message': ['x']})
        response = api_client.post('/api/checkout', json=order_payload)
        assert response.json() == {'result': 'ERROR', 'message': 'Unknown error'}

    def test_malformed_upstream_body(self, api_client, upstream, order_payload):
        upstream.responses['/order/import/'] = httpx.Response(200, text='not json')
        response = api_client.post('/api/checkout', json=order_payload)
        assert response.status_code == 500
        assert response.json() == {'result': 'ERROR', 'message': 'Malformed upstream response'}

    def test_invalid_json_body(self, api_client, upstream):
        response = api_client.post(
            '/api/checkout', content='{', headers={'Content-Type': 'application/json'},
        )
        assert response.status_code == 422
        assert response.json()['result'] == 'ERROR'
        assert upstream.requests == []


class TestFrontend:

    def test_assets_and_fallback(self, api_client, monkeypatch, tmp_path):
        (tmp_path / 'index.html').write_text('<h1>Checkout</h1>')
        (tmp_path / 'thankyou.html').write_text('<h1>Thanks</h1>')
        monkeypatch.setattr(main.settings, 'static_dir', str(tmp_path))

        assert api_client.get('/thankyou.html').text == '<h1>Thanks</h1>'
        assert api_client.get('/').text == '<h1>Checkout</h1>'
        assert api_client.get('/some/client/route').text == '<h1>Checkout</h1>'

    def test_unknown_api_path_is_404(self, api_client, monkeypatch, tmp_path):
        (tmp_path / 'index.html').write_text('<h1>Checkout</h1>')
        monkeypatch.setattr(main.settings, 'static_dir', str(tmp_path))
        response = api_client.get('/api/unknown')
        assert response.status_code == 404
        assert response.json() == {'result': 'ERROR', 'message': 'Not found'}

    def test_no_static_dir(self, api_client, monkeypatch, tmp_path):
        monkeypatch.setattr(main.settings, 'static_dir', str(tmp_path / 'missing'))
        assert api_client.get('/').status_code == 404
