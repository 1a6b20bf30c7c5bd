"""
Shared fixtures and fakes for all tests.

The upstream order-management API is replaced by an httpx MockTransport;
the checkout page talks to a FakeBackend so no sockets are opened.
"""
import os

os.environ.setdefault("APP_RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("APP_CHECKOUTCHAMP_CAMPAIGN_ID", "7")
os.environ.setdefault("APP_CHECKOUTCHAMP_LOGIN_ID", "api-user")
os.environ.setdefault("APP_CHECKOUTCHAMP_PASSWORD", "api-secret")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

from datetime import datetime
from types import SimpleNamespace
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi.testclient import TestClient

from checkout.client.api import MapsKey
from checkout.client.config import ClientSettings
from checkout.config import get_settings
from checkout.models import Country
from checkout.services import CheckoutChampClient

FIXED_NOW = datetime(2026, 10, 17, 12, 0, 0)


# ---------------------------------------------------------------------------
# Upstream (order-management API) fake
# ---------------------------------------------------------------------------

class UpstreamRecorder:
    """MockTransport handler answering by path and remembering every request."""

    def __init__(self):
        self.requests = []
        self.responses = {}

    def __call__(self, request):
        self.requests.append(request)
        outcome = self.responses[request.url.path]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def reply(self, path, body, status_code=200):
        self.responses[path] = httpx.Response(status_code, json=body)

    def form(self, index=-1):
        return dict(parse_qsl(self.requests[index].content.decode()))


# ---------------------------------------------------------------------------
# Checkout proxy fake used by the form controller
# ---------------------------------------------------------------------------

class FakeBackend:
    """Stands in for BackendClient; responses may be dicts or exceptions."""

    def __init__(self):
        self.lead_calls = []
        self.order_calls = []
        self.lead_response = {'result': 'SUCCESS', 'message': {'orderId': 'L-1'}}
        self.order_response = {'result': 'SUCCESS', 'message': {'orderId': '123'}}
        self.ip = '203.0.113.9'
        self.countries = [Country(countryCode='US', countryName='United States')]
        self.maps_key = None
        self.release_order = None

    async def sync_lead(self, payload):
        self.lead_calls.append(payload)
        if isinstance(self.lead_response, Exception):
            raise self.lead_response
        return self.lead_response

    async def submit_order(self, payload):
        self.order_calls.append(payload)
        if self.release_order is not None:
            await self.release_order.wait()
        if isinstance(self.order_response, Exception):
            raise self.order_response
        return self.order_response

    async def lookup_ip(self):
        if isinstance(self.ip, Exception):
            raise self.ip
        return self.ip

    async def fetch_countries(self):
        if isinstance(self.countries, Exception):
            raise self.countries
        return self.countries

    async def fetch_maps_key(self):
        return self.maps_key


# ---------------------------------------------------------------------------
# Maps provider fakes
# ---------------------------------------------------------------------------

class FakeLegacyAutocomplete:
    def __init__(self, fields, component_restrictions):
        self.fields = fields
        self.restrictions = component_restrictions
        self.listeners = {}
        self.place = None

    def add_listener(self, event, callback):
        self.listeners[event] = callback

    def set_component_restrictions(self, restrictions):
        self.restrictions = restrictions

    def get_place(self):
        return self.place

    def select(self, place):
        self.place = place
        self.listeners['place_changed']()


class FakePlaceAutocompleteElement:
    def __init__(self):
        self.listeners = {}
        self.included_region_codes = None
        self.included_primary_types = None

    def add_listener(self, event, callback):
        self.listeners[event] = callback


class FakePlace:
    def __init__(self, address_components, lat, lng):
        self.address_components = None
        self.location = None
        self._components = address_components
        self._location = SimpleNamespace(lat=lat, lng=lng)
        self.fetched = None

    async def fetch_fields(self, fields):
        self.fetched = fields
        self.address_components = self._components
        self.location = self._location


class FakePrediction:
    def __init__(self, place):
        self.place = place

    def to_place(self):
        return self.place


class FakeMap:
    def __init__(self, **options):
        self.options = options
        self.listeners = {}
        self.center = options.get('center')
        self.zoom = options.get('zoom')

    def add_listener(self, event, callback):
        self.listeners[event] = callback

    def set_center(self, center):
        self.center = center

    def set_zoom(self, zoom):
        self.zoom = zoom


class FakeMarker:
    def __init__(self, map, position):
        self.map = map
        self.position = position
        self.removed = False

    def remove(self):
        self.removed = True


def legacy_provider():
    return SimpleNamespace(
        places=SimpleNamespace(Autocomplete=FakeLegacyAutocomplete),
        Map=FakeMap,
        Marker=FakeMarker,
    )


def current_provider():
    return SimpleNamespace(
        places=SimpleNamespace(PlaceAutocompleteElement=FakePlaceAutocompleteElement),
        marker=SimpleNamespace(AdvancedMarkerElement=FakeMarker),
        Map=FakeMap,
        Marker=FakeMarker,
    )


LEGACY_COMPONENTS = [
    {'long_name': '1600', 'short_name': '1600', 'types': ['street_number']},
    {'long_name': 'Amphitheatre Parkway', 'short_name': 'Amphitheatre Pkwy', 'types': ['route']},
    {'long_name': 'Mountain View', 'short_name': 'Mountain View', 'types': ['locality', 'political']},
    {'long_name': 'California', 'short_name': 'CA', 'types': ['administrative_area_level_1', 'political']},
    {'long_name': '94043', 'short_name': '94043', 'types': ['postal_code']},
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def api_client(upstream):
    """FastAPI test client whose order-management calls hit the recorder."""
    from checkout.main import app, get_upstream

    client = CheckoutChampClient(
        get_settings(),
        httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
    )
    app.dependency_overrides[get_upstream] = lambda: client
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def client_settings():
    return ClientSettings(lead_debounce_seconds=0.05)


@pytest.fixture
def maps_key():
    return MapsKey(key='maps-key', map_id='map-1')


def fill_valid_form(page):
    """Type a complete, valid checkout into the page."""
    values = {
        'firstName': '  Jane ',
        'lastName': 'Doe ',
        'emailAddress': 'jane@example.com',
        'phoneNumber': ' +15551234567 ',
        'country': 'US',
        'address1': ' 1600 Amphitheatre Parkway ',
        'city': 'Mountain View',
        'state': 'CA',
        'postalCode': ' 94043 ',
        'cardNumber': '4111 1111 1111 1111',
        'cardMonth': '12',
        'cardYear': '30',
        'cardSecurityCode': '123',
        'product1_id': '42',
    }
    for field_id, value in values.items():
        page.binder.handle_input(field_id, value)
