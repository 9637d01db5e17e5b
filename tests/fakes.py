"""In-memory fakes of every collaborator for testing.

These implement the same abstract interfaces as the JSON stores and the
HTTP gateway but keep everything in dicts. No file I/O, no network.
"""

from __future__ import annotations

import copy
import itertools
from datetime import datetime, timedelta, timezone

from storefront.application.cache_gate import CacheEntry, CacheGate, CacheStore
from storefront.application.projection import Projector
from storefront.application.resources.base import ResourceContext
from storefront.application.routes import StaticRouter
from storefront.domain.exceptions import CacheStoreError, PaymentGatewayError
from storefront.domain.model.cart import Cart
from storefront.domain.model.record import Record, record_id
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.payment_gateway import (
    APPROVED,
    AuthorizationRequest,
    AuthorizationResponse,
    PaymentGateway,
)
from storefront.domain.repository.record_repository import Filters, RecordRepository
from storefront.domain.repository.region_directory import RegionDirectory
from storefront.domain.repository.session_repository import SessionRepository
from storefront.infrastructure.bootstrap import Container, Stores, build_container
from storefront.infrastructure.cache.memory_cache_store import MemoryCacheStore
from storefront.infrastructure.checkout.local_checkout_service import LocalCheckoutService
from storefront.infrastructure.config import Settings
from storefront.infrastructure.persistence.filters import matches, sort_records

NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)  # a Wednesday


def fixed_clock(now: datetime = NOW):
    return lambda: now


class FakeRecordRepository(RecordRepository):

    def __init__(self, records: list[Record] | None = None, id_field: str = "entity_id") -> None:
        self._id_field = id_field
        self._store: dict[int, Record] = {}
        for record in records or []:
            self._store[record_id(record, id_field)] = copy.deepcopy(record)
        self._next_id = max(self._store, default=0) + 1

    def load(self, entity_id: int | str) -> Record | None:
        for record in self._store.values():
            if matches(record, {self._id_field: entity_id}):
                return copy.deepcopy(record)
        return None

    def query(self, filters: Filters, sort: str | None = None) -> list[Record]:
        found = [copy.deepcopy(r) for r in self._store.values() if matches(r, filters)]
        return sort_records(found, sort)

    def save(self, record: Record) -> Record:
        saved = copy.deepcopy(record)
        if record_id(saved, self._id_field) is None:
            saved[self._id_field] = self._next_id
            self._next_id += 1
        self._store[record_id(saved, self._id_field)] = saved
        return copy.deepcopy(saved)

    def delete(self, entity_id: int | str) -> None:
        self._store.pop(int(entity_id), None)

    def all(self) -> list[Record]:
        return [copy.deepcopy(r) for r in self._store.values()]


class FakeCartRepository(CartRepository):

    def __init__(self) -> None:
        self._store: dict[str, Cart] = {}

    def get_for_session(self, session_id: str, customer_id: int | None) -> Cart:
        cart = self._store.get(session_id)
        if cart is None:
            return Cart(session_id=session_id, customer_id=customer_id)
        return copy.deepcopy(cart)

    def save(self, cart: Cart) -> None:
        self._store[cart.session_id] = copy.deepcopy(cart)

    def discard(self, session_id: str) -> None:
        self._store.pop(session_id, None)

    def stored(self, session_id: str) -> Cart | None:
        return self._store.get(session_id)


class FakeSessionRepository(SessionRepository):

    def __init__(self) -> None:
        self._credentials: dict[str, tuple[int, str]] = {}
        self._sessions: dict[str, int] = {}
        self._tokens = itertools.count(1)

    def register(self, customer_id: int, email: str, password: str) -> None:
        self._credentials[email.lower()] = (customer_id, password)

    def rename(self, old_email: str, new_email: str) -> None:
        entry = self._credentials.pop(old_email.lower(), None)
        if entry is not None:
            self._credentials[new_email.lower()] = entry

    def authenticate(self, email: str, password: str) -> int | None:
        entry = self._credentials.get(email.lower())
        if entry is None or entry[1] != password:
            return None
        return entry[0]

    def open(self, customer_id: int) -> str:
        token = f"token-{next(self._tokens)}"
        self._sessions[token] = customer_id
        return token

    def customer_for(self, token: str) -> int | None:
        return self._sessions.get(token)

    def close(self, token: str) -> None:
        self._sessions.pop(token, None)

    def login(self, customer_id: int) -> str:
        """Open a session directly, skipping credentials."""
        return self.open(customer_id)


class FakeRegionDirectory(RegionDirectory):

    def __init__(self, regions: dict[tuple[str, str], int] | None = None) -> None:
        self._regions = regions if regions is not None else {("NY", "US"): 43, ("New York", "US"): 43}

    def resolve(self, state: str, country: str) -> int | None:
        return self._regions.get((state, country))


class FakePaymentGateway(PaymentGateway):

    def __init__(self, response: AuthorizationResponse | None = None, fail: bool = False) -> None:
        self.response = response or AuthorizationResponse(
            response_code=APPROVED,
            message="Approved",
            transaction_id="txn-1",
            token="tok-4111",
            bin="411111",
        )
        self.fail = fail
        self.authorizations: list[AuthorizationRequest] = []
        self.reversals: list[tuple[str, int]] = []

    def authorize(self, request: AuthorizationRequest) -> AuthorizationResponse:
        if self.fail:
            raise PaymentGatewayError("connection refused")
        self.authorizations.append(request)
        return self.response

    def reverse_authorization(self, transaction_id: str, amount: int) -> None:
        self.reversals.append((transaction_id, amount))


class FailingCacheStore(CacheStore):
    """A cache backend that is down."""

    def exists(self, key: str) -> bool:
        raise CacheStoreError("cache unavailable")

    def get(self, key: str) -> CacheEntry | None:
        raise CacheStoreError("cache unavailable")

    def put(self, key: str, body: str, tags: frozenset[str], lifetime: int) -> bool:
        raise CacheStoreError("cache unavailable")

    def flush(self) -> None:
        raise CacheStoreError("cache unavailable")

    def invalidate_tags(self, tags) -> int:
        raise CacheStoreError("cache unavailable")

    def stats(self) -> dict:
        raise CacheStoreError("cache unavailable")


def days_from_now(days: int, now: datetime = NOW) -> str:
    return (now + timedelta(days=days)).isoformat()



# ---------------------------------------------------------------------------
# Seed data and a wired container
# ---------------------------------------------------------------------------

WEB_URL = "https://www.example.com"
PASSWORD = "s3cret"

CUSTOMERS = [
    {
        "entity_id": 7,
        "email": "alice@example.com",
        "firstname": "Alice",
        "lastname": "Smith",
        "reward_balance": 10,
        "default_billing": 21,
        "default_shipping": 21,
    },
    {"entity_id": 8, "email": "bob@example.com", "firstname": "Bob", "lastname": "Jones"},
]

ADDRESSES = [
    {
        "entity_id": 21,
        "customer_id": 7,
        "firstname": "Alice",
        "lastname": "Smith",
        "street": "1 Main St\nApt 2",
        "city": "New York",
        "region": "New York",
        "region_id": 43,
        "postcode": "10001",
        "country_id": "US",
        "telephone": "555-0100",
    },
    {
        "entity_id": 22,
        "customer_id": 8,
        "firstname": "Bob",
        "lastname": "Jones",
        "street": "9 Side St",
        "city": "New York",
        "region": "NY",
        "region_id": 43,
        "postcode": "10002",
        "country_id": "US",
        "telephone": "555-0199",
    },
    {
        "entity_id": 23,
        "customer_id": 7,
        "firstname": "Alice",
        "lastname": "Smith",
        "street": "Old Billing Rd",
        "city": "New York",
        "region": "NY",
        "postcode": "10003",
        "country_id": "US",
        "telephone": "555-0100",
    },
]

EVENTS = [
    {
        "entity_id": 5,
        "name": "Spring Sale",
        "url_key": "spring-sale",
        "event_start_date": days_from_now(-1),
        "event_end_date": days_from_now(2),
        "default_image": "spring.jpg",
    },
    {
        "entity_id": 6,
        "name": "Summer Preview",
        "url_key": "summer-preview",
        "event_start_date": days_from_now(3),
        "event_end_date": days_from_now(6),
    },
    {
        "entity_id": 9,
        "name": "Winter Clearance",
        "url_key": "winter-clearance",
        "event_start_date": days_from_now(-10),
        "event_end_date": days_from_now(-1),
    },
    {
        "entity_id": 10,
        "name": "Members Only",
        "url_key": "members-only",
        "club_only_event": 1,
        "event_start_date": days_from_now(-1),
        "event_end_date": days_from_now(2),
    },
    {
        "entity_id": 11,
        "name": "Empty Shelf",
        "url_key": "empty-shelf",
        "event_start_date": days_from_now(-1),
        "event_end_date": days_from_now(2),
    },
]

PRODUCTS = [
    {
        "entity_id": 100,
        "name": "Bamboo Bib",
        "type_id": "simple",
        "sku": "BIB-1",
        "url_key": "bamboo-bib",
        "price": "20.00",
        "special_price": "15.00",
        "weight": 1.0,
        "departments": "girls,boys",
        "ages": "baby",
        "color": "Blue",
        "category_ids": [5, 10],
        "position": 2,
        "media_gallery": [{"file": "/b/i/bib.jpg"}],
        "shipping_returns": "<p>Final sale &amp; no returns</p>",
    },
    {
        "entity_id": 101,
        "name": "Gift Card",
        "type_id": "virtual",
        "url_key": "gift-card",
        "price": "25.00",
        "category_ids": [5],
        "position": 1,
    },
    {
        "entity_id": 102,
        "name": "Toddler Tee",
        "type_id": "configurable",
        "url_key": "toddler-tee",
        "price": "30.00",
        "special_price": "24.00",
        "weight": 0.5,
        "departments": ["boys"],
        "ages": ["toddler"],
        "category_ids": [5],
        "position": 3,
        "configurable_attributes": [
            {
                "attribute_id": 92,
                "attribute_code": "color",
                "label": "Color",
                "values": [
                    {"value_index": 1, "label": "Red"},
                    {"value_index": 2, "label": "Blue"},
                ],
            }
        ],
        "variants": [
            {"color": "Red", "is_salable": True},
            {"color": "Blue", "is_salable": False},
        ],
    },
    {
        "entity_id": 103,
        "name": "Sold Out Socks",
        "type_id": "simple",
        "url_key": "sold-out-socks",
        "price": "8.00",
        "is_salable": False,
        "category_ids": [5],
        "position": 4,
    },
    {
        "entity_id": 104,
        "name": "Sun Hat",
        "type_id": "simple",
        "url_key": "sun-hat",
        "price": "12.00",
        "category_ids": [6],
        "position": 1,
    },
]

COUPONS = [{"entity_id": 1, "code": "SAVE5", "discount_amount": 5}]

VAULT = [
    {
        "vault_id": 31,
        "customer_id": 7,
        "type": "VI",
        "last4": "1111",
        "expiration_month": "12",
        "expiration_year": "2030",
        "token": "tok-4111",
        "address_id": 21,
    },
    {
        "vault_id": 32,
        "customer_id": 8,
        "type": "MC",
        "last4": "5454",
        "expiration_month": "1",
        "expiration_year": "2031",
        "token": "tok-5454",
        "address_id": 22,
    },
]

PROFILES = [
    {
        "entity_id": 1,
        "customer_id": 7,
        "subscription_id": "9001",
        "encrypted_subscription_id": "enc-9001",
        "card_type": "MC",
        "last4no": "4444",
        "expire_year": "2029",
        "expire_month": "5",
        "address_id": 23,
    }
]


def seeded_stores(
    cache: CacheStore | None = None,
    gateway: PaymentGateway | None = None,
    now: datetime = NOW,
) -> Stores:
    orders = FakeRecordRepository()
    coupons = FakeRecordRepository(COUPONS)
    vault = FakeRecordRepository(VAULT, id_field="vault_id")
    sessions = FakeSessionRepository()
    for customer in CUSTOMERS:
        sessions.register(customer["entity_id"], customer["email"], PASSWORD)

    return Stores(
        customers=FakeRecordRepository(CUSTOMERS),
        addresses=FakeRecordRepository(ADDRESSES),
        products=FakeRecordRepository(PRODUCTS),
        events=FakeRecordRepository(EVENTS),
        orders=orders,
        vault=vault,
        profiles=FakeRecordRepository(PROFILES),
        coupons=coupons,
        carts=FakeCartRepository(),
        sessions=sessions,
        regions=FakeRegionDirectory(),
        checkout=LocalCheckoutService(
            orders=orders,
            coupons=coupons,
            vault=vault,
            flat_rate=Money.of("7.95"),
            clock=fixed_clock(now),
        ),
        payment_gateway=gateway or FakePaymentGateway(),
        cache=cache or MemoryCacheStore(clock=lambda: now.timestamp()),
    )


def build_test_container(
    env: str = "dev",
    cache: CacheStore | None = None,
    gateway: PaymentGateway | None = None,
    now: datetime = NOW,
    **overrides,
) -> Container:
    """The full resource graph over seeded fakes, frozen at ``now``."""
    settings = Settings(ENV=env, WEB_URL=WEB_URL, _env_file=None, **overrides)
    stores = seeded_stores(cache, gateway, now)
    router = StaticRouter(base_path=settings.BASE_PATH)
    context = ResourceContext(
        projector=Projector(router),
        router=router,
        cache=CacheGate(stores.cache, environment=env, clock=lambda: now.timestamp()),
        config=settings.api_config(),
        sessions=stores.sessions,
        customers=stores.customers,
        clock=fixed_clock(now),
    )
    return build_container(settings, stores, context)
