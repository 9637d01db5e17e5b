"""Builds the storefront's object graph from Settings.

``local_stores`` opens the JSON stores under ``DATA_DIR`` and the local
checkout, payment and cache collaborators; ``build_container`` hands them to
the resources. Tests pass their own stores and context instead.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path

from storefront.application.cache_gate import CacheGate, CacheStore
from storefront.application.card_sources import LegacyProfileCardSource, VaultCardSource
from storefront.application.cart import CartUpdater, SessionLocks
from storefront.application.checkout import CheckoutHandler
from storefront.application.projection import Projector
from storefront.application.resources.address import AddressResource
from storefront.application.resources.auth import AuthResource
from storefront.application.resources.base import ResourceContext, utcnow
from storefront.application.resources.creditcard import CreditCardResource
from storefront.application.resources.event import EventResource
from storefront.application.resources.order import OrderResource
from storefront.application.resources.product import ProductResource
from storefront.application.resources.root import RootResource
from storefront.application.resources.user import UserResource
from storefront.application.routes import StaticRouter
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.checkout_service import CheckoutService
from storefront.domain.repository.payment_gateway import PaymentGateway
from storefront.domain.repository.record_repository import RecordRepository
from storefront.domain.repository.region_directory import RegionDirectory
from storefront.domain.repository.session_repository import SessionRepository
from storefront.infrastructure.cache.memory_cache_store import MemoryCacheStore
from storefront.infrastructure.cache.redis_cache_store import RedisCacheStore
from storefront.infrastructure.checkout.local_checkout_service import LocalCheckoutService
from storefront.infrastructure.config import Settings
from storefront.infrastructure.payment.http_payment_gateway import HttpPaymentGateway
from storefront.infrastructure.persistence.json_cart_repository import JsonCartRepository
from storefront.infrastructure.persistence.json_record_repository import JsonRecordRepository
from storefront.infrastructure.persistence.json_region_directory import JsonRegionDirectory
from storefront.infrastructure.persistence.json_session_repository import JsonSessionRepository

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    """The collaborators behind the resources."""

    customers: RecordRepository
    addresses: RecordRepository
    products: RecordRepository
    events: RecordRepository
    orders: RecordRepository
    vault: RecordRepository
    profiles: RecordRepository
    coupons: RecordRepository
    carts: CartRepository
    sessions: SessionRepository
    regions: RegionDirectory
    checkout: CheckoutService
    payment_gateway: PaymentGateway
    cache: CacheStore


@dataclass
class Container:
    settings: Settings
    stores: Stores
    root: RootResource
    events: EventResource
    products: ProductResource
    users: UserResource
    auth: AuthResource
    addresses: AddressResource
    credit_cards: CreditCardResource
    orders: OrderResource


def record_repository(data_dir: Path, name: str, id_field: str = "entity_id") -> JsonRecordRepository:
    return JsonRecordRepository(data_dir / f"{name}.json", id_field=id_field)


def cache_store(settings: Settings) -> CacheStore:
    if settings.CACHE_BACKEND == "redis":
        return RedisCacheStore.from_settings(
            settings.REDIS_HOST,
            settings.REDIS_PORT,
            settings.REDIS_DB,
            settings.REDIS_PASSWORD,
        )
    if settings.CACHE_BACKEND != "memory":
        raise ValueError(f"Unsupported cache backend: {settings.CACHE_BACKEND}")
    return MemoryCacheStore()


def local_stores(settings: Settings) -> Stores:
    data_dir = settings.DATA_DIR
    orders = record_repository(data_dir, "orders")
    vault = record_repository(data_dir, "vault", id_field="vault_id")
    coupons = record_repository(data_dir, "coupons")

    return Stores(
        customers=record_repository(data_dir, "customers"),
        addresses=record_repository(data_dir, "addresses"),
        products=record_repository(data_dir, "products"),
        events=record_repository(data_dir, "events"),
        orders=orders,
        vault=vault,
        profiles=record_repository(data_dir, "profiles"),
        coupons=coupons,
        carts=JsonCartRepository(data_dir / "carts.json"),
        sessions=JsonSessionRepository(data_dir / "sessions.json"),
        regions=JsonRegionDirectory(data_dir / "regions.json"),
        checkout=LocalCheckoutService(
            orders=orders,
            coupons=coupons,
            vault=vault,
            flat_rate=Money(settings.FLAT_SHIPPING_RATE),
            clock=utcnow,
        ),
        payment_gateway=HttpPaymentGateway(
            settings.PAYMENT_GATEWAY_URL, timeout=settings.PAYMENT_GATEWAY_TIMEOUT
        ),
        cache=cache_store(settings),
    )


def build_container(
    settings: Settings,
    stores: Stores | None = None,
    context: ResourceContext | None = None,
) -> Container:
    """Wire every resource. Tests pass their own stores and context."""
    stores = stores or local_stores(settings)

    if context is None:
        router = StaticRouter(base_path=settings.BASE_PATH)
        context = ResourceContext(
            projector=Projector(router),
            router=router,
            cache=CacheGate(
                stores.cache,
                environment=settings.ENV,
                refresh_probability=settings.CACHE_REFRESH_PROBABILITY,
                rng=random.random,
                clock=time.time,
            ),
            config=settings.api_config(),
            sessions=stores.sessions,
            customers=stores.customers,
        )

    vault = VaultCardSource(stores.vault)
    legacy = LegacyProfileCardSource(stores.profiles)
    addresses = AddressResource(context, stores.addresses, stores.regions, legacy)

    logger.debug("Wiring resources for environment %s", settings.ENV)
    return Container(
        settings=settings,
        stores=stores,
        root=RootResource(context),
        events=EventResource(context, stores.events, stores.products),
        products=ProductResource(context, stores.products, stores.events),
        users=UserResource(context),
        auth=AuthResource(context),
        addresses=addresses,
        credit_cards=CreditCardResource(context, vault, legacy, addresses, stores.payment_gateway),
        orders=OrderResource(
            context,
            orders=stores.orders,
            carts=stores.carts,
            checkout_service=stores.checkout,
            updater=CartUpdater(stores.products, stores.addresses, stores.checkout, context.clock),
            checkout=CheckoutHandler(
                stores.checkout,
                stores.carts,
                stores.orders,
                stores.addresses,
                vault,
                legacy,
            ),
            locks=SessionLocks(),
        ),
    )
