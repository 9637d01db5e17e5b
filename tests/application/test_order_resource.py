"""Tests for the order resource and the cart/checkout state machine.

Runs the full resource graph over in-memory fakes.
"""

import json
import threading
import time

import pytest

from storefront.application.cart import SessionLocks
from storefront.application.dto import ResourceRequest
from storefront.application.errors import (
    AuthorizationError,
    ClientInputError,
    ConflictError,
    NotFoundError,
)
from tests.fakes import build_test_container


def _setup(**kwargs):
    container = build_test_container(**kwargs)
    token = container.stores.sessions.login(7)
    return container, token


def _link(href: str, **extra) -> dict:
    return {"links": [{"rel": "http://rel.totsy.com/entity/product", "href": href}], **extra}


def _post(container, token, body, user_id=7):
    request = ResourceRequest(path=f"/user/{user_id}/order", body=json.dumps(body), session=token)
    return container.orders.create_order_entity(request, user_id)


def _stored_cart(container, token):
    return container.stores.carts.stored(token)


SHIPPING = {"shipping": _link("/address/21")}
STORED_CARD = _link("/creditcard/31")


class TestCartProducts:

    def test_add_product_answers_with_cart(self):
        container, token = _setup()
        response = _post(container, token, {"products": [_link("/product/100", qty=2)]})

        assert response.status == 202
        cart = response.json()
        assert cart["subtotal"] == 30.0
        assert cart["savings_amount"] == 10.0
        assert cart["expires"] == 900
        (product,) = cart["products"]
        assert product["name"] == "Bamboo Bib"
        assert product["qty"] == 2
        assert product["type"] == "simple"
        assert product["links"][0]["href"] == "/product/100"
        assert product["estimated_shipping"] == "2024-03-11"

    def test_quantities_are_absolute(self):
        container, token = _setup()
        _post(container, token, {"products": [_link("/product/100", qty=2)]})
        response = _post(container, token, {"products": [_link("/product/100", qty=3)]})

        (product,) = response.json()["products"]
        assert product["qty"] == 3

    def test_repeating_an_add_keeps_one_line_item(self):
        container, token = _setup()
        for _ in range(3):
            _post(container, token, {"products": [_link("/product/100", qty=1)]})

        cart = _stored_cart(container, token)
        assert len(cart.items) == 1
        assert cart.items[0].qty == 1

    def test_quantity_zero_removes(self):
        container, token = _setup()
        _post(container, token, {"products": [_link("/product/100", qty=2)]})
        response = _post(container, token, {"products": [_link("/product/100", qty=0)]})

        body = response.json()
        assert body["products"] == []
        assert "expires" not in body

    def test_quantity_defaults_to_one(self):
        container, token = _setup()
        response = _post(container, token, {"products": [_link("/product/100")]})
        assert response.json()["products"][0]["qty"] == 1

    def test_unknown_product(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="Invalid Resource URL /product/999"):
            _post(container, token, {"products": [_link("/product/999")]})

    def test_bad_quantity(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="Could not add Product /product/100"):
            _post(container, token, {"products": [_link("/product/100", qty="lots")]})


class TestVirtualItems:

    def test_quantity_cannot_grow(self):
        container, token = _setup()
        _post(container, token, {"products": [_link("/product/101", qty=1)]})

        with pytest.raises(ConflictError, match="virtual product"):
            _post(container, token, {"products": [_link("/product/101", qty=2)]})

        cart = _stored_cart(container, token)
        assert [item.qty for item in cart.items] == [1]

    def test_zero_removes(self):
        container, token = _setup()
        _post(container, token, {"products": [_link("/product/101", qty=1)]})
        _post(container, token, {"products": [_link("/product/101", qty=0)]})
        assert _stored_cart(container, token).items == []

    def test_no_ship_date_for_virtual_items(self):
        container, token = _setup()
        response = _post(container, token, {"products": [_link("/product/101")]})
        assert "estimated_shipping" not in response.json()["products"][0]


class TestConfigurableItems:

    def test_attributes_select_variant(self):
        container, token = _setup()
        body = {"products": [_link("/product/102", qty=1, attributes={"Color": "Red"})]}
        response = _post(container, token, body)
        (product,) = response.json()["products"]
        assert product["attributes"] == {"Color": "Red"}
        assert product["price"] == 24.0

    def test_each_variant_is_its_own_line_item(self):
        container, token = _setup()
        _post(container, token, {"products": [_link("/product/102", attributes={"Color": "Red"})]})
        _post(container, token, {"products": [_link("/product/102", attributes={"Color": "Blue"})]})
        assert len(_stored_cart(container, token).items) == 2

    def test_missing_attribute(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="Missing attribute Color"):
            _post(container, token, {"products": [_link("/product/102", attributes={"Size": "M"})]})

    def test_variant_must_be_chosen(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="Could not add Product /product/102 -- Missing attribute Color"):
            _post(container, token, {"products": [_link("/product/102", qty=1)]})
        assert _stored_cart(container, token) is None or not _stored_cart(container, token).items

    def test_invalid_attribute_value(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="'Green' is invalid for attribute 'Color'"):
            _post(container, token, {"products": [_link("/product/102", attributes={"Color": "Green"})]})


class TestCartAddresses:

    def test_linked_shipping_address_selects_rate(self):
        container, token = _setup()
        body = {"products": [_link("/product/100")], "addresses": SHIPPING}
        cart = _post(container, token, body).json()
        assert cart["shipping_amount"] == 7.95
        assert cart["grand_total"] == 22.95

    def test_inline_address(self):
        container, token = _setup()
        address = {
            "firstname": "Alice",
            "lastname": "Smith",
            "street": ["5 Elm St", "Floor 3"],
            "city": "Brooklyn",
            "state": "NY",
            "zip": "11201",
            "country": "US",
            "telephone": "555-0101",
        }
        _post(container, token, {"products": [_link("/product/100")], "addresses": {"shipping": address}})

        shipping = _stored_cart(container, token).shipping_address
        assert shipping["street"] == "5 Elm St\nFloor 3"
        assert shipping["postcode"] == "11201"
        assert shipping["country_id"] == "US"
        assert shipping["email"] == "alice@example.com"

    def test_someone_elses_address(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="Invalid Resource URL /address/22"):
            _post(container, token, {"addresses": {"shipping": _link("/address/22")}})


class TestCouponsAndCredit:

    def test_coupon_discount(self):
        container, token = _setup()
        cart = _post(container, token, {"products": [_link("/product/100", qty=2)], "coupon_code": "SAVE5"}).json()
        assert cart["discount_amount"] == 5.0
        assert cart["coupon_code"] == "SAVE5"
        assert cart["grand_total"] == 25.0

    def test_invalid_coupon_is_cleared(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="not valid"):
            _post(container, token, {"products": [_link("/product/100")], "coupon_code": "BOGUS"})

        cart = _stored_cart(container, token)
        assert cart.coupon_code is None
        assert len(cart.items) == 1

    def test_use_credit(self):
        container, token = _setup()
        cart = _post(container, token, {"products": [_link("/product/100")], "use_credit": True}).json()
        assert cart["use_credit"] == 1
        assert cart["credit_used"] == 10.0
        assert cart["grand_total"] == 5.0

    def test_unusable_reward_balance(self):
        container, token = _setup()
        customers = container.stores.customers
        customers.save({**customers.load(7), "reward_balance": "-5"})

        with pytest.raises(ClientInputError, match="Could not apply store credit"):
            _post(container, token, {"products": [_link("/product/100")], "use_credit": True})

        cart = _stored_cart(container, token)
        assert [item.product_id for item in cart.items] == [100]
        assert not cart.use_credit


class TestCheckout:

    def test_items_and_payment_create_order(self):
        container, token = _setup()
        body = {
            "products": [_link("/product/100", qty=2)],
            "addresses": SHIPPING,
            "payment": STORED_CARD,
        }
        response = _post(container, token, body)

        assert response.status == 201
        assert response.headers["Location"] == "/order/1"
        order = response.json()
        assert order["number"] == "100000001"
        assert order["status"] == "pending"
        assert order["grand_total"] == 37.95
        assert order["payment"]["cc_last4"] == "1111"
        assert order["products"][0]["qty"] == 2
        assert {a["type"] for a in order["addresses"]} == {"billing", "shipping"}
        assert _stored_cart(container, token) is None

        (stored,) = container.stores.orders.all()
        assert stored["payment"]["method"] == "creditcard"

    def test_payment_without_items_is_a_cart_update(self):
        container, token = _setup()
        response = _post(container, token, {"payment": STORED_CARD})
        assert response.status == 202
        assert container.stores.orders.all() == []

    def test_items_without_payment_stay_in_cart(self):
        container, token = _setup()
        response = _post(container, token, {"products": [_link("/product/100")], "addresses": SHIPPING})
        assert response.status == 202

    def test_missing_shipping_address_keeps_cart(self):
        container, token = _setup()
        with pytest.raises(ClientInputError, match="valid shipping address"):
            _post(container, token, {"products": [_link("/product/100")], "payment": STORED_CARD})

        assert len(_stored_cart(container, token).items) == 1
        assert container.stores.orders.all() == []

    def test_virtual_cart_needs_no_shipping_address(self):
        container, token = _setup()
        body = {
            "products": [_link("/product/101")],
            "addresses": {"billing": _link("/address/21")},
            "payment": {"cc_number": "4111111111111111", "type": "VI"},
        }
        response = _post(container, token, body)
        assert response.status == 201
        (stored,) = container.stores.orders.all()
        assert stored["shipping_amount"] == 0.0
        assert stored["payment"]["method"] == "tokenize"

    def test_payable_cart_needs_billing_address(self):
        container, token = _setup()
        body = {"products": [_link("/product/101")], "payment": {"type": "VI"}}
        with pytest.raises(ClientInputError, match="valid billing address"):
            _post(container, token, body)

    def test_free_order(self):
        container, token = _setup()
        customers = container.stores.customers
        customers.save({**customers.load(7), "reward_balance": 100})

        body = {"products": [_link("/product/101")], "use_credit": 1, "payment": {}}
        response = _post(container, token, body)

        assert response.status == 201
        (stored,) = container.stores.orders.all()
        assert stored["payment"]["method"] == "free"
        assert stored["reward_currency_amount"] == 25.0

    def test_legacy_card(self):
        container, token = _setup()
        body = {
            "products": [_link("/product/100")],
            "addresses": SHIPPING,
            "payment": _link("/creditcard/9001"),
        }
        assert _post(container, token, body).status == 201
        (stored,) = container.stores.orders.all()
        assert stored["payment"]["method"] == "tokenize"
        assert stored["billing_address_id"] == 23

    def test_someone_elses_card(self):
        container, token = _setup()
        body = {
            "products": [_link("/product/100")],
            "addresses": SHIPPING,
            "payment": _link("/creditcard/32"),
        }
        with pytest.raises(ConflictError, match="/creditcard/32"):
            _post(container, token, body)


class TestAuthorization:

    def test_requires_session(self):
        container, _ = _setup()
        with pytest.raises(AuthorizationError):
            _post(container, None, {"products": []})

    def test_other_users_cart(self):
        container, token = _setup()
        with pytest.raises(AuthorizationError):
            _post(container, token, {"products": []}, user_id=8)

    def test_malformed_body(self):
        container, token = _setup()
        request = ResourceRequest(path="/user/7/order", body="{not json", session=token)
        with pytest.raises(ClientInputError):
            container.orders.create_order_entity(request, 7)


class TestOrderQueries:

    def _place_order(self, container, token):
        body = {"products": [_link("/product/100")], "addresses": SHIPPING, "payment": STORED_CARD}
        return _post(container, token, body).json()

    def test_user_orders_hide_split_orders(self):
        container, token = _setup()
        self._place_order(container, token)
        container.stores.orders.save({"customer_id": 7, "status": "splitted", "updated_at": "2024-01-01"})

        request = ResourceRequest(path="/user/7/order", session=token)
        orders = container.orders.get_user_orders(request, 7).json()
        assert [o["status"] for o in orders] == ["pending"]

    def test_get_order(self):
        container, token = _setup()
        self._place_order(container, token)
        request = ResourceRequest(path="/order/1", session=token)
        order = container.orders.get_order_entity(request, "1").json()
        assert order["links"][1]["href"] == "/user/7"

    def test_other_customers_order(self):
        container, token = _setup()
        self._place_order(container, token)
        bob = container.stores.sessions.login(8)
        with pytest.raises(AuthorizationError):
            container.orders.get_order_entity(ResourceRequest(path="/order/1", session=bob), 1)

    def test_unknown_order(self):
        container, token = _setup()
        with pytest.raises(NotFoundError):
            container.orders.get_order_entity(ResourceRequest(path="/order/x", session=token), "x")


class TestSessionLocks:

    def test_released_locks_are_forgotten(self):
        locks = SessionLocks()
        for n in range(1000):
            with locks.hold(f"token-{n}"):
                assert len(locks) == 1
        assert len(locks) == 0

    def test_one_request_per_session_at_a_time(self):
        locks = SessionLocks()
        guard = threading.Lock()
        active = peak = 0

        def worker():
            nonlocal active, peak
            with locks.hold("token-1"):
                with guard:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.005)
                with guard:
                    active -= 1

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert peak == 1
        assert len(locks) == 0
