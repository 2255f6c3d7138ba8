from decimal import Decimal

import pytest
from fastapi import HTTPException

from foodorder import crud, models
from foodorder.config import PaymentConfig, load_payment_config, resolve_base_url
from foodorder.deps import ORDER_DELETE, ORDER_READ, ORDER_UPDATE, PAYMENT_CREATE, authorize, is_elevated
from foodorder.payments import build_line_items, cancel_url, success_url


def test_role_classification():
    assert is_elevated("staff")
    assert is_elevated("ADMIN")
    assert is_elevated(" Staff ")
    assert not is_elevated("customer")
    assert not is_elevated("")
    assert not is_elevated(None)


def test_policy_owner_vs_elevated():
    owner = models.User(user_id=1, role="customer")
    staff = models.User(user_id=2, role="staff")

    authorize(owner, ORDER_READ, owner_id=1)
    authorize(owner, PAYMENT_CREATE, owner_id=1)
    for cap in (ORDER_UPDATE, ORDER_DELETE):
        with pytest.raises(HTTPException) as exc:
            authorize(owner, cap, owner_id=1)
        assert exc.value.status_code == 403
        authorize(staff, cap)
    with pytest.raises(HTTPException):
        authorize(owner, ORDER_READ, owner_id=3)
    with pytest.raises(ValueError):
        authorize(staff, "order:archive")


def test_line_items_use_menu_price(db_session, order):
    items = crud.list_order_items(db_session, order.order_id)
    lines = build_line_items(items, "zar")
    assert lines[0] == {
        "price_data": {
            "currency": "zar",
            "product_data": {"name": "Burger", "images": ["https://cdn.example.com/burger.jpg"]},
            "unit_amount": 1999,
        },
        "quantity": 2,
    }


def test_line_items_fall_back_to_subtotal(db_session, order):
    items = crud.list_order_items(db_session, order.order_id)
    special = build_line_items(items, "zar")[1]
    assert special["price_data"]["unit_amount"] == 1999
    assert special["quantity"] == 2
    assert "images" not in special["price_data"]["product_data"]


def test_line_item_zero_quantity_and_missing_menu_item():
    item = models.OrderItem(quantity=0, subtotal=Decimal("5.00"))
    (line,) = build_line_items([item], "usd")
    assert line["price_data"]["unit_amount"] == 500
    assert line["price_data"]["product_data"] == {"name": "Item"}
    assert line["quantity"] == 0


def test_callback_urls():
    config = PaymentConfig("https://app.example.com", "sk_test", "zar")
    base = resolve_base_url(config, "http://testserver")
    assert cancel_url(base, 42) == "https://app.example.com/payments/cancel?order_id=42"
    assert success_url(base, 7) == (
        "https://app.example.com/payments/success?payment_id=7&session_id={CHECKOUT_SESSION_ID}"
    )


@pytest.mark.parametrize("override", [None, "", "app.example.com", "ftp://app.example.com"])
def test_base_url_falls_back_to_origin(override):
    config = PaymentConfig(override, "sk_test", "zar")
    assert resolve_base_url(config, "http://localhost:3000") == "http://localhost:3000"


def test_base_url_override_is_case_insensitive_and_trimmed():
    config = PaymentConfig("HTTPS://shop.example.com/", "sk_test", "zar")
    assert resolve_base_url(config, "http://localhost") == "HTTPS://shop.example.com"


def test_load_payment_config_env_precedence(monkeypatch):
    for name in ("WEB_APP_URL", "NEXT_PUBLIC_WEB_URL", "NEXT_PUBLIC_APP_URL", "APP_URL", "PAYMENT_CURRENCY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NEXT_PUBLIC_APP_URL", "https://third.example.com")
    monkeypatch.setenv("APP_URL", "https://fourth.example.com")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    config = load_payment_config()
    assert config.base_url_override == "https://third.example.com"
    assert config.processor_api_key == "sk_test_123"
    assert config.currency_code == "zar"

    # an invalid first value is not skipped in favour of the next one
    monkeypatch.setenv("WEB_APP_URL", "not-a-url")
    config = load_payment_config()
    assert resolve_base_url(config, "http://origin:8000") == "http://origin:8000"
