"""Hosted checkout sessions: line-item mapping, the processor client and the
insert-then-checkout flow with its compensation step."""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, NamedTuple, Tuple
from urllib.parse import urlencode

import stripe
from sqlalchemy.orm import Session

from . import crud, models
from .config import PaymentConfig, resolve_base_url
from .errors import PaymentError, PaymentProcessorError, StoreError

logger = logging.getLogger(__name__)

PAYMENT_METHOD = "stripe"
# substituted by the processor when it redirects back
SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


class CheckoutSession(NamedTuple):
    id: str
    url: str


def to_minor_units(value: Decimal) -> int:
    return int((Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def unit_price(item: models.OrderItem) -> Decimal:
    """Menu price, or the stored subtotal spread over the quantity when the price is missing."""
    menu = item.menu_item
    if menu is not None and menu.price is not None:
        return Decimal(str(menu.price))
    return Decimal(str(item.subtotal)) / max(1, item.quantity or 0)


def build_line_items(items: Iterable[models.OrderItem], currency: str) -> List[Dict[str, Any]]:
    line_items = []
    for it in items:
        menu = it.menu_item
        product: Dict[str, Any] = {"name": (menu.name if menu is not None and menu.name else "Item")}
        if menu is not None and menu.images:
            product["images"] = [menu.images[0].url]
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": product,
                "unit_amount": to_minor_units(unit_price(it)),
            },
            "quantity": it.quantity,
        })
    return line_items


def success_url(base_url: str, payment_id: int) -> str:
    # the placeholder must reach the processor unescaped
    return f"{base_url}/payments/success?payment_id={payment_id}&session_id={SESSION_ID_PLACEHOLDER}"


def cancel_url(base_url: str, order_id: int) -> str:
    return f"{base_url}/payments/cancel?{urlencode({'order_id': order_id})}"


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class CheckoutClient:
    """Creates hosted checkout sessions through the Stripe SDK."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def create_session(self, params: Dict[str, Any]) -> CheckoutSession:
        if not self.api_key:
            raise PaymentProcessorError("payment processor is not configured")
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            raise PaymentProcessorError(
                f"checkout session rejected by processor: {e.__class__.__name__}",
                status=getattr(e, "http_status", None),
            ) from e
        session_id, url = _field(session, "id"), _field(session, "url")
        if not session_id or not url:
            raise PaymentProcessorError("processor returned a checkout session without an id or url")
        return CheckoutSession(id=session_id, url=url)


class CheckoutService:
    def __init__(self, config: PaymentConfig, client: CheckoutClient):
        self.config = config
        self.client = client

    def start(self, db: Session, order_id: int, amount: Decimal, email: str,
              request_origin: str) -> Tuple[models.Payment, str]:
        """Create a pending payment and a checkout session; return the payment and redirect URL.

        Once the payment row exists, any later failure marks it ``failed``
        before the error is re-raised as :class:`PaymentError`.
        """
        base_url = resolve_base_url(self.config, request_origin)
        try:
            payment = crud.create_pending_payment(db, order_id, amount, method=PAYMENT_METHOD)
        except StoreError as e:
            raise PaymentError(e.message) from e

        try:
            items = crud.list_order_items(db, order_id)
            if not items:
                raise PaymentError(f"order {order_id} has no items")
            session = self.client.create_session({
                "payment_method_types": ["card"],
                "mode": "payment",
                "customer_email": email,
                "line_items": build_line_items(items, self.config.currency_code),
                "success_url": success_url(base_url, payment.payment_id),
                "cancel_url": cancel_url(base_url, order_id),
                "metadata": {"payment_id": str(payment.payment_id)},
            })
            payment = crud.set_payment_session(db, payment, session.id)
        except (PaymentError, StoreError) as e:
            logger.warning("checkout for payment %s failed (processor status %s): %s",
                           payment.payment_id, getattr(e, "status", None), e)
            self._void(db, payment)
            if isinstance(e, PaymentError):
                raise
            raise PaymentError(e.message) from e

        logger.info("checkout session %s created for payment %s", session.id, payment.payment_id)
        return payment, session.url

    def _void(self, db: Session, payment: models.Payment) -> None:
        try:
            crud.mark_payment_failed(db, payment)
        except StoreError:
            logger.exception("could not mark payment %s failed", payment.payment_id)
