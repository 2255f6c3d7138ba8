import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from . import models
from .auth import hash_password
from .errors import StoreError

logger = logging.getLogger(__name__)

# Business rule: amount stored rounded to 2 decimals

def round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("%s failed", action)
        raise StoreError(f"{action} failed: {e}") from e


def create_user(db: Session, name: str, email: Optional[str] = None, role: str = "customer",
                password: Optional[str] = None) -> models.User:
    db_user = models.User(
        name=name,
        email=email,
        role=role,
        password_hash=hash_password(password) if password else None,
    )
    db.add(db_user)
    _commit(db, "create user")
    db.refresh(db_user)
    return db_user


def get_order(db: Session, order_id: int) -> Optional[models.Order]:
    """Load an order with its items, or None."""
    try:
        return (
            db.query(models.Order)
            .options(selectinload(models.Order.items))
            .filter(models.Order.order_id == order_id)
            .first()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("order fetch failed")
        raise StoreError(str(e)) from e


def update_order_status(db: Session, order: models.Order, status: str) -> models.Order:
    """Set the status and notify the owner in the same transaction."""
    order.status = status
    db.add(models.Notification(
        user_id=order.user_id,
        message=f"Your order #{order.order_id} is now {status}",
        is_read=False,
    ))
    _commit(db, "update order status")
    db.refresh(order)
    return order


def list_notifications(db: Session, user_id: int) -> List[models.Notification]:
    return (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id)
        .order_by(models.Notification.id)
        .all()
    )


def delete_order(db: Session, order_id: int) -> bool:
    order = db.get(models.Order, order_id)
    if not order:
        return False
    db.delete(order)
    _commit(db, "delete order")
    return True


def create_pending_payment(db: Session, order_id: int, amount: Decimal, method: str = "stripe") -> models.Payment:
    payment = models.Payment(order_id=order_id, amount=round_amount(amount), method=method, status="pending")
    db.add(payment)
    _commit(db, "create payment")
    db.refresh(payment)
    return payment


def list_order_items(db: Session, order_id: int) -> List[models.OrderItem]:
    """Items of an order with their menu item and its images eagerly loaded."""
    try:
        return (
            db.query(models.OrderItem)
            .options(joinedload(models.OrderItem.menu_item).selectinload(models.MenuItem.images))
            .filter(models.OrderItem.order_id == order_id)
            .order_by(models.OrderItem.order_item_id)
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("order item fetch failed")
        raise StoreError(str(e)) from e


def set_payment_session(db: Session, payment: models.Payment, session_id: Optional[str]) -> models.Payment:
    payment.session_id = session_id
    _commit(db, "store checkout session")
    db.refresh(payment)
    return payment


def mark_payment_failed(db: Session, payment: models.Payment) -> models.Payment:
    payment.status = "failed"
    _commit(db, "mark payment failed")
    db.refresh(payment)
    return payment
