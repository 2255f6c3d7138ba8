import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import Base, engine, get_db
from . import crud, models, schemas
from .auth import create_access_token, verify_password
from .config import PaymentConfig, load_payment_config
from .deps import (ORDER_DELETE, ORDER_READ, ORDER_UPDATE, PAYMENT_CREATE, authorize,
                   get_current_user)
from .errors import OrderServiceError, PaymentError, StoreError
from .payments import CheckoutClient, CheckoutService
from .utils import clean_status

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create tables if not existing (for demo). In production, use Alembic.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Food Ordering Order & Payment API")


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("unhandled store error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def get_payment_config() -> PaymentConfig:
    return load_payment_config()


def get_checkout_client(config: PaymentConfig = Depends(get_payment_config)) -> CheckoutClient:
    return CheckoutClient(config.processor_api_key)


def request_origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/order/{order_id}", response_model=schemas.OrderResponse)
async def get_order(order_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = crud.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    authorize(user, ORDER_READ, owner_id=order.user_id)
    return {"order": schemas.OrderRead.model_validate(order)}


@app.put("/order/{order_id}", response_model=schemas.OrderResponse)
async def update_order(order_id: int, status: str | None = Query(default=None),
                       user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    # presence is checked before the role
    status = clean_status(status)
    if not status:
        raise HTTPException(status_code=400, detail="Status required")
    authorize(user, ORDER_UPDATE)
    order = crud.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    updated = crud.update_order_status(db, order, status)
    logger.info("order %s set to %r by user %s", order_id, status, user.user_id)
    return {"order": schemas.OrderRead.model_validate(updated)}


@app.delete("/order/{order_id}", response_model=schemas.DeleteResponse)
async def delete_order(order_id: int, user: models.User = Depends(get_current_user), db: Session = Depends(get_db)):
    authorize(user, ORDER_DELETE)
    if not crud.delete_order(db, order_id):
        raise HTTPException(status_code=404, detail="Order not found")
    logger.info("order %s removed by user %s", order_id, user.user_id)
    return {"message": "Order removed successfully"}


@app.post("/payments", response_model=schemas.CheckoutResponse)
def create_payment(payload: schemas.PaymentCreate, request: Request,
                   user: models.User = Depends(get_current_user), db: Session = Depends(get_db),
                   config: PaymentConfig = Depends(get_payment_config),
                   client: CheckoutClient = Depends(get_checkout_client)):
    try:
        order = crud.get_order(db, payload.order_id)
    except StoreError as e:
        raise PaymentError(e.message) from e
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    authorize(user, PAYMENT_CREATE, owner_id=order.user_id)
    service = CheckoutService(config, client)
    payment, redirect_url = service.start(db, order.order_id, payload.amount, payload.email, request_origin(request))
    return {"payment": schemas.PaymentRead.model_validate(payment), "redirectUrl": redirect_url}


@app.post("/auth/login")
async def auth_login(payload: dict, db: Session = Depends(get_db)):
    uid = payload.get("user_id")
    if uid is None:
        raise HTTPException(status_code=400, detail="user_id required")
    try:
        user = db.get(models.User, int(uid))
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="user_id must be an integer")
    if not user:
        raise HTTPException(status_code=404, detail="user not found")
    pwd = payload.get("password")
    if not user.password_hash or not pwd or not verify_password(pwd, user.password_hash):
        raise HTTPException(status_code=401, detail="invalid credentials")
    token = create_access_token(user.user_id, user.role)
    return {"access_token": token, "token_type": "bearer"}
