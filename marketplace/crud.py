import json
import logging
from decimal import Decimal, DecimalException, ROUND_HALF_UP
from sqlalchemy import func, insert, update
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional

from . import models, schemas
from .utils import sanitize_input

logger = logging.getLogger(__name__)

# Business rule: prices are stored as integer cents, rounded half up, non-negative

def to_cents(value: Decimal) -> int:
    try:
        cents = (Decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except DecimalException as e:
        raise ValueError("price out of range") from e
    if cents > schemas.MAX_PRICE * 100:
        raise ValueError("price out of range")
    if cents < 0:
        raise ValueError("price must be non-negative")
    return int(cents)


# -------------------- Credential store --------------------

def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, name: str, email: str, password_hash: str, role: str) -> models.User:
    """Insert a user row. Raises ValueError if the email is already taken."""
    db_user = models.User(name=sanitize_input(name), email=email, password_hash=password_hash, role=role)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError("email already registered") from e
    db.refresh(db_user)
    return db_user


# -------------------- Catalog store --------------------

def list_products(db: Session) -> List[models.Product]:
    return db.query(models.Product).order_by(models.Product.created_at.desc(), models.Product.id.desc()).all()


def get_product(db: Session, product_id: str) -> Optional[models.Product]:
    return db.get(models.Product, product_id)


def _title(value: str) -> str:
    title = sanitize_input(value)
    if not title:
        raise ValueError("title must not be blank")
    return title


def _next_created_at(db: Session) -> int:
    # strictly after the newest product so newest-first never ties
    newest = db.query(func.max(models.Product.created_at)).scalar()
    now = models.now_ms()
    return now if newest is None or now > newest else newest + 1


def create_product(db: Session, product: schemas.ProductCreate) -> models.Product:
    db_product = models.Product(
        title=_title(product.title),
        price_cents=to_cents(product.price),
        description=sanitize_input(product.description),
        author=sanitize_input(product.author),
        asset_key=(product.asset_key or "").strip(),
        created_at=_next_created_at(db),
    )
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, product_id: str, changes: schemas.ProductUpdate) -> Optional[models.Product]:
    product = db.get(models.Product, product_id)
    if not product:
        return None
    # omitted or null fields keep their stored value; "" is a real value
    # validate before touching the row
    title = _title(changes.title) if changes.title is not None else None
    price_cents = to_cents(changes.price) if changes.price is not None else None
    if title is not None:
        product.title = title
    if price_cents is not None:
        product.price_cents = price_cents
    if changes.description is not None:
        product.description = sanitize_input(changes.description)
    if changes.author is not None:
        product.author = sanitize_input(changes.author)
    if changes.asset_key is not None:
        product.asset_key = changes.asset_key.strip()
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: str) -> bool:
    product = db.get(models.Product, product_id)
    if not product:
        return False
    db.delete(product)
    db.commit()
    return True


# -------------------- Order ledger --------------------

def create_order(db: Session, session_id: str, customer_email: Optional[str], line_items: list) -> models.Order:
    db_order = models.Order(
        session_id=session_id,
        customer_email=customer_email or "",
        status=models.ORDER_PENDING,
        metadata_json=json.dumps(line_items),
    )
    db.add(db_order)
    db.commit()
    db.refresh(db_order)
    return db_order


def get_order_by_session(db: Session, session_id: str) -> Optional[models.Order]:
    return db.query(models.Order).filter(models.Order.session_id == session_id).first()


def mark_order_paid(db: Session, session_id: str) -> bool:
    """pending -> paid for the order with this session id.

    Returns True if a row changed. Unknown sessions and already-paid orders
    are left alone.
    """
    result = db.execute(
        update(models.Order)
        .where(models.Order.session_id == session_id, models.Order.status == models.ORDER_PENDING)
        .values(status=models.ORDER_PAID)
    )
    db.commit()
    return result.rowcount > 0


def is_event_processed(db: Session, event_id: str) -> bool:
    return db.get(models.ProcessedEvent, event_id) is not None


def record_event(db: Session, event_id: str, event_type: str) -> bool:
    """Remember a processed webhook event. Returns False if it was already recorded."""
    try:
        db.execute(insert(models.ProcessedEvent).values(event_id=event_id, event_type=event_type, processed_at=models.now_ms()))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("event %s already recorded", event_id)
        return False
    return True
