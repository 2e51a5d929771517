import time
import uuid

from sqlalchemy import Column, BigInteger, Integer, String, Text, CheckConstraint
from .db import Base


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


ORDER_PENDING = "pending"
ORDER_PAID = "paid"


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)
    created_at = Column(BigInteger, nullable=False, default=now_ms)


class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    # minor currency units (cents)
    price_cents = Column(Integer, nullable=False)
    description = Column(Text, nullable=False, default="")
    author = Column(String, nullable=False, default="")
    asset_key = Column(String, nullable=False, default="")
    created_at = Column(BigInteger, nullable=False, default=now_ms, index=True)

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="check_price_non_negative"),
    )

    @property
    def price(self) -> str:
        return f"{self.price_cents / 100:.2f}"


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=new_id)
    # checkout session id issued by the payment processor
    session_id = Column(String, nullable=False, unique=True, index=True)
    customer_email = Column(String, nullable=False, default="")
    status = Column(String, nullable=False, default=ORDER_PENDING, index=True)
    # JSON copy of the purchased line items
    metadata_json = Column("metadata", Text, nullable=False, default="[]")
    created_at = Column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid')", name="check_order_status"),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, session_id={self.session_id}, status='{self.status}')>"


class ProcessedEvent(Base):
    """Webhook events already applied, keyed by the processor's event id."""

    __tablename__ = "processed_events"

    event_id = Column(String, primary_key=True)
    event_type = Column(String, nullable=False)
    processed_at = Column(BigInteger, nullable=False, default=now_ms)
