import hashlib
import hmac
import itertools
import json
import time
import uuid
from typing import Generator

import boto3
import pytest

from marketplace.auth import create_access_token
from marketplace.config import Settings
from marketplace.db import Database
from marketplace.main import create_app, get_db, get_payment_gateway, get_upload_broker
from marketplace.payments import CheckoutSession, StripeGateway
from marketplace.storage import S3UploadBroker

JWT_SECRET = "test-secret"
WEBHOOK_SECRET = "whsec_test_secret"


class FakeStripeGateway(StripeGateway):
    """Real webhook verification, canned checkout sessions."""

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET):
        super().__init__("sk_test_dummy", webhook_secret)
        self.created = []

    def create_session(self, line_items, success_url, cancel_url, customer_email=None):
        session_id = f"cs_test_{len(self.created) + 1}"
        self.created.append({
            "id": session_id,
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "customer_email": customer_email,
        })
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.com/c/pay/{session_id}")


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header (t=...,v1=HMAC-SHA256 of "t.payload")."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode() + payload
    sig = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def completed_event(session_id: str, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {"id": session_id, "object": "checkout.session"}},
    }).encode()


@pytest.fixture(scope="function")
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET=JWT_SECRET,
        STRIPE_SECRET="sk_test_dummy",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        S3_BUCKET="test-bucket",
        AWS_REGION="us-east-1",
        SIGNUP_ROLE="admin",
    )


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    database = Database("sqlite://")
    database.create_all()

    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
        database.dispose()


@pytest.fixture(scope="function")
def gateway() -> FakeStripeGateway:
    return FakeStripeGateway()


@pytest.fixture(scope="function")
def upload_broker() -> S3UploadBroker:
    # presigning is local, dummy credentials are enough
    s3 = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    # one second per call so keys never share a timestamp
    ticks = itertools.count(1_700_000_000)
    return S3UploadBroker(bucket="test-bucket", region="us-east-1", client=s3, clock=lambda: float(next(ticks)))


@pytest.fixture(scope="function")
def client(settings, db_session, gateway, upload_broker):
    app = create_app(settings)

    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_upload_broker] = lambda: upload_broker
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def admin_headers(client) -> dict:
    r = client.post("/api/signup", json={"name": "Admin", "email": "admin@example.com", "password": "adminpass"})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['token']}"}


@pytest.fixture(scope="function")
def customer_headers() -> dict:
    token = create_access_token(str(uuid.uuid4()), "customer", JWT_SECRET)
    return {"Authorization": f"Bearer {token}"}
