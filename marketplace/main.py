import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import (
    Claims,
    create_access_token,
    dummy_verify,
    hash_password,
    require_role,
    verify_password,
    verify_token,
)
from .config import Settings
from .db import Database
from .errors import BadRequest, Conflict, MarketplaceError, NotFound, Unauthorized
from .payments import CheckoutService, StripeGateway
from .storage import S3UploadBroker

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

router = APIRouter()


# -------------------- Dependencies --------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# Dependency to get DB session per request

def get_db(request: Request):
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_payment_gateway(request: Request) -> StripeGateway:
    return request.app.state.payment_gateway


def get_upload_broker(request: Request) -> S3UploadBroker:
    return request.app.state.upload_broker


def get_current_claims(authorization: Optional[str] = Header(default=None), settings: Settings = Depends(get_settings)) -> Claims:
    return verify_token(authorization, settings.JWT_SECRET)


def require_admin(claims: Claims = Depends(get_current_claims)) -> Claims:
    return require_role(claims, ADMIN_ROLE)


def _issue_token(user, settings: Settings) -> str:
    return create_access_token(user.id, user.role, settings.JWT_SECRET, expires_in=settings.JWT_EXPIRES_SECONDS)


# -------------------- Routes --------------------

@router.get("/")
async def root():
    return {"ok": True, "message": "Marketplace API"}


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/api/signup", response_model=schemas.AuthResponse)
def signup(payload: schemas.SignupRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    if crud.get_user_by_email(db, payload.email):
        raise Conflict("email already registered")
    try:
        user = crud.create_user(db, payload.name or "", payload.email, hash_password(payload.password), settings.SIGNUP_ROLE)
    except ValueError as e:
        # lost a race with a concurrent signup for the same email
        raise Conflict(str(e))
    logger.info("user %s signed up", user.id)
    return {"token": _issue_token(user, settings), "user": user}


@router.post("/api/login", response_model=schemas.AuthResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = crud.get_user_by_email(db, payload.email)
    if not user:
        # same cost and same error as a wrong password
        dummy_verify()
        logger.info("login failed: unknown email")
        raise Unauthorized("invalid credentials")
    if not verify_password(payload.password, user.password_hash):
        logger.info("login failed for user %s", user.id)
        raise Unauthorized("invalid credentials")
    return {"token": _issue_token(user, settings), "user": user}


@router.get("/api/products", response_model=List[schemas.ProductRead])
async def get_products(db: Session = Depends(get_db)):
    return crud.list_products(db)


@router.post("/api/products", response_model=schemas.ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(product: schemas.ProductCreate, db: Session = Depends(get_db), claims: Claims = Depends(require_admin)):
    try:
        created = crud.create_product(db, product)
    except ValueError as e:
        raise BadRequest(str(e))
    logger.info("product %s created by %s", created.id, claims.sub)
    return created


@router.put("/api/products/{product_id}", response_model=schemas.OkResponse)
async def update_product(product_id: str, changes: schemas.ProductUpdate, db: Session = Depends(get_db), claims: Claims = Depends(require_admin)):
    try:
        updated = crud.update_product(db, product_id, changes)
    except ValueError as e:
        raise BadRequest(str(e))
    if not updated:
        raise NotFound("product not found")
    return {"ok": True}


@router.delete("/api/products/{product_id}", response_model=schemas.OkResponse)
async def delete_product(product_id: str, db: Session = Depends(get_db), claims: Claims = Depends(require_admin)):
    if crud.delete_product(db, product_id):
        logger.info("product %s deleted by %s", product_id, claims.sub)
    return {"ok": True}


@router.post("/api/uploads/presign", response_model=schemas.PresignResponse)
def presign_upload(payload: schemas.PresignRequest, broker: S3UploadBroker = Depends(get_upload_broker), claims: Claims = Depends(require_admin)):
    upload = broker.presign_upload(payload.filename, payload.content_type)
    return {"uploadUrl": upload.upload_url, "key": upload.key, "publicUrl": upload.public_url}


@router.post("/api/create-checkout-session", response_model=schemas.CheckoutResponse)
def create_checkout_session(
    payload: schemas.CheckoutRequest,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    url = CheckoutService(db, gateway, settings.CURRENCY).create_checkout_session(payload)
    return {"url": url}


@router.post("/api/webhooks/stripe", response_model=schemas.WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    # the signature covers the exact bytes, so read the raw body
    payload = await request.body()
    # verification and the DB write are blocking
    await run_in_threadpool(CheckoutService(db, gateway).handle_completion_event, payload, stripe_signature)
    return {"received": True}


# -------------------- Error handlers --------------------

async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # missing/invalid input is a plain 400 for this API
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": jsonable_encoder(exc.errors())})


# -------------------- App factory --------------------

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    database = Database(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("starting %s", settings.SERVICE_NAME)
        database.create_all()
        yield
        logger.info("shutting down %s", settings.SERVICE_NAME)
        database.dispose()

    app = FastAPI(title="Marketplace API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.payment_gateway = StripeGateway(settings.STRIPE_SECRET, settings.STRIPE_WEBHOOK_SECRET)
    app.state.upload_broker = S3UploadBroker(
        bucket=settings.S3_BUCKET,
        region=settings.AWS_REGION,
        expires_in=settings.PRESIGN_EXPIRES_SECONDS,
    )

    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)
    return app


app = create_app()
