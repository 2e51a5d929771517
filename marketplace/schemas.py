from pydantic import BaseModel, Field, PositiveInt, field_validator
from pydantic.config import ConfigDict
from typing import List, Optional
from decimal import Decimal

# keeps price_cents well inside a 64-bit INTEGER
MAX_PRICE = Decimal("10000000")


class SignupRequest(BaseModel):
    name: Optional[str] = Field(default="", max_length=100)
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    def normalize_email(cls, v: str):
        v = v.strip().lower()
        if not v:
            raise ValueError("email must not be blank")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    def normalize_email(cls, v: str):
        return v.strip().lower()


class UserRead(BaseModel):
    id: str
    name: str
    email: str
    role: str
    created_at: int

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    token: str
    user: UserRead


class ProductCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    # Decimal keeps "19.99" exact; floats are converted through their repr
    price: Decimal = Field(..., ge=0, le=MAX_PRICE, allow_inf_nan=False)
    description: Optional[str] = None
    author: Optional[str] = None
    asset_key: Optional[str] = None

    @field_validator("title")
    def title_not_blank(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class ProductUpdate(BaseModel):
    """Partial update: only fields present and non-null are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price: Optional[Decimal] = Field(default=None, ge=0, le=MAX_PRICE, allow_inf_nan=False)
    description: Optional[str] = None
    author: Optional[str] = None
    asset_key: Optional[str] = None

    @field_validator("title")
    def title_not_blank(cls, v: Optional[str]):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class ProductRead(BaseModel):
    id: str
    title: str
    # two-decimal string rendered from price_cents
    price: str
    description: str
    author: str
    asset_key: str

    model_config = ConfigDict(from_attributes=True)


class OkResponse(BaseModel):
    ok: bool = True


class PresignRequest(BaseModel):
    filename: str = Field(..., min_length=1)
    content_type: str = Field(..., alias="contentType", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class PresignResponse(BaseModel):
    upload_url: str = Field(..., alias="uploadUrl")
    key: str
    public_url: str = Field(..., alias="publicUrl")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutItem(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: PositiveInt = 1


class CheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(..., min_length=1)
    success_url: str = Field(..., alias="successUrl", min_length=1)
    cancel_url: str = Field(..., alias="cancelUrl", min_length=1)
    customer_email: Optional[str] = Field(default=None, alias="customerEmail")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutResponse(BaseModel):
    url: str


class WebhookAck(BaseModel):
    received: bool = True
