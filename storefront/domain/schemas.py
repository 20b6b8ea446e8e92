# storefront/domain/schemas.py
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

PaymentMethod = Literal["credit_card", "debit_card", "pix", "boleto"]


# auth

class RegisterIn(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    first_name: str
    last_name: Optional[str] = None
    phone: Optional[str] = None
    session_id: Optional[str] = None

    @field_validator("first_name")
    @classmethod
    def first_name_min_length(cls, v: str) -> str:
        if len(v.strip()) < 2:
            raise ValueError("first_name must have at least 2 characters")
        return v.strip()


class LoginIn(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class ProfileUpdateIn(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("first_name")
    @classmethod
    def first_name_min_length(cls, v):
        if v is not None and len(v.strip()) < 2:
            raise ValueError("first_name must have at least 2 characters")
        return v

    @field_validator("phone")
    @classmethod
    def phone_min_length(cls, v):
        if v and 0 < len(v.strip()) < 8:
            raise ValueError("phone must have at least 8 characters")
        return v


class ChangePasswordIn(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)

    @model_validator(mode="after")
    def passwords_differ(self):
        if self.current_password == self.new_password:
            raise ValueError("new password must be different from the current one")
        return self


class PasswordIn(BaseModel):
    password: str = Field(..., min_length=1)


class TokenIn(BaseModel):
    token: str = Field(..., min_length=1)


class ForgotPasswordIn(BaseModel):
    email: str = Field(..., min_length=1)


class ResetPasswordIn(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)


# cart

class CartItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, gt=0)


class CartQuantityIn(BaseModel):
    """quantity <= 0 removes the line."""

    quantity: int


# checkout

class AddressIn(BaseModel):
    street: str = Field(..., min_length=1)
    number: str = Field(..., min_length=1)
    complement: str = ""
    neighborhood: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = "Brasil"


class CheckoutValidateIn(BaseModel):
    customer_name: str = Field(..., min_length=2, max_length=100)
    customer_email: str = Field(..., pattern=EMAIL_PATTERN)
    customer_phone: str = Field(..., min_length=10, max_length=20)

    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None
    same_as_shipping: bool = True

    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = Field(None, max_length=500)

    shipping: Decimal = Field(Decimal("0"), ge=0)
    tax: Decimal = Field(Decimal("0"), ge=0)

    @model_validator(mode="after")
    def fill_billing_address(self):
        if self.same_as_shipping or self.billing_address is None:
            self.billing_address = self.shipping_address
        return self


class CheckoutIn(CheckoutValidateIn):
    payment_method: PaymentMethod


class CancelOrderIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# payments

class CardData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_number: Optional[str] = Field(None, alias="cardNumber")
    expiry_date: Optional[str] = Field(None, alias="expiryDate")
    cvv: Optional[str] = None
    card_name: Optional[str] = Field(None, alias="cardName")
    installments: Optional[int] = Field(None, ge=1, le=12)


class PaymentIn(BaseModel):
    order_id: int = Field(..., gt=0)
    payment_method: PaymentMethod
    payment_data: Optional[CardData] = None

    @model_validator(mode="after")
    def card_fields_required(self):
        if self.payment_method in ("credit_card", "debit_card"):
            data = self.payment_data
            missing = [
                name
                for name in ("card_number", "expiry_date", "cvv", "card_name")
                if data is None or not getattr(data, name)
            ]
            if missing:
                raise ValueError(f"card payment requires: {', '.join(missing)}")
            if self.payment_method == "credit_card" and data.installments is None:
                data.installments = 1
        return self


# admin

class OrderStatusIn(BaseModel):
    status: str
    notes: Optional[str] = None


class PaymentStatusIn(BaseModel):
    payment_status: str
    payment_id: Optional[str] = None


class ShipOrderIn(BaseModel):
    tracking_number: Optional[str] = None
    shipping_company: Optional[str] = None
    notes: Optional[str] = None


class ProductIn(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    price: Decimal = Field(..., ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    category: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    image: str = Field(..., pattern=r"^https?://")
    stock: int = Field(0, ge=0)
    is_featured: bool = False
    is_active: bool = True


class ProductUpdateIn(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    category: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None


class StockIn(BaseModel):
    stock: int = Field(..., ge=0)


class RoleIn(BaseModel):
    role: str
