"""Pydantic schemas for ChefHub API.

Request/response models for:
- Auth, profile and devices
- Chef onboarding, catalog and wallet
- Orders, reviews, chat
- Notifications, addresses, payments
"""

from datetime import datetime, date
from typing import Optional, Literal

from pydantic import AliasChoices, BaseModel, Field, model_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

UserType = Literal["chef", "customer"]
OrderStatus = Literal["pending", "accepted", "rejected", "processing", "completed", "cancelled"]
TargetStatus = Literal["accepted", "rejected", "processing", "completed", "cancelled"]


# --- Auth ---

class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    user_type: UserType


class ResetCodeRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)


class VerifyOtpRequest(BaseModel):
    user_id: int
    code: str = Field(..., min_length=1, max_length=12)


class SetPasswordRequest(BaseModel):
    user_id: int
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class SocialLoginRequest(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    social_token: str = Field(..., min_length=1)
    user_type: UserType


class DeviceRegisterRequest(BaseModel):
    device_platform: Literal["ios", "android"]
    device_rid: str = Field(..., min_length=1, max_length=512)
    device_model: str = Field(..., min_length=1, max_length=120)


class AvailabilitySlot(BaseModel):
    day: Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
    start: str = Field(..., pattern=TIME_PATTERN)
    end: str = Field(..., pattern=TIME_PATTERN)


class UserOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    user_type: str
    phone: Optional[str] = None
    image: Optional[str] = None
    dob: Optional[date] = None
    address: Optional[str] = None
    city: Optional[str] = None
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    about: Optional[str] = None
    address_detail: Optional[str] = None
    note: Optional[str] = None
    rest_status: Optional[str] = None
    availability_pickup: Optional[list[AvailabilitySlot]] = None
    availability_delivery: Optional[list[AvailabilitySlot]] = None
    availability_dinein: Optional[list[AvailabilitySlot]] = None
    balance: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Partial update. Only fields present in the request body are applied."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=40)
    image: Optional[str] = Field(None, max_length=500)
    dob: Optional[date] = None
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = Field(None, min_length=6, max_length=128)
    old_password: Optional[str] = None

    # Chef-only
    about: Optional[str] = Field(None, max_length=255)
    address_detail: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = Field(None, max_length=255)
    current_lat: Optional[float] = Field(None, ge=-90, le=90)
    current_lng: Optional[float] = Field(None, ge=-180, le=180)
    availability_pickup: Optional[list[AvailabilitySlot]] = None
    availability_delivery: Optional[list[AvailabilitySlot]] = None
    availability_dinein: Optional[list[AvailabilitySlot]] = None

    @model_validator(mode="after")
    def _names_not_null(self):
        for name in ("first_name", "last_name"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


CHEF_PROFILE_FIELDS = (
    "about", "address_detail", "note", "current_lat", "current_lng",
    "availability_pickup", "availability_delivery", "availability_dinein",
)


# --- Chef profile ---

class ChefOnboardRequest(BaseModel):
    about: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=255)
    address_detail: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = Field(None, max_length=255)
    current_lat: float = Field(..., ge=-90, le=90)
    current_lng: float = Field(..., ge=-180, le=180)
    availability_pickup: list[AvailabilitySlot]
    availability_delivery: Optional[list[AvailabilitySlot]] = None
    availability_dinein: Optional[list[AvailabilitySlot]] = None


class ChefStatusUpdate(BaseModel):
    status: Literal["available", "busy", "unavailable"]


class BankDetailsUpdate(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    details: dict[str, str]


class WithdrawRequest(BaseModel):
    amount: float = Field(..., gt=0)


class WithdrawOut(BaseModel):
    id: int
    amount: float
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Catalog ---

class CuisineOut(BaseModel):
    id: int
    name: str
    image: Optional[str] = None

    class Config:
        from_attributes = True


class DishSize(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    price: float = Field(..., ge=0)


class DishCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    about: str = Field(..., min_length=1, max_length=255)
    keywords: list[str]
    category: str = Field(..., min_length=1, max_length=100)
    cuisine_id: int
    price: float = Field(..., ge=0)
    images: list[str]
    delivery_price: Optional[float] = Field(None, ge=0)
    dinein_price: Optional[float] = Field(None, ge=0)
    dinein_limit: Optional[int] = Field(None, ge=0)
    sizes: list[DishSize] = []
    dish_type: Literal["dish", "offer"] = "dish"
    offer_description: Optional[str] = None
    original_price: Optional[float] = Field(None, ge=0)
    valid_until: Optional[date] = None


class DishUpdate(BaseModel):
    """Partial update. Absent fields keep their value; explicit null clears nullable fields only."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    about: Optional[str] = Field(None, min_length=1, max_length=255)
    keywords: Optional[list[str]] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    cuisine_id: Optional[int] = None
    price: Optional[float] = Field(None, ge=0)
    images: Optional[list[str]] = None
    delivery_price: Optional[float] = Field(None, ge=0)
    dinein_price: Optional[float] = Field(None, ge=0)
    dinein_limit: Optional[int] = Field(None, ge=0)
    sizes: Optional[list[DishSize]] = None
    dish_type: Optional[Literal["dish", "offer"]] = None
    offer_description: Optional[str] = None
    original_price: Optional[float] = Field(None, ge=0)
    valid_until: Optional[date] = None

    @model_validator(mode="after")
    def _required_columns_not_null(self):
        for name in DISH_REQUIRED_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


DISH_REQUIRED_FIELDS = (
    "name", "about", "keywords", "category", "cuisine_id", "price", "images", "sizes", "dish_type",
)


class DishOut(BaseModel):
    id: int
    user_id: int
    name: str
    about: str
    keywords: list[str]
    category: str
    cuisine_id: int
    cuisine: Optional[CuisineOut] = None
    price: float
    images: list[str]
    sizes: list[DishSize]
    delivery_price: Optional[float] = None
    dinein_price: Optional[float] = None
    dinein_limit: Optional[int] = None
    dish_type: str
    offer_description: Optional[str] = None
    original_price: Optional[float] = None
    valid_until: Optional[date] = None
    created_at: Optional[datetime] = None
    rating: float = 0
    reviews_count: int = 0

    class Config:
        from_attributes = True


# --- Orders ---

class CartItem(BaseModel):
    dish_id: int = Field(..., validation_alias=AliasChoices("dish_id", "id"))
    name: Optional[str] = None
    qty: int = Field(..., ge=1, validation_alias=AliasChoices("qty", "quantity"))
    price: float = Field(..., ge=0)


class OrderCreate(BaseModel):
    to_id: int
    order_type: Literal["dinein", "delivery", "takeaway"]
    amount: float = Field(..., ge=0)
    delivery_fee: float = Field(..., ge=0)
    service_fee: float = Field(..., ge=0)
    cart_items: list[CartItem] = Field(..., min_length=1, validation_alias=AliasChoices("cart_items", "cartItems"))
    address: str = Field(..., min_length=1, max_length=255)
    payment_method: str = Field(..., min_length=1, max_length=40)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    txn_id: Optional[str] = Field(None, max_length=255)


class OrderStatusUpdate(BaseModel):
    status: TargetStatus


class PartySummary(BaseModel):
    id: int
    name: str
    image: Optional[str] = None
    rating: Optional[float] = None
    reviews_count: Optional[int] = None

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    order_no: int
    order_type: str
    user_id: int
    to_id: int
    amount: float
    delivery_fee: float
    service_fee: float
    total_amount: float
    cart_items: list[CartItem]
    address: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: str
    payment_method: str
    txn_id: Optional[str] = None
    created_at: Optional[datetime] = None
    chef: Optional[PartySummary] = None
    customer: Optional[PartySummary] = None

    class Config:
        from_attributes = True


class OrderHistoryOut(BaseModel):
    status: str
    actor_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    detail: Optional[str] = Field(None, max_length=255)
    gallery: list[str] = []
    dish_id: Optional[int] = None


class ReviewOut(BaseModel):
    id: int
    order_id: int
    rest_id: int
    dish_id: Optional[int] = None
    rating: int
    detail: str
    gallery: list[str]
    created_at: Optional[datetime] = None
    user: Optional[PartySummary] = None

    class Config:
        from_attributes = True


class OrderDetailOut(OrderOut):
    distance: Optional[float] = None
    history: list[OrderHistoryOut] = []
    review: Optional[ReviewOut] = None
    has_review: bool = False


class PaymentIntentRequest(BaseModel):
    amount: float = Field(..., ge=1)
    currency: str = Field(..., min_length=3, max_length=3)


# --- Chat ---

class ChatSend(BaseModel):
    msg: str = Field(..., min_length=1, max_length=255)
    msg_type: Literal[0, 1] = 0


class ChatSender(BaseModel):
    id: int
    name: str
    image: Optional[str] = None
    user_type: Optional[str] = None

    class Config:
        from_attributes = True


class ChatMessageOut(BaseModel):
    id: int
    order_id: int
    msg: str
    msg_type: int
    seen: bool
    created_at: datetime
    is_mine: bool
    sender: ChatSender


# --- Notifications ---

class NotificationOut(BaseModel):
    id: int
    order_id: Optional[int] = None
    title: str
    body: str
    type: str
    seen: bool
    created_at: datetime

    class Config:
        from_attributes = True


# --- Addresses ---

class AddressCreate(BaseModel):
    address: str = Field(..., min_length=1, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=150)
    address_type: str = Field(..., min_length=1, max_length=50)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    apartment: Optional[str] = Field(None, max_length=50)
    note: Optional[str] = Field(None, max_length=255)


class AddressUpdate(BaseModel):
    address: Optional[str] = Field(None, min_length=1, max_length=100)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=150)
    address_type: Optional[str] = Field(None, min_length=1, max_length=50)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    apartment: Optional[str] = Field(None, max_length=50)
    note: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def _required_columns_not_null(self):
        for name in ("address", "city", "address_type", "lat", "lng"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class AddressOut(AddressCreate):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
