"""SQLAlchemy ORM models for ChefHub.

Tables:
- users: customers and chefs (chef-only columns are nullable)
- otps, devices: identity support rows
- cuisines, dishes: chef catalog
- orders, order_history: order lifecycle and its append-only audit trail
- chat: per-order messages between the two participants
- reviews, favourites, notifications, withdraws, user_addresses
"""

from __future__ import annotations

from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Text,
    Integer,
    Boolean,
    Float,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func, false
from sqlalchemy.types import JSON

from .db import Base


USER_TYPES = ("chef", "customer")
CHEF_STATUSES = ("available", "busy", "unavailable")
ORDER_TYPES = ("dinein", "delivery", "takeaway")
DISH_TYPES = ("dish", "offer")
LIKE_TYPES = ("users", "dishes")
NOTIFICATION_TYPES = ("order", "news")
WITHDRAW_STATUSES = ("pending", "approved", "rejected", "paid")


class User(Base):
    """Marketplace principal. `user_type` only changes through chef onboarding."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Profile
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    dob: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    current_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Chef profile
    about: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_detail: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rest_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    availability_pickup: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    availability_delivery: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    availability_dinein: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    bank_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    devices: Mapped[list["Device"]] = relationship(
        "Device", back_populates="user", cascade="all, delete-orphan"
    )
    dishes: Mapped[list["Dish"]] = relationship(
        "Dish", back_populates="chef", cascade="all, delete-orphan"
    )

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_chef(self) -> bool:
        return self.user_type == "chef"


class Otp(Base):
    """One-time code. Several rows may exist per user; the newest match wins."""
    __tablename__ = "otps"
    __table_args__ = (
        Index("ix_otps_user_id_code", "user_id", "code"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(12), nullable=False)
    purpose: Mapped[str] = mapped_column(String(20), nullable=False, default="register")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Device(Base):
    """Push registration. (user_id, registration_id) is unique; re-registering updates in place."""
    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("user_id", "registration_id", name="uq_devices_user_registration"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    registration_id: Mapped[str] = mapped_column(String(512), nullable=False)
    model: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["User"] = relationship("User", back_populates="devices")


class Cuisine(Base):
    __tablename__ = "cuisines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class Dish(Base):
    """Catalog entry owned by one chef. `dish_type='offer'` rows use the offer columns."""
    __tablename__ = "dishes"
    __table_args__ = (
        Index("ix_dishes_user_id", "user_id"),
        Index("ix_dishes_cuisine_id", "cuisine_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    cuisine_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("cuisines.id"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    about: Mapped[str] = mapped_column(String(255), nullable=False)
    keywords: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    sizes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    delivery_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    dinein_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    dinein_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dish_type: Mapped[str] = mapped_column(String(10), nullable=False, default="dish")

    # Offer-only
    offer_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    valid_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    chef: Mapped["User"] = relationship("User", back_populates="dishes")
    cuisine: Mapped["Cuisine"] = relationship("Cuisine")


class Order(Base):
    """An order between a customer (`user_id`) and a chef (`to_id`)."""
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_user_id", "user_id"),
        Index("ix_orders_to_id_status", "to_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_no: Mapped[int] = mapped_column(Integer, nullable=False)
    order_type: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    to_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    delivery_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    service_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    cart_items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    address: Mapped[str] = mapped_column(String(255), nullable=False)
    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    chef_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    chef_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payment_method: Mapped[str] = mapped_column(String(40), nullable=False)
    txn_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    customer: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    chef: Mapped["User"] = relationship("User", foreign_keys=[to_id])
    history: Mapped[list["OrderHistory"]] = relationship(
        "OrderHistory", back_populates="order", order_by="OrderHistory.id"
    )

    @property
    def total_amount(self) -> float:
        return round((self.amount or 0) + (self.delivery_fee or 0) + (self.service_fee or 0), 2)

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.user_id, self.to_id)


class OrderHistory(Base):
    """Append-only audit row per status change. Never updated or deleted."""
    __tablename__ = "order_history"
    __table_args__ = (
        Index("ix_order_history_order_id", "order_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    order: Mapped["Order"] = relationship("Order", back_populates="history")


class Chat(Base):
    """Message between the two participants of an order. Only `seen` changes after insert."""
    __tablename__ = "chat"
    __table_args__ = (
        Index("ix_chat_order_id", "order_id"),
        Index("ix_chat_to_id_seen", "to_id", "seen"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    to_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    msg: Mapped[str] = mapped_column(String(255), nullable=False)
    msg_type: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    sender: Mapped["User"] = relationship("User", foreign_keys=[user_id])


class Review(Base):
    """Customer review of a completed order. One per (order_id, user_id), checked in the service."""
    __tablename__ = "reviews"
    __table_args__ = (
        Index("ix_reviews_rest_id", "rest_id"),
        Index("ix_reviews_dish_id", "dish_id"),
        Index("ix_reviews_order_user", "order_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id"), nullable=False)
    rest_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    dish_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dishes.id", ondelete="SET NULL"), nullable=True
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    detail: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    gallery: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    dish: Mapped[Optional["Dish"]] = relationship("Dish")


class Favourite(Base):
    """A like. Row existence is the state; unliking deletes the row."""
    __tablename__ = "favourites"
    __table_args__ = (
        UniqueConstraint("user_id", "to_id", "like_type", name="uq_favourites_user_target"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    to_id: Mapped[int] = mapped_column(Integer, nullable=False)
    like_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Notification(Base):
    """In-app notification. Customer audience uses `user_id`, chef audience uses `rest_id`."""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_id", "user_id"),
        Index("ix_notifications_rest_id", "rest_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    rest_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    order_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("orders.id"), nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="order")
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    order: Mapped[Optional["Order"]] = relationship("Order")


class Withdraw(Base):
    __tablename__ = "withdraws"
    __table_args__ = (
        Index("ix_withdraws_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UserAddress(Base):
    __tablename__ = "user_addresses"
    __table_args__ = (
        Index("ix_user_addresses_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    address: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    address_type: Mapped[str] = mapped_column(String(50), nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    apartment: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
