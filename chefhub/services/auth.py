"""Identity: registration, OTP codes, passwords, social login and devices."""

import logging
import secrets
import string
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import requests
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from ..errors import Conflict, NotFound, Unauthenticated, UpstreamFailure, ValidationError
from ..models import CHEF_STATUSES, Device, Otp, User
from ..schemas import CHEF_PROFILE_FIELDS, DeviceRegisterRequest, ProfileUpdate, RegisterRequest, SocialLoginRequest
from ..settings import settings

logger = logging.getLogger("chefhub.auth")

DEFAULT_DOB = date(1989, 12, 2)
INVALID_OTP = "Invalid OTP code"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def generate_otp_code() -> str:
    if settings.otp_dev_code:
        return settings.otp_dev_code
    return "".join(secrets.choice(string.digits) for _ in range(settings.otp_length))


def issue_otp(db: Session, user: User, purpose: str) -> Otp:
    otp = Otp(user_id=user.id, code=generate_otp_code(), purpose=purpose, created_at=_now())
    db.add(otp)
    db.commit()
    db.refresh(otp)
    # Delivery (email/SMS) is not wired up; the code only lives in the database.
    logger.info(f"Issued {purpose} OTP for user {user.id}")
    return otp


def _otp_cutoff() -> datetime:
    return _now() - timedelta(minutes=settings.otp_ttl_minutes)


def _require_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise ValidationError.field("user_id", "The selected user id is invalid.")
    return user


def register_user(db: Session, payload: RegisterRequest) -> tuple[User, Otp]:
    email = payload.email.strip().lower()
    if db.scalar(select(User.id).where(User.email == email)):
        raise ValidationError.field("email", "The email has already been taken.")

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        user_type=payload.user_type,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError.field("email", "The email has already been taken.")
    db.refresh(user)
    logger.info(f"Registered {user.user_type} user {user.id}")
    return user, issue_otp(db, user, "register")


def send_reset_code(db: Session, email: str) -> Otp:
    user = db.scalar(select(User).where(User.email == email.strip().lower()))
    if user is None:
        raise NotFound("No account found for this email")
    return issue_otp(db, user, "reset")


def verify_otp(db: Session, user_id: int, code: str) -> Otp:
    """Mark the newest matching, unexpired, not yet verified OTP as verified."""
    _require_user(db, user_id)
    otp = db.scalar(
        select(Otp)
        .where(
            Otp.user_id == user_id,
            Otp.code == code,
            Otp.verified_at.is_(None),
            Otp.consumed_at.is_(None),
            Otp.created_at >= _otp_cutoff(),
        )
        .order_by(Otp.id.desc())
        .limit(1)
    )
    if otp is None:
        raise Conflict(INVALID_OTP)

    result = db.execute(
        update(Otp)
        .where(Otp.id == otp.id, Otp.verified_at.is_(None), Otp.consumed_at.is_(None))
        .values(verified_at=_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise Conflict(INVALID_OTP)
    db.commit()
    db.refresh(otp)
    return otp


def set_password(db: Session, user_id: int, password: str) -> User:
    """Consume a verified OTP and store the password. The OTP cannot be reused."""
    user = _require_user(db, user_id)
    otp = db.scalar(
        select(Otp)
        .where(
            Otp.user_id == user_id,
            Otp.verified_at.is_not(None),
            Otp.consumed_at.is_(None),
            Otp.created_at >= _otp_cutoff(),
        )
        .order_by(Otp.id.desc())
        .limit(1)
    )
    if otp is None:
        raise Conflict("OTP verification required")

    result = db.execute(
        update(Otp)
        .where(Otp.id == otp.id, Otp.consumed_at.is_(None))
        .values(consumed_at=_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise Conflict("OTP verification required")

    user.password_hash = hash_password(password)
    if user.dob is None:
        user.dob = DEFAULT_DOB
    db.commit()
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.scalar(select(User).where(User.email == email.strip().lower()))
    if user is None or not verify_password(user.password_hash, password):
        raise Unauthenticated("Invalid credentials")
    return user


class SocialTokenVerifier:
    """Checks a provider token before social login trusts the email it claims.

    mock: accepts any non-empty token (development only, logged loudly)
    google: calls Google's tokeninfo endpoint and requires the email to match
    """

    def __init__(self, mode: Optional[str] = None):
        self.mode = mode or settings.social_login_mode

    def verify(self, token: str, email: str) -> None:
        if self.mode == "google":
            self._verify_google(token, email)
            return
        logger.warning("Social token accepted without provider verification (SOCIAL_LOGIN_MODE=mock)")

    def _verify_google(self, token: str, email: str) -> None:
        try:
            resp = requests.get(settings.google_tokeninfo_url, params={"id_token": token}, timeout=10)
        except requests.RequestException as e:
            logger.error(f"Google tokeninfo request failed: {e}")
            raise UpstreamFailure("Could not verify social token")

        if resp.status_code != 200:
            raise Unauthenticated("Invalid social token")
        claims = resp.json()
        if (claims.get("email") or "").lower() != email.strip().lower():
            raise Unauthenticated("Social token does not match email")
        if settings.google_client_id and claims.get("aud") != settings.google_client_id:
            raise Unauthenticated("Social token was issued for another client")


def get_social_verifier() -> SocialTokenVerifier:
    return SocialTokenVerifier()


def social_login(db: Session, payload: SocialLoginRequest, verifier: SocialTokenVerifier) -> User:
    """Find-or-create by email once the provider token checks out."""
    verifier.verify(payload.social_token, payload.email)
    email = payload.email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if user is not None:
        return user

    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        user_type=payload.user_type,
        # Social accounts never log in with a password; store an unguessable one.
        password_hash=hash_password(secrets.token_urlsafe(32)),
        dob=DEFAULT_DOB,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        user = db.scalar(select(User).where(User.email == email))
        if user is None:
            raise
        return user
    db.refresh(user)
    logger.info(f"Created {user.user_type} user {user.id} via social login")
    return user


def register_device(db: Session, user: User, payload: DeviceRegisterRequest) -> Device:
    """Upsert on (user_id, registration_id); repeating the call changes nothing but metadata."""
    device = db.scalar(
        select(Device).where(Device.user_id == user.id, Device.registration_id == payload.device_rid)
    )
    if device is None:
        device = Device(user_id=user.id, registration_id=payload.device_rid)
        db.add(device)
    device.platform = payload.device_platform
    device.model = payload.device_model
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration of the same token won; update that row instead
        db.rollback()
        device = db.scalar(
            select(Device).where(Device.user_id == user.id, Device.registration_id == payload.device_rid)
        )
        device.platform = payload.device_platform
        device.model = payload.device_model
        db.commit()
    db.refresh(device)
    return device


def update_profile(db: Session, user: User, payload: ProfileUpdate) -> User:
    changes = payload.model_dump(exclude_unset=True)

    password = changes.pop("password", None)
    old_password = changes.pop("old_password", None)
    if password is not None:
        if user.password_hash and not verify_password(user.password_hash, old_password or ""):
            raise ValidationError.field("old_password", "The current password is incorrect.")
        user.password_hash = hash_password(password)

    if not user.is_chef:
        chef_only = sorted(k for k in changes if k in CHEF_PROFILE_FIELDS)
        if chef_only:
            raise ValidationError(
                "Chef profile fields require a chef account",
                errors={k: ["Only chefs can update this field."] for k in chef_only},
            )

    for key, value in changes.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def onboard_chef(db: Session, user: User, changes: dict) -> User:
    """Fill in the chef profile and switch the account to a chef."""
    for key, value in changes.items():
        setattr(user, key, value)
    user.user_type = "chef"
    user.rest_status = CHEF_STATUSES[0]
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} onboarded as chef")
    return user
