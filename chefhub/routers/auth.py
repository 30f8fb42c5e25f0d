from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from .. import schemas
from ..core.envelope import ok
from ..deps import get_bearer_token, get_current_user, get_db
from ..errors import Unauthenticated
from ..infra import sessions
from ..infra.ratelimit import limiter
from ..models import User
from ..services import auth as auth_service
from ..settings import settings

router = APIRouter()


def _user_out(user: User) -> dict:
    return schemas.UserOut.model_validate(user).model_dump(mode="json")


def _token_response(user: User, message: str) -> dict:
    issued = sessions.issue_token(user.id)
    return ok(data={"user": _user_out(user), **issued.to_dict()}, message=message)


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.auth_rate_limit)
def register(request: Request, payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    """Create an account without a password and issue a registration OTP."""
    user, _otp = auth_service.register_user(db, payload)
    return ok(
        data={"user_id": user.id},
        message="Registration successful. Please verify the OTP sent to your email.",
    )


@router.post("/send-reset-code")
@limiter.limit(settings.auth_rate_limit)
def send_reset_code(request: Request, payload: schemas.ResetCodeRequest, db: Session = Depends(get_db)):
    otp = auth_service.send_reset_code(db, payload.email)
    return ok(data={"user_id": otp.user_id}, message="Reset code sent")


@router.post("/verify-otp")
@limiter.limit(settings.auth_rate_limit)
def verify_otp(request: Request, payload: schemas.VerifyOtpRequest, db: Session = Depends(get_db)):
    auth_service.verify_otp(db, payload.user_id, payload.code)
    return ok(data={"user_id": payload.user_id}, message="OTP verified successfully")


@router.post("/set-password")
@limiter.limit(settings.auth_rate_limit)
def set_password(request: Request, payload: schemas.SetPasswordRequest, db: Session = Depends(get_db)):
    user = auth_service.set_password(db, payload.user_id, payload.password)
    return _token_response(user, "Password set successfully")


@router.post("/login")
@limiter.limit(settings.auth_rate_limit)
def login(request: Request, payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, payload.email, payload.password)
    return _token_response(user, "Login successful")


@router.post("/social-login")
@limiter.limit(settings.auth_rate_limit)
def social_login(
    request: Request,
    payload: schemas.SocialLoginRequest,
    db: Session = Depends(get_db),
    verifier: auth_service.SocialTokenVerifier = Depends(auth_service.get_social_verifier),
):
    user = auth_service.social_login(db, payload, verifier)
    return _token_response(user, "Login successful")


@router.get("/user")
def get_user(user: User = Depends(get_current_user)):
    return ok(data=_user_out(user))


@router.put("/user/profile")
def update_profile(
    payload: schemas.ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partial profile update; only fields present in the body change."""
    user = auth_service.update_profile(db, user, payload)
    return ok(data=_user_out(user), message="Profile updated successfully")


@router.post("/logout")
def logout(token: str = Depends(get_bearer_token)):
    if not sessions.revoke_token(token):
        raise Unauthenticated()
    return ok(message="Successfully logged out")


@router.post("/refresh")
def refresh(token: str = Depends(get_bearer_token)):
    issued = sessions.refresh_token(token)
    if issued is None:
        raise Unauthenticated()
    return ok(data=issued.to_dict())


@router.post("/register-device")
def register_device(
    payload: schemas.DeviceRegisterRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    device = auth_service.register_device(db, user, payload)
    return ok(
        data={"id": device.id, "device_platform": device.platform, "device_model": device.model},
        message="Device registered successfully",
    )
