from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from otpboard.auth import register_user
from otpboard.auth_flow import LoginFlow, LoginState
from otpboard.database import get_db
from otpboard.dependencies import get_mailer, get_throttle
from otpboard.email_utils import Mailer
from otpboard.redis_utils import LoginThrottle
from otpboard.schemas import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)

router = APIRouter(tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=RegisterResponse)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    user = register_user(db, data.username, data.email, data.password)
    return {"message": "user created", "id": user.internal_id}


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    throttle: LoginThrottle | None = Depends(get_throttle),
):
    flow = LoginFlow(db, mailer=mailer, throttle=throttle)
    pending = await flow.submit_credentials(data.username, data.password)
    return {"message": "Please verify the OTP", "pending_user_id": pending.user_id}


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(data: VerifyOtpRequest, db: Session = Depends(get_db)):
    flow = LoginFlow(db, state=LoginState.AWAITING_OTP)
    verified = await flow.submit_otp(data.otp)
    return {"message": "OTP verified", "authenticated": True, "user_id": verified.user_id}
