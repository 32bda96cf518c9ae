import tomllib

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from models.auth import User
from models.common import CamelModel, get_session
from routes.deps import current_user, envelope
from services import auth as auth_service
from settings import PROJECT_PATH

router = APIRouter()


def get_version() -> str:
    """Read version from pyproject.toml"""
    with open(PROJECT_PATH / "pyproject.toml", "rb") as f:
        pyproject = tomllib.load(f)
    return pyproject["project"]["version"]


def _profile(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "verified": user.verified,
        "role": user.role,
        "created_at": user.created_at,
    }


@router.get("/")
async def index(request: Request):
    healthy = request.app.state.db.health_check()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "version": get_version(),
            "status": "ok" if healthy else "degraded",
            "database": healthy,
        },
    )


class SignupPayload(CamelModel):
    name: str
    email: str
    password: str


class LoginPayload(CamelModel):
    email: str
    password: str


class TokenPayload(CamelModel):
    token: str


class ForgotPasswordPayload(CamelModel):
    email: str


class ResetPasswordPayload(CamelModel):
    token: str
    new_password: str


class ProfileUpdate(CamelModel):
    name: str


@router.post("/auth/signup", status_code=201)
async def signup(payload: SignupPayload, session: Session = Depends(get_session)):
    user = auth_service.signup(
        session,
        name=payload.name,
        email_address=payload.email,
        password=payload.password,
    )
    return envelope(
        "Account created successfully. Please check your email to verify your account.",
        {"user": _profile(user)},
    )


@router.post("/auth/login")
async def login(payload: LoginPayload, session: Session = Depends(get_session)):
    user, token = auth_service.login(
        session, email_address=payload.email, password=payload.password
    )
    return envelope("Login successful", {"user": _profile(user), "token": token})


@router.post("/auth/verify-email")
async def verify_email(payload: TokenPayload, session: Session = Depends(get_session)):
    user = auth_service.verify_email(session, token=payload.token)
    return envelope("Email verified successfully", {"user": _profile(user)})


@router.post("/auth/forgot-password")
async def forgot_password(
    payload: ForgotPasswordPayload, session: Session = Depends(get_session)
):
    auth_service.request_password_reset(session, email_address=payload.email)
    return envelope(
        "If an account with that email exists, a password reset link has been sent."
    )


@router.post("/auth/reset-password")
async def reset_password(
    payload: ResetPasswordPayload, session: Session = Depends(get_session)
):
    auth_service.reset_password(
        session, token=payload.token, new_password=payload.new_password
    )
    return envelope("Password reset successfully")


@router.get("/auth/profile")
async def get_profile(user: User = Depends(current_user)):
    return envelope("Profile retrieved successfully", {"user": _profile(user)})


@router.put("/auth/profile")
async def update_profile(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(current_user),
):
    user = auth_service.update_profile(session, user=user, name=payload.name)
    return envelope("Profile updated successfully", {"user": _profile(user)})
