"""
User endpoints for API v1.

Signup, login and logout, email and phone verification and the
password reset flow.  Endpoints that log a user in (login, reset and
update password) answer with the JWT in the body and also set it as
the ``token`` cookie.
"""

from datetime import timedelta
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from marketplace_api.app.core.config import settings
from marketplace_api.app.core.security import TOKEN_COOKIE, get_current_user
from marketplace_api.app.schemas.common import success, to_public
from marketplace_api.app.schemas.user import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
    VerifyPhoneRequest,
)
from marketplace_api.app.services.user_service import UserService

router = APIRouter()


def _send_token(user: Dict[str, Any], status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Issue a JWT for ``user`` and return it in the body and as a cookie."""
    token = UserService.issue_token(user)
    body = success({"user": to_public(user)}, token=token)
    response = JSONResponse(status_code=status_code, content=jsonable_encoder(body))
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=int(timedelta(days=settings.token_cookie_expire_days).total_seconds()),
        httponly=True,
        secure=not settings.is_development,
        samesite="lax",
    )
    return response


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(data: SignupRequest) -> dict:
    """Register a new account.

    The account starts unverified; a verification link is emailed and
    a six digit code is texted to the phone number.
    """
    user = await UserService.signup(data)
    return success(
        {"user": to_public(user)},
        message="Account created. Please check your email to verify your address.",
    )


@router.post("/login")
async def login(data: LoginRequest) -> JSONResponse:
    user = await UserService.login(data.email, data.password)
    return _send_token(user)


@router.post("/logout")
async def logout() -> JSONResponse:
    response = JSONResponse(content=success(message="Logged out"))
    response.delete_cookie(TOKEN_COOKIE)
    return response


@router.get("/verify-email/{token}")
async def verify_email(token: str) -> dict:
    user = await UserService.verify_email(token)
    return success({"user": to_public(user)}, message="Email verified successfully")


@router.post("/verify-phone")
async def verify_phone(data: VerifyPhoneRequest) -> dict:
    user = await UserService.verify_phone(data.phone, data.code)
    return success({"user": to_public(user)}, message="Phone number verified successfully")


@router.post("/resend-phone-code")
async def resend_phone_code(current_user: dict = Depends(get_current_user)) -> dict:
    await UserService.resend_phone_code(current_user)
    return success(message="A new verification code has been sent")


@router.post("/forgotPassword")
async def forgot_password(data: ForgotPasswordRequest) -> dict:
    await UserService.forgot_password(data.email)
    return success(message="Token sent to email!")


@router.patch("/resetPassword/{token}")
async def reset_password(token: str, data: ResetPasswordRequest) -> JSONResponse:
    user = await UserService.reset_password(token, data.password)
    return _send_token(user)


@router.patch("/updateMyPassword")
async def update_my_password(
    data: UpdatePasswordRequest,
    current_user: dict = Depends(get_current_user),
) -> JSONResponse:
    user = await UserService.update_password(current_user, data.current_password, data.new_password)
    return _send_token(user)


@router.get("/me")
async def read_me(current_user: dict = Depends(get_current_user)) -> dict:
    """Return the profile of the authenticated user."""
    return success({"user": to_public(current_user)})
