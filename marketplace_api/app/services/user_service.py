"""
Service layer for user accounts and authentication.

``UserService`` covers the account lifecycle: signup with email and
phone verification, login, the forgot/reset password flow and changing
the password of a logged-in user.  Verification links and reset links
are random tokens whose SHA-256 digest is stored on the user together
with an expiry; phone codes are handled the same way.
"""

import logging
import smtplib
from datetime import timedelta
from typing import Any, Dict, Optional

import httpx
from pymongo import ReturnDocument

from ..core.config import settings
from ..core.db import USERS, get_database, new_document, utcnow
from ..core.errors import AppError
from ..core.security import (
    create_access_token,
    generate_phone_code,
    generate_token,
    hash_password,
    hash_token,
    verify_password,
)
from ..schemas.user import SignupRequest
from .email_service import EmailService
from .sms_service import SmsService

logger = logging.getLogger(__name__)

EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PHONE_CODE_TTL = timedelta(minutes=5)
PASSWORD_RESET_TTL = timedelta(minutes=10)


class UserService:

    @classmethod
    def issue_token(cls, user: Dict[str, Any]) -> str:
        return create_access_token({"sub": str(user["_id"])})

    @classmethod
    async def _send_verification_email(cls, user: Dict[str, Any], token: str) -> None:
        url = f"{settings.public_base_url}/api/v1/users/verify-email/{token}"
        text = (
            f"Hello {user['name']},\n\n"
            f"Please confirm your email address by opening the link below:\n{url}\n\n"
            "The link is valid for 24 hours."
        )
        try:
            await EmailService.send(user["email"], "Verify your email address", text)
        except (smtplib.SMTPException, OSError):
            logger.exception("Could not send verification email to %s", user["email"])

    @classmethod
    async def _send_phone_code(cls, phone: str, code: str) -> None:
        try:
            await SmsService.send(phone, f"Your verification code is {code}. It expires in 5 minutes.")
        except httpx.HTTPError:
            logger.exception("Could not send verification SMS to %s", phone)

    @classmethod
    async def signup(cls, data: SignupRequest) -> Dict[str, Any]:
        """Create an account and send the email and phone verifications.

        Delivery problems are logged but do not fail the signup; the
        user can request a new phone code later.
        """
        users = get_database()[USERS]
        if await users.find_one({"email": data.email}):
            raise AppError("An account with this email already exists.", 400)
        if await users.find_one({"phone": data.phone}):
            raise AppError("An account with this phone number already exists.", 400)

        email_token = generate_token()
        phone_code = generate_phone_code()
        now = utcnow()
        user = new_document(
            {
                "name": data.name,
                "email": data.email,
                "phone": data.phone,
                "password": hash_password(data.password),
                "role": data.role.value,
                "profileImage": str(data.profile_image) if data.profile_image else None,
                "isEmailVerified": False,
                "isPhoneVerified": False,
                "emailVerificationToken": hash_token(email_token),
                "emailVerificationExpires": now + EMAIL_VERIFICATION_TTL,
                "phoneVerificationCode": hash_token(phone_code),
                "phoneVerificationExpires": now + PHONE_CODE_TTL,
                "passwordChangedAt": None,
            }
        )
        result = await users.insert_one(user)
        user["_id"] = result.inserted_id
        logger.info("User %s signed up as %s", user["_id"], user["role"])

        await cls._send_verification_email(user, email_token)
        await cls._send_phone_code(user["phone"], phone_code)
        return user

    @classmethod
    async def login(cls, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        if not email or not password:
            raise AppError("Please provide email and password!", 400)
        user = await get_database()[USERS].find_one({"email": email.strip().lower()})
        if not user or not verify_password(password, user.get("password")):
            raise AppError("Incorrect email or password", 401)
        if not user.get("isEmailVerified"):
            raise AppError("Please verify your email address before logging in.", 400)
        logger.info("User %s logged in", user["_id"])
        return user

    @classmethod
    async def verify_email(cls, token: str) -> Dict[str, Any]:
        user = await get_database()[USERS].find_one_and_update(
            {
                "emailVerificationToken": hash_token(token),
                "emailVerificationExpires": {"$gt": utcnow()},
            },
            {
                "$set": {"isEmailVerified": True, "updatedAt": utcnow()},
                "$unset": {"emailVerificationToken": "", "emailVerificationExpires": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not user:
            raise AppError("Verification link is invalid or has expired.", 400)
        logger.info("User %s verified their email", user["_id"])
        return user

    @classmethod
    async def verify_phone(cls, phone: str, code: str) -> Dict[str, Any]:
        user = await get_database()[USERS].find_one_and_update(
            {
                "phone": phone,
                "phoneVerificationCode": hash_token(code),
                "phoneVerificationExpires": {"$gt": utcnow()},
            },
            {
                "$set": {"isPhoneVerified": True, "updatedAt": utcnow()},
                "$unset": {"phoneVerificationCode": "", "phoneVerificationExpires": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not user:
            raise AppError("Verification code is invalid or has expired.", 400)
        logger.info("User %s verified their phone", user["_id"])
        return user

    @classmethod
    async def resend_phone_code(cls, user: Dict[str, Any]) -> None:
        if user.get("isPhoneVerified"):
            raise AppError("Phone number is already verified.", 400)
        code = generate_phone_code()
        await get_database()[USERS].update_one(
            {"_id": user["_id"]},
            {
                "$set": {
                    "phoneVerificationCode": hash_token(code),
                    "phoneVerificationExpires": utcnow() + PHONE_CODE_TTL,
                    "updatedAt": utcnow(),
                }
            },
        )
        await cls._send_phone_code(user["phone"], code)

    @classmethod
    async def forgot_password(cls, email: str) -> None:
        """Store a reset token and mail the reset link.

        If the email cannot be sent the token is discarded again and a
        500 error is raised so the user knows to retry.
        """
        users = get_database()[USERS]
        user = await users.find_one({"email": email})
        if not user:
            raise AppError("There is no user with that email address.", 404)

        token = generate_token()
        await users.update_one(
            {"_id": user["_id"]},
            {
                "$set": {
                    "passwordResetToken": hash_token(token),
                    "passwordResetExpires": utcnow() + PASSWORD_RESET_TTL,
                }
            },
        )
        url = f"{settings.public_base_url}/api/v1/users/resetPassword/{token}"
        text = (
            "Forgot your password? Submit a PATCH request with your new password "
            f"and passwordConfirm to:\n{url}\n\n"
            "The link is valid for 10 minutes. If you didn't forget your password, "
            "please ignore this email."
        )
        try:
            await EmailService.send(user["email"], "Your password reset token", text)
        except (smtplib.SMTPException, OSError):
            logger.exception("Could not send password reset email to %s", user["email"])
            await users.update_one(
                {"_id": user["_id"]},
                {"$unset": {"passwordResetToken": "", "passwordResetExpires": ""}},
            )
            raise AppError("There was an error sending the email. Try again later!", 500)

    @classmethod
    async def reset_password(cls, token: str, password: str) -> Dict[str, Any]:
        now = utcnow()
        user = await get_database()[USERS].find_one_and_update(
            {"passwordResetToken": hash_token(token), "passwordResetExpires": {"$gt": now}},
            {
                "$set": {
                    "password": hash_password(password),
                    # Back-dated so a token issued right after the change stays valid.
                    "passwordChangedAt": now - timedelta(seconds=1),
                    "updatedAt": now,
                },
                "$unset": {"passwordResetToken": "", "passwordResetExpires": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not user:
            raise AppError("Token is invalid or has expired", 400)
        logger.info("User %s reset their password", user["_id"])
        return user

    @classmethod
    async def update_password(cls, user: Dict[str, Any], current: str, new: str) -> Dict[str, Any]:
        if not verify_password(current, user.get("password")):
            raise AppError("Your current password is wrong.", 401)
        now = utcnow()
        updated = await get_database()[USERS].find_one_and_update(
            {"_id": user["_id"]},
            {
                "$set": {
                    "password": hash_password(new),
                    "passwordChangedAt": now - timedelta(seconds=1),
                    "updatedAt": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        logger.info("User %s changed their password", user["_id"])
        return updated
