import asyncio
import logging
import re
import secrets
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel

from api.models import User
from api.services.directory import default_avatar
from lib.error_handler import ValidationError

logger = logging.getLogger(__name__)

STEPS = ('phone', 'verification', 'profile', 'complete')
PHONE_PATTERN = re.compile(r'^\+?[0-9][0-9\s\-()]{6,}$')

class AuthUser(BaseModel):
    id: str
    name: str
    phone: str
    avatar: Optional[str] = None
    is_verified: bool = False

class AuthState(BaseModel):
    user: Optional[AuthUser] = None
    is_loading: bool = False
    step: str = 'phone'
    phone_number: str = ''
    verification_code: str = ''

class AuthService:
    """Phone-number sign in: phone -> verification -> profile -> complete"""

    def __init__(self, directory=None, sms_client=None, demo_mode: bool = True):
        self.directory = directory
        self.sms = sms_client
        self.demo_mode = demo_mode
        self.state = AuthState()
        self._issued_code: Optional[str] = None

    def set_phone_number(self, phone: str) -> None:
        self.state.phone_number = (phone or '').strip()

    def set_verification_code(self, code: str) -> None:
        self.state.verification_code = (code or '').strip()

    def set_step(self, step: str) -> None:
        if step not in STEPS:
            raise ValidationError(f"Unknown auth step: {step}")
        self.state.step = step

    async def send_verification_code(self) -> None:
        phone = self.state.phone_number
        if not PHONE_PATTERN.match(phone):
            raise ValidationError("Invalid phone number", user_message="Please enter a valid phone number")

        self.state.is_loading = True
        try:
            self._issued_code = f"{secrets.randbelow(10 ** 6):06d}"
            if self.sms is not None:
                loop = asyncio.get_event_loop()
                await loop.run_in_executor(
                    None,
                    lambda: self.sms.send_verification_code(phone, self._issued_code)
                )
            else:
                logger.info(f"No SMS client configured, verification code for {phone} is {self._issued_code}")
            self.state.step = 'verification'
        finally:
            self.state.is_loading = False

    async def verify_code(self, code: Optional[str] = None) -> None:
        code = (code or self.state.verification_code or '').strip()
        self.state.is_loading = True
        try:
            if len(code) != 6 or not code.isdigit():
                raise ValidationError("Invalid verification code")
            # Demo mode accepts any six-digit code
            if not self.demo_mode and code != self._issued_code:
                raise ValidationError("Invalid verification code")
            self.state.verification_code = code
            self.state.step = 'profile'
        finally:
            self.state.is_loading = False

    async def complete_profile(self, name: str, avatar: Optional[str] = None) -> AuthUser:
        name = (name or '').strip()
        if len(name) < 2:
            raise ValidationError("Name must be at least 2 characters long")

        user = AuthUser(
            id=f"user-{uuid4().hex[:12]}",
            name=name,
            phone=self.state.phone_number,
            avatar=avatar or default_avatar(name),
            is_verified=True
        )
        self.state.user = user
        self.state.step = 'complete'
        self._issued_code = None

        if self.directory is not None:
            self.directory.set_current_user(User(
                id=user.id,
                name=user.name,
                phone=user.phone,
                avatar=user.avatar,
                is_online=True
            ))
        logger.info(f"Profile completed for {user.id}")
        return user

    def logout(self) -> None:
        self.state = AuthState()
        self._issued_code = None
        logger.info("Logged out")
