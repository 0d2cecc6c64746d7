"""
AlumniTrack Authentication Module
=================================

  alumnitrack login         Email/password login
  alumnitrack register      Create an account (an OTP is emailed)
  alumnitrack verify-otp    Confirm the emailed code
  alumnitrack logout        Forget stored credentials
  alumnitrack status        Show current user

The token and the last known user record are stored in
~/.alumnitrack/credentials.json and attached to every API request.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any

from alumnitrack.api import APIClient
from alumnitrack.exceptions import AlumniTrackError, AuthenticationError
from alumnitrack.logging_config import set_user_id

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"
    ALUMNI = "alumni"
    EMPLOYER = "employer"


def role_of(user: Optional[Dict[str, Any]]) -> Optional[str]:
    """Role from whichever field the server used"""
    if not user:
        return None
    role = user.get("role") or user.get("userType") or user.get("type")
    return str(role).lower() if role else None


@dataclass
class UserCredentials:
    """Stored user credentials"""
    token: str
    user: Dict[str, Any] = field(default_factory=dict)
    saved_at: str = ""

    @property
    def user_id(self) -> str:
        return str(self.user.get("_id") or self.user.get("id") or "")

    @property
    def email(self) -> str:
        return str(self.user.get("email") or "")

    @property
    def name(self) -> str:
        return str(self.user.get("name") or self.user.get("fullName") or self.email)


@dataclass(frozen=True)
class SessionInfo:
    """Read-only view of the session, as the survey prober sees it"""
    is_authenticated: bool
    role: Optional[str] = None

    def is_student_or_alumni(self) -> bool:
        return self.role in (UserRole.STUDENT.value, UserRole.ALUMNI.value)


class AuthManager:
    """
    Manages client authentication.

    Token is stored in the configured credentials file (mode 0600).
    """

    def __init__(self, api: APIClient, credentials_file: str):
        self.api = api
        self.credentials_file = Path(credentials_file)
        self.credentials: Optional[UserCredentials] = None

        self._load_credentials()

    def _load_credentials(self) -> bool:
        """Load credentials from file"""
        if not self.credentials_file.exists():
            return False
        try:
            with open(self.credentials_file, 'r') as f:
                data = json.load(f)
            self.credentials = UserCredentials(**data)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("Could not load credentials: %s", e)
            return False

        self.api.set_auth_token(self.credentials.token)
        set_user_id(self.credentials.user_id)
        return True

    def _save_credentials(self) -> None:
        """Save credentials to file"""
        if not self.credentials:
            return
        self.credentials_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.credentials_file, 'w') as f:
            json.dump(asdict(self.credentials), f, indent=2)
        try:
            os.chmod(self.credentials_file, 0o600)
        except OSError:
            # Not supported on every filesystem
            pass

    def _clear_credentials(self) -> None:
        """Clear stored credentials"""
        self.credentials = None
        self.api.set_auth_token(None)
        set_user_id(None)
        if self.credentials_file.exists():
            self.credentials_file.unlink()

    def _accept_session(self, token: str, user: Dict[str, Any]) -> UserCredentials:
        self.credentials = UserCredentials(
            token=token,
            user=user or {},
            saved_at=datetime.now().isoformat()
        )
        self.api.set_auth_token(token)
        set_user_id(self.credentials.user_id)
        self._save_credentials()
        return self.credentials

    # ==================== Session state ====================

    def is_authenticated(self) -> bool:
        return bool(self.credentials and self.credentials.token)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.credentials.user if self.credentials else None

    @property
    def role(self) -> Optional[str]:
        return role_of(self.user)

    def has_role(self, *roles: str) -> bool:
        return self.role in roles

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def is_student_or_alumni(self) -> bool:
        return self.has_role(UserRole.STUDENT.value, UserRole.ALUMNI.value)

    def session_info(self) -> SessionInfo:
        return SessionInfo(is_authenticated=self.is_authenticated(), role=self.role)

    # ==================== Flows ====================

    async def login(self, email: str, password: str) -> UserCredentials:
        """Login using email and password"""
        data = await self.api.login(email, password)
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("Login response did not include a token")

        user = data.get("user")
        if not isinstance(user, dict):
            user = await self.api.me()

        logger.info("Logged in as %s", email)
        return self._accept_session(token, user)

    async def register(self, **fields: Any) -> Dict[str, Any]:
        """Register a new account; the server emails an OTP"""
        return await self.api.register(**fields)

    async def verify_otp(self, email: str, otp: str) -> Optional[UserCredentials]:
        """Confirm the emailed OTP; signs in when the server returns a token"""
        data = await self.api.verify_otp(email, otp)
        if isinstance(data, dict) and data.get("token"):
            return self._accept_session(data["token"], data.get("user") or {})
        return None

    async def resend_otp(self, email: str) -> Dict[str, Any]:
        return await self.api.resend_otp(email)

    async def refresh_me(self) -> Optional[Dict[str, Any]]:
        """Re-fetch the current user; a rejected token logs out"""
        if not self.is_authenticated():
            return None
        try:
            user = await self.api.me()
        except AuthenticationError:
            logger.warning("Stored token rejected, clearing credentials")
            self._clear_credentials()
            return None
        except AlumniTrackError as e:
            logger.warning("Could not refresh user: %s", e.message)
            return None

        self.credentials.user = user
        self._save_credentials()
        return user

    def logout(self) -> None:
        """Logout and clear credentials"""
        self._clear_credentials()
