"""
Unit Tests for AuthManager
Tests for: credential storage, login flows, session info
"""
import json
import os
import stat

import pytest
from unittest.mock import AsyncMock, MagicMock

from alumnitrack.auth import AuthManager, SessionInfo, UserCredentials, role_of
from alumnitrack.exceptions import APIError, AuthenticationError
from alumnitrack.logging_config import get_user_id, set_user_id


@pytest.fixture
def mock_api():
    api = MagicMock()
    api.login = AsyncMock()
    api.me = AsyncMock()
    api.register = AsyncMock()
    api.verify_otp = AsyncMock()
    api.resend_otp = AsyncMock()
    return api


@pytest.fixture
def credentials_file(tmp_path):
    return tmp_path / "credentials.json"


@pytest.fixture(autouse=True)
def reset_user_context():
    yield
    set_user_id(None)


class TestRoleOf:
    """Test role_of"""

    @pytest.mark.parametrize("user, expected", [
        ({"role": "Student"}, "student"),
        ({"userType": "alumni"}, "alumni"),
        ({"type": "ADMIN"}, "admin"),
        ({}, None),
        (None, None),
    ])
    def test_role_fields(self, user, expected):
        """Test role comes from role, userType or type"""
        assert role_of(user) == expected


class TestSessionInfo:
    """Test SessionInfo"""

    @pytest.mark.parametrize("role, eligible", [
        ("student", True), ("alumni", True), ("admin", False), ("employer", False), (None, False),
    ])
    def test_student_or_alumni(self, role, eligible):
        """Test only students and alumni qualify"""
        assert SessionInfo(True, role).is_student_or_alumni() is eligible


class TestCredentials:
    """Test credential persistence"""

    def test_no_file_means_anonymous(self, mock_api, credentials_file):
        """Test a fresh install is not authenticated"""
        auth = AuthManager(mock_api, str(credentials_file))

        assert auth.is_authenticated() is False
        assert auth.session_info() == SessionInfo(is_authenticated=False, role=None)

    def test_loads_stored_credentials(self, mock_api, credentials_file, fake_user):
        """Test stored credentials set the token and user context"""
        credentials_file.write_text(json.dumps({"token": "tok", "user": fake_user, "saved_at": ""}))

        auth = AuthManager(mock_api, str(credentials_file))

        assert auth.is_authenticated()
        assert auth.role == "alumni"
        assert auth.is_student_or_alumni()
        mock_api.set_auth_token.assert_called_once_with("tok")
        assert get_user_id() == fake_user["_id"]

    def test_corrupt_credentials(self, mock_api, credentials_file):
        """Test unreadable credentials are ignored"""
        credentials_file.write_text("{broken")

        auth = AuthManager(mock_api, str(credentials_file))

        assert auth.is_authenticated() is False
        mock_api.set_auth_token.assert_not_called()

    def test_credentials_properties(self, fake_user):
        """Test UserCredentials accessors"""
        creds = UserCredentials(token="t", user=fake_user)

        assert creds.user_id == fake_user["_id"]
        assert creds.email == fake_user["email"]
        assert creds.name == fake_user["name"]


class TestLogin:
    """Test login and registration flows"""

    @pytest.mark.asyncio
    async def test_login_saves_credentials(self, mock_api, credentials_file, fake_user):
        """Test login persists the token with private permissions"""
        mock_api.login.return_value = {"token": "tok", "user": fake_user}
        auth = AuthManager(mock_api, str(credentials_file))

        creds = await auth.login(fake_user["email"], "secret")

        assert creds.token == "tok"
        assert auth.session_info() == SessionInfo(True, "alumni")
        saved = json.loads(credentials_file.read_text())
        assert saved["token"] == "tok"
        assert saved["user"] == fake_user
        if os.name == "posix":
            assert stat.S_IMODE(credentials_file.stat().st_mode) == 0o600
        mock_api.me.assert_not_called()

    @pytest.mark.asyncio
    async def test_login_fetches_user_when_missing(self, mock_api, credentials_file, fake_user):
        """Test a token-only login response falls back to /auth/me"""
        mock_api.login.return_value = {"token": "tok"}
        mock_api.me.return_value = fake_user
        auth = AuthManager(mock_api, str(credentials_file))

        await auth.login(fake_user["email"], "secret")

        assert auth.user == fake_user

    @pytest.mark.asyncio
    async def test_login_without_token(self, mock_api, credentials_file):
        """Test a response without token is an authentication failure"""
        mock_api.login.return_value = {"message": "ok"}
        auth = AuthManager(mock_api, str(credentials_file))

        with pytest.raises(AuthenticationError):
            await auth.login("a@b.c", "secret")

        assert not credentials_file.exists()

    @pytest.mark.asyncio
    async def test_verify_otp_signs_in(self, mock_api, credentials_file, fake_user):
        """Test a verified OTP that returns a token starts a session"""
        mock_api.verify_otp.return_value = {"token": "tok", "user": fake_user}
        auth = AuthManager(mock_api, str(credentials_file))

        creds = await auth.verify_otp(fake_user["email"], "123456")

        assert creds is not None
        assert auth.is_authenticated()

    @pytest.mark.asyncio
    async def test_verify_otp_without_token(self, mock_api, credentials_file):
        """Test verification alone does not sign in"""
        mock_api.verify_otp.return_value = {"message": "verified"}
        auth = AuthManager(mock_api, str(credentials_file))

        assert await auth.verify_otp("a@b.c", "123456") is None
        assert auth.is_authenticated() is False

    @pytest.mark.asyncio
    async def test_register_passes_fields(self, mock_api, credentials_file):
        """Test registration fields are forwarded"""
        mock_api.register.return_value = {"message": "OTP sent"}
        auth = AuthManager(mock_api, str(credentials_file))

        await auth.register(name="Ada", email="ada@example.com", password="pw", role="student")

        mock_api.register.assert_awaited_once_with(
            name="Ada", email="ada@example.com", password="pw", role="student"
        )


class TestSessionLifecycle:
    """Test refresh and logout"""

    @pytest.fixture
    def signed_in(self, mock_api, credentials_file, fake_user):
        credentials_file.write_text(json.dumps({"token": "tok", "user": fake_user}))
        return AuthManager(mock_api, str(credentials_file))

    @pytest.mark.asyncio
    async def test_refresh_updates_user(self, signed_in, mock_api, fake_user):
        """Test refresh stores the latest user record"""
        updated = dict(fake_user, role="student")
        mock_api.me.return_value = updated

        assert await signed_in.refresh_me() == updated
        assert signed_in.role == "student"

    @pytest.mark.asyncio
    async def test_rejected_token_logs_out(self, signed_in, mock_api, credentials_file):
        """Test a 401 on refresh clears the stored session"""
        mock_api.me.side_effect = AuthenticationError("expired")

        assert await signed_in.refresh_me() is None
        assert signed_in.is_authenticated() is False
        assert not credentials_file.exists()
        mock_api.set_auth_token.assert_called_with(None)

    @pytest.mark.asyncio
    async def test_other_errors_keep_session(self, signed_in, mock_api):
        """Test server errors on refresh do not log out"""
        mock_api.me.side_effect = APIError("unavailable", status_code=503)

        assert await signed_in.refresh_me() is None
        assert signed_in.is_authenticated()

    @pytest.mark.asyncio
    async def test_refresh_when_anonymous(self, mock_api, credentials_file):
        """Test refresh does nothing without a session"""
        auth = AuthManager(mock_api, str(credentials_file))

        assert await auth.refresh_me() is None
        mock_api.me.assert_not_called()

    def test_logout(self, signed_in, credentials_file):
        """Test logout removes the credentials file"""
        signed_in.logout()

        assert signed_in.is_authenticated() is False
        assert signed_in.session_info().is_authenticated is False
        assert not credentials_file.exists()
        assert get_user_id() == ""
