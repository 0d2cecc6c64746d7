"""
AlumniTrack - REST API Client

Thin async wrapper over the job-board API. Every method returns the
decoded JSON body (unwrapped from a `{"data": ...}` envelope when the
server uses one) and raises `APIError` subclasses on failure.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, List

import httpx

from alumnitrack.exceptions import (
    APIError,
    APIConnectionError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000/api"


def extract_error_message(body: Any, fallback: str) -> str:
    """Pick the human-readable message out of an error body"""
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body.strip():
        return body.strip()
    return fallback


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and set(body.keys()) <= {"data", "success", "message"} and "data" in body:
        return body["data"]
    return body


def _clean_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned or None


class APIClient:
    """API client for the AlumniTrack backend"""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "APIClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def set_auth_token(self, token: Optional[str]) -> None:
        self.token = token

    def _get_headers(self, auth: bool = True) -> Dict[str, str]:
        """Get request headers"""
        headers = {"Accept": "application/json"}
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        auth: bool = True
    ) -> Any:
        """Make HTTP request and decode the response"""
        client = self._ensure_client()
        try:
            response = await client.request(
                method,
                endpoint,
                json=json,
                params=_clean_params(params),
                files=files,
                headers=self._get_headers(auth),
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, endpoint)
            raise APIConnectionError(f"Request timed out: {e}")
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, endpoint, e)
            raise APIConnectionError(f"Cannot connect to server: {e}")

        logger.debug("%s %s -> %s", method, endpoint, response.status_code)

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text

        if response.is_success:
            return _unwrap(body)

        message = extract_error_message(body, f"Request failed with status {response.status_code}")
        status = response.status_code
        if status == 401:
            raise AuthenticationError(message)
        if status == 403:
            raise AuthorizationError(message)
        if status == 404:
            raise NotFoundError(message)
        raise APIError(message, status_code=status, details={"body": body})

    # ==================== Authentication ====================

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Login; returns {"user": ..., "token": ...}"""
        data = await self._request(
            "POST", "/auth/login",
            json={"email": email, "password": password},
            auth=False
        )
        if isinstance(data, dict) and data.get("token"):
            self.token = data["token"]
        return data

    async def register(self, **fields: Any) -> Dict[str, Any]:
        """Register a new account (role, name, email, password, ...)"""
        return await self._request("POST", "/auth/register", json=fields, auth=False)

    async def verify_otp(self, email: str, otp: str) -> Dict[str, Any]:
        data = await self._request(
            "POST", "/auth/verify-otp",
            json={"email": email, "otp": otp},
            auth=False
        )
        if isinstance(data, dict) and data.get("token"):
            self.token = data["token"]
        return data

    async def resend_otp(self, email: str) -> Dict[str, Any]:
        return await self._request("POST", "/auth/resend-otp", json={"email": email}, auth=False)

    async def me(self) -> Dict[str, Any]:
        """Get current user info"""
        data = await self._request("GET", "/auth/me")
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            return data["user"]
        return data

    # ==================== Profile ====================

    async def get_profile(self) -> Dict[str, Any]:
        return await self._request("GET", "/profile/me")

    async def update_profile(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", "/profile/me", json=changes)

    # ==================== Jobs ====================

    async def list_jobs(self, **filters: Any) -> List[Dict[str, Any]]:
        """List jobs; filters: q, jobType, category, location, status, approvedOnly"""
        return await self._request("GET", "/jobs", params=filters)

    async def get_job(self, job_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/jobs/{job_id}")

    async def create_job(self, job: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/jobs", json=job)

    async def update_job(self, job_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/jobs/{job_id}", json=changes)

    async def delete_job(self, job_id: str) -> Any:
        return await self._request("DELETE", f"/jobs/{job_id}")

    async def list_job_categories(self) -> List[str]:
        return await self._request("GET", "/jobs/categories")

    # ==================== Companies ====================

    async def list_companies(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/companies")

    async def create_company(self, company: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/companies", json=company)

    async def upload_company_logo(self, path: str) -> Dict[str, Any]:
        """Upload a logo image; returns {"url": ...}"""
        file_path = Path(path)
        with open(file_path, 'rb') as f:
            content = f.read()
        return await self._request(
            "POST", "/uploads/company-logo",
            files={"logo": (file_path.name, content)}
        )

    # ==================== Users ====================

    async def list_users(self, **filters: Any) -> List[Dict[str, Any]]:
        return await self._request("GET", "/users", params=filters)

    async def create_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/users", json=user)

    async def update_user(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/users/{user_id}", json=changes)

    async def delete_user(self, user_id: str) -> Any:
        return await self._request("DELETE", f"/users/{user_id}")

    # ==================== Admin ====================

    async def get_stats(self) -> Dict[str, Any]:
        return await self._request("GET", "/admin/stats")

    # ==================== Surveys ====================

    async def list_surveys(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/surveys")

    async def get_survey(self, survey_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/surveys/{survey_id}")

    async def create_survey(self, survey: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/surveys", json=survey)

    async def update_survey(self, survey_id: str, survey: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/surveys/{survey_id}", json=survey)

    async def delete_survey(self, survey_id: str) -> Any:
        return await self._request("DELETE", f"/surveys/{survey_id}")

    async def eligible_surveys(self) -> List[Dict[str, Any]]:
        """Surveys the current user is expected to answer"""
        return await self._request("GET", "/surveys/active/eligible")

    async def submit_survey_response(self, survey_id: str, payload: Dict[str, Any]) -> Any:
        """Submit {"answers": [{questionId, type, label, value}, ...]}"""
        return await self._request("POST", f"/surveys/{survey_id}/responses", json=payload)

    async def list_survey_responses(
        self,
        survey_id: str,
        role: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/surveys/{survey_id}/responses", params={"role": role})
