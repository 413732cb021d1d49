"""HTTP client for the Medplum server with OAuth2 client-credentials auth.

This module provides the MedplumClient class, which handles:
1. Token acquisition via the "client credentials" grant
2. Automatic token refresh when the access token expires
3. Authenticated requests to the FHIR API, the admin API and the auth API
4. Translating error responses into the package's fault hierarchy

Concept — OAuth2 Client Credentials Grant:
    A Medplum ClientApplication has a client_id and client_secret. Posting
    both to the token endpoint returns an access_token (and an expires_in
    lifetime). No user or browser is involved, which suits a server that
    acts on behalf of an automated agent.

Concept — OperationOutcome:
    FHIR servers explain failures with an OperationOutcome resource. Its
    first issue carries a machine code ("not-found", "invalid", ...) and a
    human diagnostic. We turn it into NotFoundError or RemoteOperationError
    right here, so nothing downstream has to inspect response bodies.

Usage:
    client = MedplumClient()
    await client.ensure_session()
    patient = await client.read_resource("Patient", "123")
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from medplum_tools.config import (
    MEDPLUM_BASE_URL,
    MEDPLUM_CLIENT_ID,
    MEDPLUM_CLIENT_SECRET,
    MEDPLUM_FHIR_PATH,
    MEDPLUM_SSL_VERIFY,
    MEDPLUM_TIMEOUT,
)
from medplum_tools.errors import (
    AuthenticationError,
    NotFoundError,
    RemoteOperationError,
)

logger = logging.getLogger(__name__)

JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"
FHIR_JSON_CONTENT_TYPE = "application/fhir+json"


def fhir_path(*parts: str) -> str:
    """Join path segments under the FHIR API (e.g. "fhir/R4/Patient/1")."""
    segments = [MEDPLUM_FHIR_PATH.strip("/")]
    segments.extend(str(p).strip("/") for p in parts if p)
    return "/".join(segments)


def _outcome_message(outcome: dict[str, Any]) -> str:
    """Pick the most useful human-readable text out of an OperationOutcome."""
    messages: list[str] = []
    for issue in outcome.get("issue") or []:
        text = (issue.get("details") or {}).get("text") or issue.get("diagnostics")
        if text:
            messages.append(str(text))
    if messages:
        return "; ".join(messages)
    return "Medplum returned an OperationOutcome without details"


def fault_from_response(response: httpx.Response) -> RemoteOperationError:
    """Build the fault matching an error response from Medplum."""
    outcome: dict[str, Any] | None = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("resourceType") == "OperationOutcome":
        outcome = body
        diagnostic = _outcome_message(body)
    else:
        diagnostic = response.text or f"HTTP {response.status_code}"

    fault = RemoteOperationError(response.status_code, diagnostic, outcome)
    if response.status_code == 404 or fault.issue_code == "not-found":
        return NotFoundError(response.status_code, diagnostic, outcome)
    return fault


class MedplumClient:
    """Async HTTP client for the Medplum REST APIs with OAuth2 auth.

    This client manages the token lifecycle:
    1. Get an access token using the client credentials grant
    2. Refresh it shortly before it expires
    3. Add the Bearer token to every request
    4. Re-authenticate once if the server rejects a token with 401

    Attributes:
        base_url: The Medplum server URL (e.g., "https://api.medplum.com").
        token_url: The OAuth2 token endpoint.
        active_project_id: Project selected with switch_project(), if any.
    """

    def __init__(
        self,
        base_url: str = MEDPLUM_BASE_URL,
        client_id: str = MEDPLUM_CLIENT_ID,
        client_secret: str = MEDPLUM_CLIENT_SECRET,
        verify_ssl: bool = MEDPLUM_SSL_VERIFY,
        timeout: float = MEDPLUM_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = f"{self.base_url}/oauth2/token"
        self.active_project_id: str | None = None

        # Token state: starts empty, populated by _get_token()
        self._access_token: str = ""
        self._refresh_token: str = ""
        self._token_expires_at: float = 0.0  # Unix timestamp

        self._http = httpx.AsyncClient(
            verify=verify_ssl,
            timeout=httpx.Timeout(timeout),
        )

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # --- Session (authentication gate) ---

    @property
    def has_session(self) -> bool:
        return bool(self._access_token) and time.time() < self._token_expires_at

    async def ensure_session(self) -> None:
        """Ensure a valid (non-expired) access token exists.

        Idempotent: returns immediately when the current token is still
        valid. Two coroutines that both find no session will both run the
        exchange; whichever finishes last wins and later calls reuse it.

        Raises:
            AuthenticationError: If credentials are missing or rejected.
        """
        if self.has_session:
            return
        if self._refresh_token:
            logger.info("Access token expired, refreshing")
            await self._refresh_token_grant()
        else:
            logger.info("No token, authenticating")
            await self._get_token()

    async def _get_token(self) -> None:
        """Get an access token using the OAuth2 client credentials grant.

        Raises:
            AuthenticationError: If credentials are missing or the request fails.
        """
        if not self.client_id or not self.client_secret:
            raise AuthenticationError(
                "Medplum credentials not configured. "
                "Set MEDPLUM_CLIENT_ID and MEDPLUM_CLIENT_SECRET."
            )
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        await self._token_request(payload)

    async def _refresh_token_grant(self) -> None:
        """Refresh an expired access token using the refresh token.

        Falls back to a fresh client credentials grant when the refresh
        token is rejected.
        """
        payload = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": self._refresh_token,
        }
        try:
            await self._token_request(payload)
        except AuthenticationError:
            logger.warning("Token refresh failed, falling back to client credentials")
            self._refresh_token = ""
            await self._get_token()

    async def _token_request(self, payload: dict[str, str]) -> None:
        """Send a token request and store the response.

        The token endpoint expects form-encoded data
        (application/x-www-form-urlencoded), NOT JSON.

        Raises:
            AuthenticationError: If the request fails or returns an error.
        """
        try:
            response = await self._http.post(self.token_url, data=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(
                f"Medplum authentication failed (HTTP {exc.response.status_code}): "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Medplum authentication failed: {exc}") from exc

        try:
            data = response.json()
            self._access_token = data["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthenticationError(
                "Medplum authentication failed: token response has no access_token"
            ) from exc
        self._refresh_token = data.get("refresh_token", self._refresh_token)
        expires_in = data.get("expires_in", 3600)
        # Refresh 60 seconds early to absorb clock drift and latency.
        self._token_expires_at = time.time() + expires_in - 60
        logger.debug("Token acquired, expires in %d seconds", expires_in)

    # --- Raw requests ---

    async def get(self, path: str, params: Any = None) -> Any:
        """Authenticated GET; `path` is relative to the server base URL."""
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        json_data: Any = None,
        content_type: str | None = None,
    ) -> Any:
        """Authenticated POST with a JSON body."""
        return await self._request("POST", path, json_data=json_data, content_type=content_type)

    async def put(self, path: str, json_data: Any = None, params: Any = None) -> Any:
        """Authenticated PUT with a JSON body."""
        return await self._request("PUT", path, params=params, json_data=json_data)

    async def patch(
        self,
        path: str,
        json_data: Any = None,
        content_type: str | None = JSON_PATCH_CONTENT_TYPE,
    ) -> Any:
        """Authenticated PATCH; defaults to a JSON Patch body."""
        return await self._request("PATCH", path, json_data=json_data, content_type=content_type)

    async def delete(self, path: str) -> Any:
        """Authenticated DELETE."""
        return await self._request("DELETE", path)

    async def post_form(self, path: str, form_data: dict[str, str]) -> Any:
        """Authenticated POST with a form-encoded body (FHIRcast hub requests)."""
        return await self._request("POST", path, form_data=form_data)

    async def _request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json_data: Any = None,
        content_type: str | None = None,
        form_data: dict[str, str] | None = None,
    ) -> Any:
        """Send an authenticated request to Medplum.

        Handles:
        1. Ensuring we have a valid token (refreshing if needed)
        2. Setting the Authorization: Bearer header
        3. Retrying once on 401 (in case the token was revoked server-side)
        4. Raising NotFoundError / RemoteOperationError for non-2xx responses

        Returns:
            The parsed JSON response, or None for empty bodies.
        """
        await self.ensure_session()

        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": FHIR_JSON_CONTENT_TYPE,
        }
        if content_type:
            headers["Content-Type"] = content_type

        response = await self._send(method, url, headers, params, json_data, form_data)

        # If we get a 401, the token might have been revoked server-side.
        # Try re-authenticating once before giving up.
        if response.status_code == 401:
            logger.warning("Got 401, retrying with fresh token")
            await self._get_token()
            headers["Authorization"] = f"Bearer {self._access_token}"
            response = await self._send(method, url, headers, params, json_data, form_data)

        if response.status_code >= 400:
            fault = fault_from_response(response)
            logger.debug("%s %s failed: %s", method, url, fault)
            raise fault

        if not response.content:
            return None
        return response.json()

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        params: Any,
        json_data: Any,
        form_data: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._http.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_data,
                data=form_data,
            )
        except httpx.HTTPError as exc:
            raise RemoteOperationError(
                status_code=0,
                diagnostic=f"Request to {url} failed: {exc}",
            ) from exc

    # --- FHIR resource primitives ---

    async def create_resource(self, resource: dict[str, Any]) -> Any:
        return await self.post(
            fhir_path(resource["resourceType"]),
            resource,
            content_type=FHIR_JSON_CONTENT_TYPE,
        )

    async def read_resource(self, resource_type: str, resource_id: str) -> Any:
        return await self.get(fhir_path(resource_type, resource_id))

    async def update_resource(self, resource: dict[str, Any]) -> Any:
        return await self.put(
            fhir_path(resource["resourceType"], resource["id"]),
            resource,
        )

    async def delete_resource(self, resource_type: str, resource_id: str) -> Any:
        return await self.delete(fhir_path(resource_type, resource_id))

    async def search(self, resource_type: str, query: str = "") -> Any:
        """Run a FHIR search and return the raw searchset Bundle.

        Args:
            resource_type: The resource type to search (e.g. "Observation").
            query: An already-encoded query string, without the leading "?".
        """
        path = fhir_path(resource_type)
        if query:
            path = f"{path}?{query}"
        return await self.get(path)

    async def patch_resource(
        self,
        resource_type: str,
        resource_id: str,
        operations: list[dict[str, Any]],
    ) -> Any:
        return await self.patch(fhir_path(resource_type, resource_id), operations)

    async def upsert_resource(self, resource: dict[str, Any], query: str) -> Any:
        """Conditional update: update the match for `query` or create it."""
        return await self.put(f"{fhir_path(resource['resourceType'])}?{query}", resource)

    async def read_history(self, resource_type: str, resource_id: str) -> Any:
        return await self.get(fhir_path(resource_type, resource_id, "_history"))

    async def read_version(
        self,
        resource_type: str,
        resource_id: str,
        version_id: str,
    ) -> Any:
        return await self.get(fhir_path(resource_type, resource_id, "_history", version_id))

    # --- Login context ---

    async def get_profile(self) -> Any:
        """Return the `auth/me` document (profile, project, membership)."""
        return await self.get("auth/me")

    async def get_project(self) -> Any:
        """Return the active project (switched-to project or the login's own)."""
        project_id = self.active_project_id
        if not project_id:
            me = await self.get_profile() or {}
            project_id = (me.get("project") or {}).get("id")
        if not project_id:
            raise RemoteOperationError(0, "No active project for this login")
        return await self.get(f"admin/projects/{project_id}")

    async def switch_project(self, project_id: str) -> None:
        """Select the project later project-scoped calls should target."""
        self.active_project_id = project_id
        logger.info("Active project set to %s", project_id)


# --- Module-level singleton ---
# One shared client for the whole process. FastAPI runs on a single event
# loop, so one instance (and one token) is enough.

_client: MedplumClient | None = None


async def get_client() -> MedplumClient:
    """Get or create the shared MedplumClient singleton.

    The session is not established here; the authentication gate does it
    lazily on the first tool call.
    """
    global _client  # noqa: PLW0603
    if _client is None:
        _client = MedplumClient()
    return _client
