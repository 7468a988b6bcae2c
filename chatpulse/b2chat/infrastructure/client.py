"""
B2Chat API Client
=================

Authenticated, paginated access to the B2Chat export endpoints.

Features:
- OAuth client-credentials token, cached until one minute before expiry
- Offset pagination over /contacts/export and /chats/export
- Per-record normalization and validation; bad records are reported,
  never allowed to abort a page

The client performs no retries and no throttling. Callers route requests
through the RateLimitedQueue and decide what to retry via
B2ChatAPIError.is_retryable().
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Type

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from chatpulse.b2chat.domain.records import (
    ChatRecord,
    ContactRecord,
    RecordT,
    normalize_chat,
    normalize_contact,
    parse_records,
)
from chatpulse.b2chat.domain.value_objects import (
    AuthToken,
    DateLike,
    DateRange,
    Page,
    Pagination,
)
from chatpulse.config import settings
from chatpulse.core.exceptions import B2ChatAPIError
from chatpulse.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

TOKEN_EXPIRY_BUFFER_SECONDS = 60
DEFAULT_PAGE_SIZE = 100


class ExportEnvelope(BaseModel):
    """Top-level shape of an export response, minus the record array."""
    model_config = ConfigDict(extra="allow")

    total: Optional[int] = None
    exported: Optional[int] = None
    trace_id: Optional[str] = None
    message: Optional[str] = None


def format_api_date(value: DateLike) -> str:
    """Format a date filter as YYYY-MM-DD (UTC for aware datetimes)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    return value.isoformat()


class B2ChatClient:
    """
    Client for the B2Chat export API.

    Usage:
        async with B2ChatClient() as client:
            page = await client.get_chats(page=1, limit=100)

    An httpx.AsyncClient may be injected (tests pass one built on
    httpx.MockTransport); otherwise one is created on first use.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = (base_url or settings.b2chat_api_url).rstrip("/")
        self._username = username if username is not None else settings.b2chat_username
        self._password = password if password is not None else settings.b2chat_password
        self._timeout = timeout or settings.b2chat_timeout_seconds
        self._http_client = http_client
        self._token: Optional[AuthToken] = None

    async def __aenter__(self) -> "B2ChatClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _now(self) -> float:
        return time.time()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ========== Authentication ==========

    async def authenticate(self) -> None:
        """
        Make sure a valid bearer token is cached.

        No-op while the cached token has not expired; otherwise exchanges
        the client credentials at /oauth/token.

        Raises:
            B2ChatAPIError: With the upstream status when the exchange is
                rejected, or status 500 when the endpoint is unreachable
        """
        if self._token is not None and self._token.is_valid(self._now()):
            return

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/oauth/token",
                auth=httpx.BasicAuth(self._username, self._password),
                data={"grant_type": "client_credentials"},
            )
        except httpx.RequestError as e:
            logger.error(
                "B2Chat authentication request failed",
                extra={"error": str(e)}
            )
            raise B2ChatAPIError("Authentication error", 500, str(e)) from e

        if not response.is_success:
            logger.error(
                "B2Chat authentication rejected",
                extra={"status_code": response.status_code}
            )
            raise B2ChatAPIError(
                "Authentication failed",
                response.status_code,
                response.text
            )

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = float(payload["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise B2ChatAPIError("Authentication error", 500, response.text) from e

        self._token = AuthToken(
            access_token=access_token,
            expires_at=self._now() + expires_in - TOKEN_EXPIRY_BUFFER_SECONDS,
        )
        logger.debug("B2Chat token refreshed", extra={"expires_in": expires_in})

    # ========== Requests ==========

    async def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Issue an authenticated GET and return the decoded JSON body.

        Raises:
            B2ChatAPIError: On non-2xx responses (with parsed body, endpoint
                and URL), 503 on transport failures, 422 on non-JSON bodies
        """
        await self.authenticate()

        url = f"{self.base_url}{endpoint}"
        request_url = str(httpx.URL(url, params=params or {}))
        headers = {
            "Authorization": f"Bearer {self._token.access_token}",
            "Content-Type": "application/json",
        }

        logger.debug(
            "B2Chat API request",
            extra={"url": request_url, "method": "GET", "endpoint": endpoint}
        )

        client = await self._get_client()
        try:
            with log_latency(logger, "b2chat_request", endpoint=endpoint):
                response = await client.get(url, params=params, headers=headers)
        except httpx.RequestError as e:
            logger.error(
                "B2Chat API request failed",
                extra={"url": request_url, "endpoint": endpoint, "error": str(e)}
            )
            raise B2ChatAPIError(
                f"B2Chat API request failed: {e}",
                503,
                str(e),
                endpoint,
                request_url
            ) from e

        if not response.is_success:
            error_text = response.text
            try:
                error_details = response.json()
            except ValueError:
                error_details = {"message": error_text}
            if not isinstance(error_details, dict):
                error_details = {"message": error_text}

            error_message = (
                error_details.get("message")
                or error_details.get("error")
                or error_text
                or "Unknown error"
            )

            logger.error(
                "B2Chat API error response",
                extra={
                    "url": request_url,
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "error_message": error_message,
                    "raw_response": error_text,
                }
            )
            raise B2ChatAPIError(
                f"B2Chat API request failed: {error_message}",
                response.status_code,
                error_details,
                endpoint,
                request_url
            )

        try:
            return response.json()
        except ValueError as e:
            raise B2ChatAPIError(
                "B2Chat API returned a non-JSON body",
                422,
                response.text,
                endpoint,
                request_url
            ) from e

    async def _fetch_page(
        self,
        endpoint: str,
        collection_key: str,
        params: Dict[str, Any],
        limit: int,
        model: Type[RecordT],
        normalizer: Callable[[Dict[str, Any], int], Dict[str, Any]],
    ) -> Page[RecordT]:
        body = await self._make_request(endpoint, params)

        items = body.get(collection_key) if isinstance(body, dict) else None
        if not isinstance(items, list):
            logger.warning(
                f"B2Chat API returned invalid {collection_key} response structure",
                extra={
                    "endpoint": endpoint,
                    f"has_{collection_key}": items is not None,
                    "is_array": isinstance(items, list),
                }
            )
            return Page.empty()

        try:
            envelope = ExportEnvelope.model_validate(
                {k: v for k, v in body.items() if k != collection_key}
            )
        except ValidationError as e:
            raise B2ChatAPIError(
                f"Invalid {collection_key} response envelope: {e.error_count()} error(s)",
                422,
                e.errors(include_url=False),
                endpoint,
                str(httpx.URL(f"{self.base_url}{endpoint}", params=params))
            ) from e

        logger.debug(
            f"B2Chat {collection_key} API response",
            extra={
                "total": envelope.total,
                "exported": envelope.exported,
                "count": len(items),
            }
        )

        records, errors = parse_records(items, model, normalizer)
        if errors:
            logger.warning(
                f"Some {collection_key} failed to parse",
                extra={
                    "total_records": len(items),
                    "successful": len(records),
                    "failed": len(errors),
                    "first_error": {
                        "index": errors[0].index,
                        "error": errors[0].error,
                    },
                }
            )

        exported = envelope.exported or len(records)
        return Page(
            data=records,
            pagination=Pagination(
                total=envelope.total or 0,
                exported=exported,
                # Fewer records than requested means the last page
                has_next_page=exported >= limit,
            ),
            errors=errors,
        )

    @staticmethod
    def _page_params(
        page: int,
        limit: int,
        updated_since: Optional[DateLike],
        date_range: Optional[DateRange],
        from_key: str,
        to_key: str,
    ) -> Dict[str, Any]:
        if page < 1:
            raise ValueError("page must be >= 1")
        if limit < 1:
            raise ValueError("limit must be >= 1")

        params: Dict[str, Any] = {"offset": (page - 1) * limit, "limit": limit}

        if date_range is not None:
            if date_range.start_date is not None:
                params[from_key] = format_api_date(date_range.start_date)
            if date_range.end_date is not None:
                params[to_key] = format_api_date(date_range.end_date)
        elif updated_since is not None:
            params[from_key] = format_api_date(updated_since)
            params[to_key] = format_api_date(datetime.now(timezone.utc))
        return params

    # ========== Collections ==========

    async def get_contacts(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        updated_since: Optional[DateLike] = None,
        date_range: Optional[DateRange] = None
    ) -> Page[ContactRecord]:
        """
        Fetch one page of exported contacts.

        ``date_range`` filters on update time and wins over ``updated_since``.
        """
        params = self._page_params(
            page, limit, updated_since, date_range, "updated_from", "updated_to"
        )
        return await self._fetch_page(
            "/contacts/export", "contacts", params, limit,
            ContactRecord, normalize_contact
        )

    async def get_chats(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        updated_since: Optional[DateLike] = None,
        date_range: Optional[DateRange] = None
    ) -> Page[ChatRecord]:
        """
        Fetch one page of exported chats.

        ``date_range`` filters on chat date and wins over ``updated_since``.
        """
        params = self._page_params(
            page, limit, updated_since, date_range,
            "date_range_from", "date_range_to"
        )
        return await self._fetch_page(
            "/chats/export", "chats", params, limit,
            ChatRecord, normalize_chat
        )

    async def get_total_counts(self) -> Dict[str, int]:
        """Total contacts and chats available upstream."""
        try:
            contacts = await self._make_request(
                "/contacts/export", {"limit": 1, "offset": 0}
            )
            chats = await self._make_request(
                "/chats/export", {"limit": 1, "offset": 0}
            )
        except B2ChatAPIError as e:
            logger.error(
                "Failed to get B2Chat total counts",
                extra={"error": e.message, "status_code": e.status_code}
            )
            raise

        def _total(body: Any) -> int:
            if isinstance(body, dict) and isinstance(body.get("total"), int):
                return body["total"]
            return 0

        return {"contacts": _total(contacts), "chats": _total(chats)}
