"""Spotify Web API client for reading the user's liked tracks."""

import logging
from typing import Any, Callable, Dict, Optional, Union

import requests
from pydantic import ValidationError

from ...config import MAX_PAGE_SIZE
from ...models import LikedTrackEntry, LikedTracksPage

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_TIMEOUT = 15.0

TokenProvider = Callable[[], str]


class SpotifyApiError(Exception):
    """Raised when a Spotify API request fails.

    ``transient`` marks failures that may succeed if retried later
    (rate limiting, server errors, timeouts, connection problems).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        transient: bool = False,
        retry_after: Optional[float] = None,
    ) -> None:
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient
        self.retry_after = retry_after


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def _retry_after(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class SpotifyClient:
    """Authenticated client for the parts of the Spotify API the sync needs."""

    def __init__(
        self,
        token: Union[str, TokenProvider],
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize Spotify client.

        Args:
            token: Bearer access token, or a callable returning a current one
            base_url: Spotify Web API base URL
            timeout: Per-request timeout in seconds
            session: Optional requests session (mainly for tests)
        """
        self._token_provider: TokenProvider = (
            token if callable(token) else (lambda: token)
        )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Perform an authenticated GET request and decode the JSON body.

        Raises:
            SpotifyApiError: On transport errors, non-2xx responses or a body
                that is not JSON
        """
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self._token_provider()}"}

        try:
            response = self.session.get(
                url, params=params, headers=headers, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise SpotifyApiError(
                f"Spotify request timed out after {self.timeout}s: {path}",
                transient=True,
            ) from e
        except requests.ConnectionError as e:
            raise SpotifyApiError(
                f"Cannot connect to Spotify API: {e}", transient=True
            ) from e

        if not response.ok:
            status = response.status_code
            detail = self._error_detail(response)
            raise SpotifyApiError(
                f"Spotify API error {status} for {path}: {detail}",
                status_code=status,
                transient=_is_transient_status(status),
                retry_after=_retry_after(response) if status == 429 else None,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SpotifyApiError(
                f"Spotify API returned invalid JSON for {path}",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        """Extract the human-readable message from an error response."""
        try:
            body = response.json()
        except ValueError:
            return response.reason or "no details"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return body.get("error_description") or error
        return response.reason or "no details"

    def fetch_liked_page(
        self, offset: int, limit: int = MAX_PAGE_SIZE
    ) -> LikedTracksPage:
        """Fetch one page of the user's liked tracks.

        Args:
            offset: Index of the first item to return
            limit: Page size, 1 to 50

        Returns:
            LikedTracksPage with parsed entries and a has_more flag

        Raises:
            ValueError: If offset or limit is out of range
            SpotifyApiError: If the request fails
        """
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}: {limit}")
        if offset < 0:
            raise ValueError(f"offset must not be negative: {offset}")

        data = self._get("/me/tracks", params={"limit": limit, "offset": offset})
        if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
            raise SpotifyApiError("Unexpected response shape from /me/tracks")

        items = [
            self._parse_item(item, offset + position)
            for position, item in enumerate(data.get("items") or [])
        ]
        page = LikedTracksPage(
            items=items,
            has_more=data.get("next") is not None,
            total=data.get("total"),
        )
        logger.debug(
            "Fetched liked tracks offset=%d: %d items (has_more=%s)",
            offset,
            page.count,
            page.has_more,
        )
        return page

    @staticmethod
    def _parse_item(item: Any, index: int) -> LikedTrackEntry:
        """Parse one saved-track item.

        An item that cannot be parsed becomes an entry without an ID, which
        the reconciler skips instead of failing the whole page.
        """
        if not isinstance(item, dict):
            logger.warning("Ignoring malformed liked track at index %d", index)
            return LikedTrackEntry()
        try:
            return LikedTrackEntry.from_api(item)
        except (ValidationError, AttributeError, TypeError) as e:
            logger.warning("Ignoring malformed liked track at index %d: %s", index, e)
            return LikedTrackEntry()

    def get_user_profile(self) -> Dict[str, Any]:
        """Get the current user's Spotify profile."""
        data = self._get("/me")
        if not isinstance(data, dict):
            raise SpotifyApiError("Unexpected response shape from /me")
        return data

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
