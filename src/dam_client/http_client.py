"""HTTP client for the DAM REST API with transparent token refresh."""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests

from dam_client.errors import ApiError, AuthError, NetworkError
from dam_client.schemas import RefreshedToken
from dam_client.token_store import BaseTokenStore

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/jwt/refresh/"


class _Waiter:
    """A caller parked behind the in-flight refresh."""

    __slots__ = ("event", "token", "error")

    def __init__(self):
        self.event = threading.Event()
        self.token: Optional[str] = None
        self.error: Optional[BaseException] = None


class ApiClient:
    """Issues authenticated JSON requests against the DAM API.

    A 401 on an authenticated request triggers one refresh of the access
    token followed by exactly one retry. Concurrent 401s share a single
    refresh: the first caller performs it, the rest wait in FIFO order and
    are released with the new token (or the same AuthError) when it settles.
    """

    def __init__(
        self,
        base_url: str,
        token_store: BaseTokenStore,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        """Initialize the API client.

        Args:
            base_url: API root, e.g. ``https://assets-api.example.com``
            token_store: Where access/refresh tokens are read and written
            session: Optional requests session (one is created if omitted)
            timeout: Request timeout in seconds
            on_session_expired: Called once when a refresh fails and the
                user has to authenticate again
        """
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.session = session or requests.Session()
        self.timeout = timeout
        self.on_session_expired = on_session_expired

        self._refresh_lock = threading.Lock()
        self._refresh_in_flight = False
        self._waiters: List[_Waiter] = []

        logger.info(f"ApiClient initialized for {self.base_url}")

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}{path}"

    def _is_api_url(self, url: str) -> bool:
        return url == self.base_url or url.startswith(self.base_url + "/") or url.startswith(self.base_url + "?")

    def _send(
        self,
        method: str,
        url: str,
        json: Any,
        params: Optional[Dict[str, Any]],
        token: Optional[str],
    ) -> requests.Response:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"{method} {url}")
        try:
            return self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise NetworkError(f"Cannot reach {url}: {e}") from e

    @staticmethod
    def _parse(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            payload = None
        else:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text

        if not 200 <= response.status_code < 300:
            raise ApiError(response.status_code, payload)
        return payload

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Any:
        """Perform one request and return the decoded JSON body.

        Returns None for 204 / empty responses. Raises ApiError for any other
        non-2xx response, NetworkError when the API is unreachable and
        AuthError when a 401 could not be recovered by refreshing.
        """
        method = method.upper()
        url = self._url(path)
        if auth and not self._is_api_url(url):
            # credentials never leave the API host, e.g. via a pagination link
            logger.warning(f"Not sending credentials to foreign URL {url}")
            auth = False
        token = self.token_store.get_access() if auth else None

        response = self._send(method, url, json, params, token)

        if response.status_code == 401 and auth:
            logger.info(f"{method} {url} returned 401, refreshing access token")
            new_token = self._refresh_after_unauthorized(token)
            response = self._send(method, url, json, params, new_token)

        return self._parse(response)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, auth: bool = True) -> Any:
        return self.request("GET", path, params=params, auth=auth)

    def post(self, path: str, json: Any = None, auth: bool = True) -> Any:
        return self.request("POST", path, json=json, auth=auth)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # Token refresh

    def refresh(self) -> str:
        """Force a refresh of the access token through the single-flight gate."""
        return self._refresh_after_unauthorized(self.token_store.get_access())

    def _refresh_after_unauthorized(self, sent_token: Optional[str]) -> str:
        """Return a usable access token after ``sent_token`` was rejected.

        Only one refresh runs at a time. Callers arriving while it is in
        flight are queued and released when it settles; callers arriving
        after a sibling already rotated the token reuse the current one.
        """
        waiter = None
        with self._refresh_lock:
            if self._refresh_in_flight:
                waiter = _Waiter()
                self._waiters.append(waiter)
            else:
                current = self.token_store.get_access()
                if current and current != sent_token:
                    return current
                if sent_token and not current:
                    # Credentials were cleared after this request went out.
                    raise AuthError("Session expired, please log in again")
                self._refresh_in_flight = True

        if waiter is not None:
            waiter.event.wait()
            if waiter.error is not None:
                raise waiter.error
            return waiter.token

        try:
            token = self._refresh_access_token()
        except AuthError as e:
            self._drain(error=e)
            raise
        except BaseException as e:
            self._drain(error=AuthError(f"Token refresh failed: {e}"))
            raise
        self._drain(token=token)
        return token

    def _drain(self, token: Optional[str] = None, error: Optional[BaseException] = None) -> None:
        with self._refresh_lock:
            waiters = self._waiters
            self._waiters = []
            self._refresh_in_flight = False

        if waiters:
            logger.debug(f"Releasing {len(waiters)} request(s) queued behind token refresh")
        for waiter in waiters:
            waiter.token = token
            waiter.error = error
            waiter.event.set()

    def _refresh_access_token(self) -> str:
        """POST the refresh token and store the new access token."""
        refresh_token = self.token_store.get_refresh()
        if not refresh_token:
            self._expire_session()
            raise AuthError("No refresh token available")

        url = self._url(REFRESH_PATH)
        try:
            response = self.session.request(
                "POST",
                url,
                json={"refresh": refresh_token},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Token refresh could not reach {url}: {e}")
            self._expire_session()
            raise AuthError(f"Failed to refresh token: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"Token refresh rejected with status {response.status_code}")
            self._expire_session()
            raise AuthError("Failed to refresh token")

        try:
            tokens = RefreshedToken.model_validate(response.json())
        except ValueError as e:
            self._expire_session()
            raise AuthError("Token refresh returned an unexpected payload") from e

        # Servers that rotate refresh tokens send a new one alongside.
        self.token_store.set_tokens(tokens.access, tokens.refresh or refresh_token)
        logger.info("Access token refreshed")
        return tokens.access

    def _expire_session(self) -> None:
        self.token_store.clear()
        if self.on_session_expired is not None:
            self.on_session_expired()
