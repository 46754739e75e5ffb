"""
Spotify Session - Bearer-authenticated HTTP access to the Spotify Web API

The session is the single owner of the current access token. Token refresh
is delegated to a callback supplied by whoever manages credentials; the
session only decides when to ask for a new token.
"""
import logging
from typing import Any, Callable, Dict, Optional

import requests

from .errors import AuthExpiredError, FetchError
from .logging_utils import redact
from .rate_limiter import CancellationToken
from .retry_helper import NetworkError, retry_with_backoff

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Optional[str]]


class SpotifySession:
    """
    Authenticated fetch against the Spotify Web API.

    ``request()`` adds the bearer header, retries once with a refreshed
    token on 401 and raises AuthExpiredError if the retry is rejected too.
    Other status codes are returned to the caller untouched.
    """

    API_BASE = "https://api.spotify.com/v1"

    def __init__(
        self,
        access_token: str,
        refresh_callback: Optional[RefreshCallback] = None,
        api_base: str = API_BASE,
        timeout: float = 10.0,
        max_retries: int = 2,
        http: Optional[requests.Session] = None,
    ):
        """
        Args:
            access_token: Current OAuth access token
            refresh_callback: Returns a fresh access token, or None if refresh failed
            api_base: Base URL for relative paths
            timeout: Per-request timeout in seconds
            max_retries: Retries for connection errors and timeouts
            http: Optional requests session (tests inject a fake)
        """
        self._access_token = access_token
        self._refresh_callback = refresh_callback
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.http = http or requests.Session()
        self.request_count = 0

    @property
    def access_token(self) -> str:
        return self._access_token

    def refresh(self) -> bool:
        """
        Ask the credential owner for a new access token.

        Returns:
            True if a new token was installed
        """
        if self._refresh_callback is None:
            logger.debug("No refresh callback configured; cannot refresh access token")
            return False
        try:
            token = self._refresh_callback()
        except Exception as e:
            logger.warning(f"Access token refresh failed: {redact(e)}")
            return False
        if not token:
            logger.warning("Access token refresh returned no token")
            return False
        self._access_token = token
        logger.info("Access token refreshed")
        return True

    def url_for(self, path_or_url: str) -> str:
        if path_or_url.startswith(('http://', 'https://')):
            return path_or_url
        return f"{self.api_base}/{path_or_url.lstrip('/')}"

    def _send(self, url: str, params: Optional[Dict[str, Any]]) -> requests.Response:
        self.request_count += 1
        logger.debug(f"GET {redact(url)}")
        try:
            return self.http.get(
                url,
                params=params,
                headers={'Authorization': f"Bearer {self._access_token}"},
                timeout=self.timeout,
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NetworkError(str(e)) from e

    def _send_with_retry(self, url: str, params: Optional[Dict[str, Any]],
                         cancel: Optional[CancellationToken] = None) -> requests.Response:
        if cancel is not None:
            cancel.raise_if_cancelled()
        send = retry_with_backoff(
            max_retries=self.max_retries,
            exceptions=(NetworkError,),
            sleep=cancel.sleep if cancel is not None else None,
        )(self._send)
        try:
            return send(url, params)
        except NetworkError as e:
            raise FetchError(f"Network error fetching {redact(url)}: {e}", url=url) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Request to {redact(url)} failed: {e}", url=url) from e

    def request(self, path_or_url: str, params: Optional[Dict[str, Any]] = None,
                cancel: Optional[CancellationToken] = None) -> requests.Response:
        """
        GET a Spotify endpoint.

        Args:
            path_or_url: Absolute URL (e.g. a pagination ``next`` link) or API path
            params: Query parameters
            cancel: Cancellation token; retry backoff wakes early and raises
                AnalysisCancelled once it is set

        Returns:
            The response, whatever its status (except a final 401)

        Raises:
            AuthExpiredError: if the token was rejected and refresh did not help
            FetchError: if the request could not be completed at all
        """
        url = self.url_for(path_or_url)
        response = self._send_with_retry(url, params, cancel)
        if response.status_code != 401:
            return response

        logger.info("Spotify returned 401; refreshing access token")
        if not self.refresh():
            raise AuthExpiredError("Spotify session expired; please log in again")

        response = self._send_with_retry(url, params, cancel)
        if response.status_code == 401:
            raise AuthExpiredError("Spotify rejected the refreshed access token; please log in again")
        return response

    def get_json(self, path_or_url: str, params: Optional[Dict[str, Any]] = None,
                 cancel: Optional[CancellationToken] = None) -> Any:
        """
        GET a Spotify endpoint and decode its JSON body.

        Raises:
            FetchError: on any non-2xx status or an undecodable body
        """
        response = self.request(path_or_url, params, cancel)
        url = self.url_for(path_or_url)
        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"Spotify returned HTTP {response.status_code} for {redact(url)}",
                status=response.status_code,
                url=url,
            )
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Spotify returned invalid JSON for {redact(url)}", status=response.status_code,
                             url=url) from e
