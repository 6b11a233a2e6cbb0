"""
HTTP transport used to fetch listing pages and artifacts.

The crawler only needs `get(url)` returning a streamed response that exposes
`status_code`, `headers`, `content`/`iter_content` and works as a context
manager. HttpTransport provides that on top of a requests Session; tests and
embedding hosts may plug in their own Transport.
"""

import importlib.metadata
from abc import ABC, abstractmethod
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from indexscm.config import TransportSettings
from indexscm.constants import APP_NAME
from indexscm.exceptions import HTTPStatusError, NetworkError
from indexscm.log_utils import logger

_USER_AGENT_CACHE: Optional[str] = None


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `indexscm/{version}`, where `{version}` is the installed package version or `unknown` if it cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        try:
            app_version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            app_version = "unknown"

        _USER_AGENT_CACHE = f"{APP_NAME}/{app_version}"

    return _USER_AGENT_CACHE


class Transport(ABC):
    """Blocking GET collaborator used by the listing parser and the downloader."""

    @abstractmethod
    def get(self, url: str) -> requests.Response:
        """
        Issue a GET for `url` and return the streamed response.

        Callers must use the response as a context manager (or close it) so the
        connection is released. Status codes are not checked here.

        Raises:
            NetworkError: If no response could be obtained.
        """

    def close(self) -> None:
        """Release pooled resources; the default transport has none."""

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class HttpTransport(Transport):
    """
    requests-based transport with configurable timeouts and connect retries.

    Status codes are never retried; `connect_retries` only covers failures to
    establish a connection and defaults to 0.
    """

    def __init__(
        self,
        settings: Optional[TransportSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or TransportSettings()
        self.session = session or requests.Session()

        retry_strategy = Retry(
            total=self.settings.connect_retries,
            connect=self.settings.connect_retries,
            read=0,
            status=0,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        self.session.headers["User-Agent"] = get_user_agent()

    def get(self, url: str) -> requests.Response:
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(
                url, stream=True, timeout=self.settings.timeout
            )
        except requests.RequestException as e:
            raise NetworkError(f"Request failed for {url}", url=url, details=str(e)) from e
        logger.debug(f"Received HTTP response status code: {response.status_code} for URL: {url}")
        return response

    def close(self) -> None:
        self.session.close()


def raise_for_status(response: requests.Response, url: str) -> None:
    """
    Raise HTTPStatusError for status codes of 400 and above.

    Redirect and informational codes pass; no retry is attempted.
    """
    status_code = response.status_code
    if status_code > 399:
        raise HTTPStatusError(
            f"status code: {status_code}", status_code=status_code, url=url
        )